"""
Monitor Errors

All of these are local and non-fatal: the engine logs them and carries on.
"""


class MonitorError(Exception):
    """Base class for monitor failures."""


class ProbeUnavailable(MonitorError):
    """A probe could not read the data surface this cycle."""


class CorrectiveActionUnavailable(MonitorError):
    """The "load more" control could not be found or invoked."""


class AudioUnavailable(MonitorError):
    """The alert sound could not be played."""
