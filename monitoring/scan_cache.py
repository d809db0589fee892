"""
Scan Cache

Memoizes the enumerated rows (and the fields derived from them) so the data
surface is not re-walked on every tick.
"""

import logging

from monitoring.models import Row

logger = logging.getLogger(__name__)


class ScanCache:
    """
    Args:
        probes (ProbeProvider): Source of row handles and row keys
        clock (callable): Seconds, monotonic
        stale_s (float): Age after which the cache is rebuilt even when clean
        min_gap_s (float): Minimum time between two rebuilds
    """

    def __init__(self, probes, clock, stale_s=1.0, min_gap_s=0.22):
        self._probes = probes
        self._clock = clock
        self.stale_s = stale_s
        self.min_gap_s = min_gap_s
        self._rows = []
        self._built_at = None
        self._rebuild_requested = False

    @property
    def built_at(self):
        return self._built_at

    def invalidate(self):
        """Request a rebuild on the next get_rows() call (subject to the min gap)."""
        self._rebuild_requested = True

    def clear(self):
        self._rows = []
        self._built_at = None
        self._rebuild_requested = False

    def get_rows(self, force=False):
        """
        Return the memoized rows, rebuilding them when forced or stale.

        A forced rebuild that falls inside the minimum gap is deferred: the
        memoized rows are served and the rebuild happens on the first call
        after the gap.

        Raises:
            ProbeUnavailable: If enumerating rows fails during a rebuild
        """
        now = self._clock()
        if force:
            self._rebuild_requested = True

        if self._built_at is None:
            return self._rebuild(now)

        age = now - self._built_at
        if age < self.min_gap_s:
            return self._rows
        if self._rebuild_requested or age >= self.stale_s:
            return self._rebuild(now)
        return self._rows

    def _rebuild(self, now):
        handles = list(self._probes.enumerate_rows() or [])
        rows = []
        for index, handle in enumerate(handles):
            key = None
            try:
                key = self._probes.read_row_key(handle)
            except Exception as e:
                logger.debug(f"Row key unavailable for row {index}: {e}")
            rows.append(Row(handle=handle, key=key or f"#{index}"))

        self._rows = rows
        self._built_at = now
        self._rebuild_requested = False
        logger.debug(f"Scan cache rebuilt with {len(rows)} rows")
        return self._rows
