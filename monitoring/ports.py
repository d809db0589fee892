"""
Collaborator Interfaces

The engine only talks to the data surface, the "load more" control, the
change watcher, the speaker and the presentation layer through these.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, List, Optional, Sequence

from monitoring.models import AuthoritativeState, ChangeNotice, MonitorStatus, PaginationProgress, ScreenState

logger = logging.getLogger(__name__)


class ProbeProvider(ABC):
    """Read-only access to the monitored surface. Any method may raise ProbeUnavailable."""

    @abstractmethod
    def classify_screen(self) -> ScreenState:
        raise NotImplementedError

    @abstractmethod
    def enumerate_rows(self) -> Sequence[Any]:
        """Return opaque row handles in display order."""
        raise NotImplementedError

    @abstractmethod
    def read_numeric_field(self, row: Any) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def read_status_field(self, row: Any) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def read_authoritative_channel(self) -> Optional[AuthoritativeState]:
        """None means the channel is unavailable."""
        raise NotImplementedError

    @abstractmethod
    def read_pagination_progress(self) -> Optional[PaginationProgress]:
        raise NotImplementedError

    def read_view_id(self) -> str:
        return ""

    def read_row_key(self, row: Any) -> Optional[str]:
        return None

    def poll_user_activity(self) -> bool:
        """True if user input happened since the previous poll."""
        return False

    def poll_banner_dismissed(self) -> bool:
        """True if the user dismissed the banner on the surface since the previous poll."""
        return False

    def poll_banner_reopen(self) -> bool:
        """True if the user asked, on the surface, to see the dismissed banner again."""
        return False


class CorrectiveAction(ABC):
    @abstractmethod
    def invoke(self) -> bool:
        """Attempt one "load more". Returns whether it could be attempted at all."""
        raise NotImplementedError


class ChangeNotifier(ABC):
    @abstractmethod
    def subscribe(self, callback: Callable[[ChangeNotice], None]) -> None:
        raise NotImplementedError

    @abstractmethod
    def unsubscribe(self) -> None:
        raise NotImplementedError

    def pump(self) -> None:
        """Deliver queued notifications. Push-based notifiers need not override."""
        return


class AlertAudio(ABC):
    @abstractmethod
    def play(self) -> bool:
        """Best effort. False (or AudioUnavailable) means nothing was heard."""
        raise NotImplementedError


class MonitorListener:
    """Presentation hooks. Each is called at most once per tick, after the cycle committed."""

    def on_state_change(self, status: MonitorStatus) -> None:
        return

    def on_alert_fire(self) -> None:
        return

    def on_markers_changed(self, row_keys: Sequence[str]) -> None:
        return


class CompositeListener(MonitorListener):
    """Fans out to several listeners; a failing listener is logged and skipped."""

    def __init__(self, listeners: Iterable[MonitorListener] = ()):
        self.listeners: List[MonitorListener] = list(listeners)

    def add(self, listener: MonitorListener) -> None:
        self.listeners.append(listener)

    def _each(self, method, *args):
        for listener in self.listeners:
            try:
                getattr(listener, method)(*args)
            except Exception as e:
                logger.error(f"Listener {type(listener).__name__}.{method} failed: {e}", exc_info=True)

    def on_state_change(self, status):
        self._each("on_state_change", status)

    def on_alert_fire(self):
        self._each("on_alert_fire")

    def on_markers_changed(self, row_keys):
        self._each("on_markers_changed", row_keys)


class NullChangeNotifier(ChangeNotifier):
    def subscribe(self, callback):
        return

    def unsubscribe(self):
        return


class SilentAudio(AlertAudio):
    """Used when sound is disabled; the alert still counts as fired."""

    def play(self):
        return True
