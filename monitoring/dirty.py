"""
Dirty Tracker

Coalesces change notifications into a single "table changed" flag that the
tick scheduler consumes once per cycle.
"""

import logging

logger = logging.getLogger(__name__)

OWN_UI_IDS = frozenset({"kcUiLayer", "kcStopToast", "kcStyle"})


class DirtyTracker:
    """
    Args:
        clock (callable): Seconds, monotonic
        throttle_s (float): Notifications closer than this to the last accepted one are dropped
        own_ui_ids (iterable of str): Element ids of the monitor's own visuals
        on_dirty (callable, optional): Called when a notification is accepted
    """

    def __init__(self, clock, throttle_s=0.25, own_ui_ids=OWN_UI_IDS, on_dirty=None):
        self._clock = clock
        self.throttle_s = throttle_s
        self.own_ui_ids = frozenset(own_ui_ids)
        self._on_dirty = on_dirty
        self._notifier = None
        self._last_accepted_at = None
        # Start dirty so the first cycle scans fresh
        self.dirty = True

    def attach(self, notifier):
        if self._notifier is notifier:
            return
        self.detach()
        notifier.subscribe(self.on_change)
        self._notifier = notifier

    def detach(self):
        notifier = self._notifier
        self._notifier = None
        if notifier is None:
            return
        try:
            notifier.unsubscribe()
        except Exception as e:
            logger.warning(f"Change notifier unsubscribe failed: {e}")

    @property
    def attached(self):
        return self._notifier is not None

    def pump(self):
        if self._notifier is None:
            return
        try:
            self._notifier.pump()
        except Exception as e:
            logger.debug(f"Change notifier pump failed: {e}")

    def on_change(self, notice=None):
        if notice is not None and self._is_own_ui(notice):
            return

        now = self._clock()
        if self._last_accepted_at is not None and now - self._last_accepted_at < self.throttle_s:
            return

        self._last_accepted_at = now
        self.dirty = True
        if self._on_dirty is not None:
            self._on_dirty()

    def consume(self):
        was_dirty = self.dirty
        self.dirty = False
        return was_dirty

    def _is_own_ui(self, notice):
        return any(source_id in self.own_ui_ids for source_id in notice.source_ids)
