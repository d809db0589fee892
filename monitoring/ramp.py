"""
Ramp Controller

Bounded "load more" loop. While the pagination indicator shows that rows
are still missing, the controller triggers the corrective action a few
times, watching the row count grow, and stops on the first of: deadline,
try ceiling, user activity, pagination complete, repeated no-growth, action
unavailable, or the per-engine action budget running out.
"""

import logging

from monitoring.errors import CorrectiveActionUnavailable
from monitoring.models import RampSession, ScreenState

logger = logging.getLogger(__name__)


class BusyWindow:
    """User is considered busy for `busy_s` seconds after the last input."""

    def __init__(self, clock, busy_s=0.9):
        self._clock = clock
        self.busy_s = busy_s
        self.busy_until = 0.0

    def bump(self):
        self.busy_until = self._clock() + self.busy_s

    def is_busy(self):
        return self._clock() < self.busy_until


class RampController:
    """
    IDLE -> ACTIVE_WINDOW -> IDLE. At most one ramp timer is queued at a time.

    Args:
        probes (ProbeProvider): Pagination progress and row enumeration
        action (CorrectiveAction): The "load more" trigger
        loop (TimerLoop): Timer owner
        busy (BusyWindow): User activity window
        settings (MonitorSettings): ramp_* limits
        poll_activity (callable, optional): Called before each busy check
    """

    def __init__(self, probes, action, loop, busy, settings, poll_activity=None):
        self._probes = probes
        self._action = action
        self._loop = loop
        self._busy = busy
        self._poll_activity = poll_activity

        self.window_s = settings.ramp_window_ms / 1000.0
        self.try_every_s = settings.ramp_try_every_ms / 1000.0
        self.min_gap_s = settings.ramp_min_gap_ms / 1000.0
        self.max_tries = settings.ramp_max_tries
        self.max_actions = settings.ramp_max_actions
        self.no_grow_stop_after = settings.ramp_no_grow_stop_after

        self.session = None
        self.actions_used = 0
        self.last_session_end = None
        self.last_stop_reason = ""
        self._timer = None
        self._closed = False

    @property
    def running(self):
        return self.session is not None

    def maybe_start(self, screen_state):
        """
        Start a session if every entry guard passes.

        Returns:
            bool: True if a session was started
        """
        if self._closed or self._action is None:
            return False
        if screen_state is not ScreenState.ACTIVE:
            return False
        if self.session is not None:
            return False
        if self.actions_used >= self.max_actions:
            return False

        now = self._loop.now()
        if self.last_session_end is not None and now - self.last_session_end < self.min_gap_s:
            return False
        if self._user_busy():
            return False
        if not self._pagination_incomplete():
            return False

        baseline = self._row_count()
        if baseline is None:
            return False

        self.session = RampSession(deadline=now + self.window_s, last_observed_size=baseline, started_at=now)
        logger.info(f"Ramp started: {baseline} rows loaded, window {self.window_s:.1f}s")
        self._schedule(0)
        return True

    def stop(self, reason="stopped"):
        """Idempotent: cancels the pending attempt and ends the session, if any."""
        self._loop.cancel(self._timer)
        self._timer = None
        session = self.session
        if session is None:
            return
        session.active = False
        self.session = None
        self.last_session_end = self._loop.now()
        self.last_stop_reason = reason
        logger.info(f"Ramp stopped ({reason}) after {session.tries_used} tries, {session.last_observed_size} rows")

    def shutdown(self, reason="shutdown"):
        """Stop and refuse any later session."""
        self._closed = True
        self.stop(reason)

    def _schedule(self, delay_s):
        if self._closed or self._timer is not None:
            return
        self._timer = self._loop.call_later(delay_s, self._attempt)

    def _attempt(self):
        self._timer = None
        session = self.session
        if session is None:
            return

        if self._loop.now() > session.deadline:
            self.stop("deadline")
            return
        if session.tries_used >= self.max_tries:
            self.stop("max tries")
            return
        if self.actions_used >= self.max_actions:
            self.stop("action budget exhausted")
            return
        if self._user_busy():
            self.stop("user busy")
            return
        if not self._pagination_incomplete():
            self.stop("pagination complete")
            return

        try:
            invoked = bool(self._action.invoke())
        except CorrectiveActionUnavailable as e:
            logger.debug(f"Corrective action unavailable: {e}")
            invoked = False
        except Exception as e:
            logger.warning(f"Corrective action failed: {e}")
            invoked = False
        if not invoked:
            self.stop("corrective action unavailable")
            return

        session.tries_used += 1
        self.actions_used += 1

        size = self._row_count()
        if size is not None and size > session.last_observed_size:
            session.last_observed_size = size
            session.no_growth_streak = 0
        else:
            session.no_growth_streak += 1
            if session.no_growth_streak >= self.no_grow_stop_after:
                self.stop("no growth")
                return

        if session.tries_used >= self.max_tries:
            self.stop("max tries")
            return

        self._schedule(self.try_every_s)

    def _user_busy(self):
        if self._poll_activity is not None:
            self._poll_activity()
        return self._busy.is_busy()

    def _pagination_incomplete(self):
        try:
            progress = self._probes.read_pagination_progress()
        except Exception as e:
            logger.debug(f"Pagination progress unavailable: {e}")
            return False
        return bool(progress and progress.incomplete)

    def _row_count(self):
        try:
            return len(self._probes.enumerate_rows() or [])
        except Exception as e:
            logger.debug(f"Row count unavailable: {e}")
            return None
