"""
Main Monitor Class

Tick scheduler and lifecycle of the table anomaly monitor. One engine owns
all mutable monitor state; it is only touched from a tick or a ramp attempt,
both of which run on the timer loop's thread.
"""

import logging

from monitoring.alerts import AlertDispatcher
from monitoring.dirty import DirtyTracker
from monitoring.models import AnomalyVerdict, MonitorStatus, ScreenState
from monitoring.ports import CompositeListener, NullChangeNotifier, SilentAudio
from monitoring.ramp import BusyWindow, RampController
from monitoring.scan_cache import ScanCache
from monitoring.scanner import AnomalyScanner
from monitoring.signature import SignatureGate
from monitoring.timers import TimerLoop
from utils.text_matcher import TextMatcher

logger = logging.getLogger(__name__)


class MonitorEngine:
    """
    Watches the probe provider and turns anomalies into throttled alerts.

    Args:
        settings (MonitorSettings): Timing and detection settings
        probes (ProbeProvider): Reads the monitored surface
        loop (TimerLoop, optional): Timer owner; a real-time loop by default
        corrective_action (CorrectiveAction, optional): "Load more" trigger; no ramp without it
        notifier (ChangeNotifier, optional): Source of change notifications
        audio (AlertAudio, optional): Speaker; silent by default
        listener (MonitorListener, optional): Presentation layer
    """

    def __init__(self, settings, probes, loop=None, corrective_action=None, notifier=None,
                 audio=None, listener=None):
        self.settings = settings
        self._probes = probes
        self._loop = loop or TimerLoop()
        self._notifier = notifier or NullChangeNotifier()
        if isinstance(listener, CompositeListener):
            self._listener = listener
        else:
            self._listener = CompositeListener([listener] if listener is not None else [])

        clock = self._loop.now
        self.fast_tick_s = settings.fast_tick_ms / 1000.0
        self.slow_tick_s = settings.slow_tick_ms / 1000.0
        self.initial_tick_s = settings.initial_tick_ms / 1000.0

        self.cache = ScanCache(
            probes, clock,
            stale_s=settings.scan_stale_ms / 1000.0,
            min_gap_s=settings.scan_min_gap_ms / 1000.0,
        )
        self.scanner = AnomalyScanner(probes, TextMatcher(settings.anomaly_patterns))
        self.gate = SignatureGate(clock)
        self.dispatcher = AlertDispatcher(
            audio or SilentAudio(), clock,
            min_audio_gap_s=settings.min_audio_gap_ms / 1000.0,
            pending_ttl_s=settings.pending_alert_ttl_ms / 1000.0,
        )
        self.busy = BusyWindow(clock, settings.user_busy_ms / 1000.0)
        self.ramp = RampController(
            probes, corrective_action, self._loop, self.busy, settings,
            poll_activity=self._poll_user_activity,
        )
        self.dirty = DirtyTracker(
            clock, throttle_s=settings.change_throttle_ms / 1000.0, on_dirty=self.cache.invalidate,
        )

        self.screen_state = ScreenState.INACTIVE
        self.verdict = AnomalyVerdict.inactive()
        self.status = MonitorStatus()
        self.cycles = 0
        self._markers = ()
        self._rows_refreshed = False
        self._last_cycle_signature = ""
        self._tick_timer = None
        self._started = False
        self._torn_down = False
        self._in_cycle = False
        self._probe_failing = False

    @property
    def torn_down(self):
        return self._torn_down

    # ----------------- Lifecycle -----------------

    def start(self):
        """Attach change notifications and arm the first tick. Repeated calls are no-ops."""
        if self._started or self._torn_down:
            return
        self._started = True
        try:
            self.dirty.attach(self._notifier)
        except Exception as e:
            logger.warning(f"Change notifications unavailable, relying on cache staleness: {e}")
        self._schedule_tick(self.initial_tick_s)
        logger.info("Monitor started")

    def run_forever(self):
        """Start and drive the timer loop until teardown()."""
        self.start()
        self._loop.run()

    def teardown(self, reason="teardown"):
        """Stop every timer, detach notifications and clear alert state. Idempotent."""
        if self._torn_down:
            return
        self._torn_down = True

        self._loop.cancel(self._tick_timer)
        self._tick_timer = None
        self.ramp.shutdown(reason)
        self.dirty.detach()
        self.dispatcher.reset()
        self.cache.clear()

        self.screen_state = ScreenState.INACTIVE
        self.verdict = AnomalyVerdict.inactive()
        self._emit(fired=False)
        self._loop.stop()
        logger.info(f"Monitor torn down ({reason})")

    # ----------------- Host operations -----------------

    def dismiss_banner(self):
        """User acknowledged the banner; it stays hidden until the signature changes."""
        self.dispatcher.dismiss()
        if not self._in_cycle:
            self._emit(fired=False)

    def reopen_banner(self):
        self.dispatcher.reopen()
        if not self._in_cycle:
            self._emit(fired=False)

    def note_user_activity(self):
        self.busy.bump()

    # ----------------- Tick -----------------

    def run_cycle(self):
        """Run exactly one cycle and re-arm the tick timer."""
        if self._torn_down or self._in_cycle:
            return

        self._loop.cancel(self._tick_timer)
        self._tick_timer = None
        self._in_cycle = True
        delay = self.slow_tick_s
        fired = False
        try:
            delay, fired = self._cycle()
        except Exception as e:
            logger.error(f"Error in monitor cycle: {e}", exc_info=True)
        finally:
            self._in_cycle = False

        if self._torn_down:
            return
        self._emit(fired)
        self._schedule_tick(delay)

    def _cycle(self):
        self.cycles += 1
        self._poll_user_activity()
        self._poll_banner_dismissal()
        self._poll_banner_reopen()
        self.dirty.pump()
        dirty = self.dirty.consume()
        self._rows_refreshed = dirty

        screen = self._classify()
        if screen is not self.screen_state:
            logger.info(f"Screen state {self.screen_state.value} -> {screen.value}")
            self.screen_state = screen

        if screen is not ScreenState.ACTIVE:
            self._leave_active()
            return self.slow_tick_s, False

        verdict, clean = self._scan(dirty)
        self.verdict = verdict

        admission = None
        if verdict.active:
            admission = self.gate.admit(verdict, self._view_id())
        elif clean:
            self.gate.clear()

        self.dispatcher.on_verdict(verdict, admission)
        fired = self.dispatcher.maybe_fire(self.gate.last_signature)

        self.ramp.maybe_start(screen)

        signature = admission.signature if admission is not None else ""
        signature_changed = signature != self._last_cycle_signature
        self._last_cycle_signature = signature

        want_fast = verdict.active or dirty or signature_changed
        return (self.fast_tick_s if want_fast else self.slow_tick_s), fired

    def _leave_active(self):
        # Keep the last admitted signature: re-entering with the same
        # anomaly must not sound again.
        self.ramp.stop("left monitored view")
        self.dispatcher.hide()
        self.cache.invalidate()
        self.verdict = AnomalyVerdict.inactive()
        self._last_cycle_signature = ""

    def _scan(self, dirty):
        """
        Returns:
            tuple: (AnomalyVerdict, clean) where clean is False if the rows could not be read
        """
        built_at = self.cache.built_at
        try:
            rows = self.cache.get_rows(force=dirty)
        except Exception as e:
            self._probe_failed("rows", e)
            return AnomalyVerdict.inactive(), False
        if self.cache.built_at != built_at:
            self._rows_refreshed = True

        authoritative = None
        try:
            authoritative = self._probes.read_authoritative_channel()
        except Exception as e:
            logger.debug(f"Message list unavailable: {e}")

        verdict = self.scanner.scan(rows, authoritative)
        self._probe_recovered()
        return verdict, True

    def _classify(self):
        try:
            return ScreenState(self._probes.classify_screen())
        except Exception as e:
            self._probe_failed("screen", e)
            return ScreenState.INACTIVE

    def _view_id(self):
        try:
            return self._probes.read_view_id() or ""
        except Exception as e:
            logger.debug(f"View id unavailable: {e}")
            return ""

    def _poll_user_activity(self):
        try:
            if self._probes.poll_user_activity():
                self.busy.bump()
        except Exception as e:
            logger.debug(f"User activity unavailable: {e}")

    def _poll_banner_dismissal(self):
        try:
            if self._probes.poll_banner_dismissed():
                self.dispatcher.dismiss()
        except Exception as e:
            logger.debug(f"Banner dismissal unavailable: {e}")

    def _poll_banner_reopen(self):
        try:
            if self._probes.poll_banner_reopen():
                self.dispatcher.reopen()
        except Exception as e:
            logger.debug(f"Banner reopen request unavailable: {e}")

    def _probe_failed(self, what, error):
        if not self._probe_failing:
            logger.warning(f"Probe unavailable ({what}), treating cycle as no data: {error}")
        else:
            logger.debug(f"Probe still unavailable ({what}): {error}")
        self._probe_failing = True

    def _probe_recovered(self):
        if self._probe_failing:
            logger.info("Probes available again")
        self._probe_failing = False

    def _schedule_tick(self, delay_s):
        if self._torn_down:
            return
        self._loop.cancel(self._tick_timer)
        self._tick_timer = self._loop.call_later(delay_s, self._on_tick)

    def _on_tick(self):
        self._tick_timer = None
        self.run_cycle()

    # ----------------- Presentation -----------------

    def _emit(self, fired):
        active = self.dispatcher.active
        status = MonitorStatus(
            screen_state=self.screen_state,
            has_active_anomaly=active,
            count=self.verdict.count if active else 0,
            source_channel=self.verdict.channel if active else None,
            banner_visible=self.dispatcher.banner_visible,
            signature=self.gate.last_signature,
        )
        if status != self.status:
            self.status = status
            self._listener.on_state_change(status)

        # Row refreshes drop highlight classes; markers are pushed again
        markers = tuple(self.dispatcher.markers)
        refreshed = self._rows_refreshed and bool(markers)
        self._rows_refreshed = False
        if markers != self._markers or refreshed:
            self._markers = markers
            self._listener.on_markers_changed(markers)

        if fired:
            self._listener.on_alert_fire()
