"""
Alert Dispatcher

Owns the alert lifecycle (pending -> fired -> dismissed/expired). The banner
and row markers follow the verdict every cycle; the audible signal fires at
most once per novel signature and is rate limited on its own.
"""

import logging

from monitoring.errors import AudioUnavailable
from monitoring.models import PendingAlert

logger = logging.getLogger(__name__)


class AlertDispatcher:
    """
    Args:
        audio (AlertAudio): Speaker
        clock (callable): Seconds, monotonic
        min_audio_gap_s (float): Minimum time between two audio attempts, any signature
        pending_ttl_s (float): Lifetime of a pending alert that could not fire
    """

    def __init__(self, audio, clock, min_audio_gap_s=0.8, pending_ttl_s=3.5):
        self._audio = audio
        self._clock = clock
        self.min_audio_gap_s = min_audio_gap_s
        self.pending_ttl_s = pending_ttl_s

        self.pending = None
        self.last_audio_at = None
        self.active = False
        self.signature = ""
        self.dismissed_signature = None
        self.banner_visible = False
        self.markers = ()

    def on_verdict(self, verdict, admission=None):
        if not verdict.active:
            self.reset()
            return

        self.active = True
        if admission is not None:
            self.signature = admission.signature
            if admission.is_novel:
                self.pending = PendingAlert(admission.signature, self._clock())
                self.dismissed_signature = None

        self.markers = tuple(verdict.marked_keys)
        self.banner_visible = self.dismissed_signature != self.signature

    def maybe_fire(self, current_signature):
        """
        Try to play the pending alert once.

        Returns:
            bool: True if the audio fired this call
        """
        pending = self.pending
        if pending is None:
            return False

        now = self._clock()
        if now - pending.created_at > self.pending_ttl_s:
            logger.info(f"Alert expired without sound after {self.pending_ttl_s:.1f}s: {pending.signature}")
            self.pending = None
            return False

        if pending.signature != current_signature:
            logger.debug(f"Dropping superseded alert: {pending.signature}")
            self.pending = None
            return False

        if self.last_audio_at is not None and now - self.last_audio_at < self.min_audio_gap_s:
            return False

        self.last_audio_at = now
        try:
            played = bool(self._audio.play())
        except AudioUnavailable as e:
            logger.debug(f"Alert audio unavailable: {e}")
            played = False
        except Exception as e:
            logger.warning(f"Alert audio failed: {e}")
            played = False

        if not played:
            return False

        pending.fired_audio = True
        self.pending = None
        logger.warning(f"ALERT fired: {pending.signature}")
        return True

    def dismiss(self):
        """Hide the banner for the current signature only."""
        if not self.signature:
            return
        self.dismissed_signature = self.signature
        self.banner_visible = False

    def reopen(self):
        if not self.active:
            return
        self.dismissed_signature = None
        self.banner_visible = True

    def hide(self):
        """Drop visuals, the dismissal and the pending alert (screen left the monitored view)."""
        self.active = False
        self.banner_visible = False
        self.markers = ()
        self.pending = None
        self.dismissed_signature = None

    def reset(self):
        self.hide()
        self.signature = ""
