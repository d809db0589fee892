"""
Configuration Management

Loads monitor settings from environment variables (optionally from a .env
file) and validates them.
"""

import os
import re
from dataclasses import dataclass, field, fields, replace

from dotenv import load_dotenv

from utils.text_matcher import DEFAULT_ANOMALY_PATTERNS

COLOR_PROFILES = {
    'classic': {'fill': 'rgba(255, 0, 0, 0.08)', 'pulse_outer': 'rgba(255, 0, 0, 0.25)', 'pulse_inner': 'rgba(255, 0, 0, 0.12)'},
    'soft': {'fill': 'rgba(255, 140, 0, 0.08)', 'pulse_outer': 'rgba(255, 140, 0, 0.25)', 'pulse_inner': 'rgba(255, 140, 0, 0.12)'},
    'neon': {'fill': 'rgba(180, 0, 255, 0.10)', 'pulse_outer': 'rgba(180, 0, 255, 0.35)', 'pulse_inner': 'rgba(180, 0, 255, 0.18)'},
    'calm': {'fill': 'rgba(0, 140, 255, 0.08)', 'pulse_outer': 'rgba(0, 140, 255, 0.25)', 'pulse_inner': 'rgba(0, 140, 255, 0.12)'},
}

PATTERN_SEPARATOR = ";;"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

# Environment variable -> settings field
ENV_VARS = {
    "FAST_TICK_MS": "fast_tick_ms",
    "SLOW_TICK_MS": "slow_tick_ms",
    "INITIAL_TICK_MS": "initial_tick_ms",
    "SCAN_STALE_MS": "scan_stale_ms",
    "SCAN_MIN_GAP_MS": "scan_min_gap_ms",
    "CHANGE_THROTTLE_MS": "change_throttle_ms",
    "MIN_AUDIO_GAP_MS": "min_audio_gap_ms",
    "PENDING_ALERT_TTL_MS": "pending_alert_ttl_ms",
    "USER_BUSY_MS": "user_busy_ms",
    "RAMP_WINDOW_MS": "ramp_window_ms",
    "RAMP_TRY_EVERY_MS": "ramp_try_every_ms",
    "RAMP_MAX_TRIES": "ramp_max_tries",
    "RAMP_MIN_GAP_MS": "ramp_min_gap_ms",
    "RAMP_MAX_ACTIONS": "ramp_max_actions",
    "RAMP_NO_GROW_STOP_AFTER": "ramp_no_grow_stop_after",
    "ANOMALY_TEXT_PATTERNS": "anomaly_patterns",
    "MONITOR_URL": "monitor_url",
    "HEADLESS": "headless",
    "PAGE_SNAPSHOT_TTL_MS": "page_snapshot_ttl_ms",
    "HIGHLIGHT_ENABLED": "highlight_enabled",
    "HIGHLIGHT_ANIMATE": "highlight_animate",
    "COLOR_PROFILE": "color_profile",
    "SOUND_ENABLED": "sound_enabled",
    "ALERT_SOUND_PATH": "alert_sound_path",
    "ALERT_EMAIL_ENABLED": "alert_email_enabled",
    "SMTP_SERVER": "smtp_server",
    "SMTP_PORT": "smtp_port",
    "SENDER_EMAIL": "sender_email",
    "SENDER_PASSWORD": "sender_password",
    "RECEIVER_EMAILS": "receiver_emails",
}


@dataclass(frozen=True)
class MonitorSettings:
    # Tick cadence
    fast_tick_ms: int = 350
    slow_tick_ms: int = 850
    initial_tick_ms: int = 300

    # Scan cache / change tracking
    scan_stale_ms: int = 1000
    scan_min_gap_ms: int = 220
    change_throttle_ms: int = 250

    # Alerting
    min_audio_gap_ms: int = 800
    pending_alert_ttl_ms: int = 3500

    # Ramp ("load more") controller
    user_busy_ms: int = 900
    ramp_window_ms: int = 4000
    ramp_try_every_ms: int = 650
    ramp_max_tries: int = 6
    ramp_min_gap_ms: int = 650
    ramp_max_actions: int = 40
    ramp_no_grow_stop_after: int = 4

    anomaly_patterns: tuple = DEFAULT_ANOMALY_PATTERNS

    # Browser host
    monitor_url: str = ""
    headless: bool = False
    page_snapshot_ttl_ms: int = 100

    # Presentation
    highlight_enabled: bool = True
    highlight_animate: bool = True
    color_profile: str = "classic"
    sound_enabled: bool = True
    alert_sound_path: str = "beep.wav"

    # Optional e-mail notification
    alert_email_enabled: bool = False
    smtp_server: str = "smtp.gmail.com"
    smtp_port: int = 587
    sender_email: str = ""
    sender_password: str = field(default="", repr=False)
    receiver_emails: tuple = ()

    @classmethod
    def from_env(cls, environ=None, env_file=None):
        """
        Build settings from environment variables.

        Args:
            environ (dict, optional): Mapping to read instead of os.environ.
                No .env file is loaded when a mapping is given.
            env_file (str, optional): Path of a .env file to load first

        Returns:
            MonitorSettings: Settings with defaults for unset variables

        Raises:
            ValueError: If a variable cannot be converted
        """
        if environ is None:
            load_dotenv(env_file)
            environ = os.environ

        defaults = {f.name: f.default for f in fields(cls)}
        values = {}
        for env_name, attr in ENV_VARS.items():
            raw = environ.get(env_name)
            if raw is None or raw.strip() == "":
                continue
            values[attr] = _convert(env_name, raw.strip(), defaults[attr])
        return cls(**values)

    def with_overrides(self, **changes):
        """Copy with the given fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def validate(self):
        """
        Check ranges and relations between settings.

        Raises:
            ValueError: Naming the first invalid setting
        """
        for name in ("fast_tick_ms", "slow_tick_ms", "initial_tick_ms", "scan_stale_ms",
                     "scan_min_gap_ms", "change_throttle_ms", "min_audio_gap_ms",
                     "pending_alert_ttl_ms", "user_busy_ms", "ramp_window_ms",
                     "ramp_try_every_ms", "ramp_min_gap_ms", "page_snapshot_ttl_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

        for name in ("ramp_max_tries", "ramp_max_actions", "ramp_no_grow_stop_after"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")

        if self.fast_tick_ms > self.slow_tick_ms:
            raise ValueError(
                f"fast_tick_ms ({self.fast_tick_ms}) must not exceed slow_tick_ms ({self.slow_tick_ms})"
            )

        if self.color_profile not in COLOR_PROFILES:
            raise ValueError(
                f"Unknown color_profile '{self.color_profile}'. Expected one of {sorted(COLOR_PROFILES)}"
            )

        if not self.anomaly_patterns:
            raise ValueError("anomaly_patterns must contain at least one pattern")
        for pattern in self.anomaly_patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid anomaly pattern '{pattern}': {e}") from e

        if self.alert_email_enabled:
            if not self.sender_email or not self.sender_password:
                raise ValueError("E-mail alerts need SENDER_EMAIL and SENDER_PASSWORD")
            if not self.receiver_emails:
                raise ValueError("E-mail alerts need at least one address in RECEIVER_EMAILS")
        return self


def _convert(env_name, raw, default):
    if isinstance(default, bool):
        lowered = raw.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"{env_name} must be a boolean, got '{raw}'")

    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError as e:
            raise ValueError(f"{env_name} must be an integer, got '{raw}'") from e

    if isinstance(default, tuple):
        separator = PATTERN_SEPARATOR if env_name == "ANOMALY_TEXT_PATTERNS" else ","
        return tuple(p.strip() for p in raw.split(separator) if p.strip())

    return raw
