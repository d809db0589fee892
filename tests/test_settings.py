"""Tests for configuration loading and validation."""

import os

import pytest

from config.settings import COLOR_PROFILES, MonitorSettings
from utils.text_matcher import DEFAULT_ANOMALY_PATTERNS


def test_defaults_are_valid():
    settings = MonitorSettings().validate()
    assert settings.fast_tick_ms == 350
    assert settings.slow_tick_ms == 850
    assert settings.anomaly_patterns == DEFAULT_ANOMALY_PATTERNS
    assert settings.color_profile in COLOR_PROFILES


def test_from_env_mapping():
    settings = MonitorSettings.from_env({
        "FAST_TICK_MS": "200",
        "HEADLESS": "yes",
        "SOUND_ENABLED": "off",
        "ANOMALY_TEXT_PATTERNS": "stock error;; qty\\s+mismatch ;;",
        "RECEIVER_EMAILS": "a@example.com, b@example.com",
        "MONITOR_URL": "https://example.com/hu",
        "COLOR_PROFILE": "",
    })
    assert settings.fast_tick_ms == 200
    assert settings.headless is True
    assert settings.sound_enabled is False
    assert settings.anomaly_patterns == ("stock error", "qty\\s+mismatch")
    assert settings.receiver_emails == ("a@example.com", "b@example.com")
    assert settings.monitor_url == "https://example.com/hu"
    # Empty values keep the default
    assert settings.color_profile == "classic"


@pytest.mark.parametrize("env", [{"SLOW_TICK_MS": "fast"}, {"HEADLESS": "maybe"}])
def test_unconvertible_values_raise(env):
    with pytest.raises(ValueError):
        MonitorSettings.from_env(env)


def test_from_env_reads_dotenv_file(tmp_path, monkeypatch):
    monkeypatch.delenv("RAMP_MAX_TRIES", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("RAMP_MAX_TRIES=9\n")
    try:
        settings = MonitorSettings.from_env(env_file=str(env_file))
    finally:
        os.environ.pop("RAMP_MAX_TRIES", None)
    assert settings.ramp_max_tries == 9


def test_with_overrides_ignores_none():
    settings = MonitorSettings().with_overrides(monitor_url="https://x", headless=None)
    assert settings.monitor_url == "https://x"
    assert settings.headless is False


@pytest.mark.parametrize("changes, message", [
    ({"fast_tick_ms": 0}, "fast_tick_ms"),
    ({"fast_tick_ms": 900}, "must not exceed"),
    ({"ramp_max_tries": 0}, "ramp_max_tries"),
    ({"color_profile": "rainbow"}, "color_profile"),
    ({"anomaly_patterns": ()}, "at least one pattern"),
    ({"anomaly_patterns": ("(unclosed",)}, "Invalid anomaly pattern"),
    ({"alert_email_enabled": True}, "SENDER_EMAIL"),
    ({"alert_email_enabled": True, "sender_email": "a@x", "sender_password": "pw"}, "RECEIVER_EMAILS"),
])
def test_validation_errors(changes, message):
    with pytest.raises(ValueError, match=message):
        MonitorSettings(**changes).validate()


def test_password_not_in_repr():
    assert "secret" not in repr(MonitorSettings(sender_password="secret"))
