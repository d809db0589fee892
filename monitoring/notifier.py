"""
Notification Module

Presentation side of the monitor:
- Console/log output of state changes and alerts
- Browser overlay (row highlight, banner, status indicator)
- E-mail notifications
- Audio alerts
"""

import logging
import smtplib
from email.mime.text import MIMEText
from pathlib import Path

from playsound import playsound
from selenium.common.exceptions import WebDriverException

from config.settings import COLOR_PROFILES
from monitoring.errors import AudioUnavailable
from monitoring.models import ScreenState
from monitoring.ports import AlertAudio, MonitorListener
from monitoring.scraper import SELECTORS

logger = logging.getLogger(__name__)

BANNER_TITLE = "Anomaly detected"
BANNER_LINE = "STOP - check the last scan"

INDICATOR_IDLE = "⚪"
INDICATOR_WAITING = "🟡"
INDICATOR_OK = "🟢"
INDICATOR_ALERT = "🔴"
INDICATOR_TITLE = "Table anomaly monitor (click to show the last alert)"

STYLE_CSS = """
#kcUiLayer{
  position: fixed; top: 14px; right: 240px; z-index: 99999; pointer-events: none;
}
#kcIndicator{
  pointer-events: auto; font-size: 18px; cursor: default; user-select: none;
  opacity: 0.32; transition: opacity .15s ease, transform .15s ease; line-height: 1;
}
#kcIndicator:hover{ opacity: 0.85; transform: translateY(-1px); }
.kc-error-highlight{ background: var(--kc-fill-color) !important; }
.kc-anim{ animation: kc-pulse 1.7s ease-in-out infinite; }
@keyframes kc-pulse{
  0%, 100%{ box-shadow: inset 0 0 0 0 var(--kc-pulse-outer); }
  50%{ box-shadow: inset 0 0 0 6px var(--kc-pulse-inner); }
}
#kcStopToast{
  position: fixed; left: 50%; top: 10px; transform: translateX(-50%);
  z-index: 2147483647; background: rgba(0,0,0,0.88); color: #fff;
  font: 14px system-ui, Segoe UI, Arial; padding: 14px 16px; border-radius: 14px;
  box-shadow: 0 12px 26px rgba(0,0,0,0.35); max-width: 520px; width: max-content;
  display: none;
}
#kcStopToast .title{ font-weight: 700; margin-bottom: 6px; }
#kcStopToast .small{ opacity: .85; font-size: 13px; margin-top: 8px; }
#kcStopToast .row{ display: flex; gap: 10px; align-items: flex-start; }
#kcStopToast .btn{
  margin-left: auto; cursor: pointer; border: 0; border-radius: 10px;
  padding: 6px 10px; background: rgba(255,255,255,0.15); color: #fff;
}
"""

STYLE_SCRIPT = """
var css = arguments[0], profile = arguments[1];
var root = document.documentElement;
root.style.setProperty('--kc-fill-color', profile.fill);
root.style.setProperty('--kc-pulse-outer', profile.pulse_outer);
root.style.setProperty('--kc-pulse-inner', profile.pulse_inner);
if (document.getElementById('kcStyle')) return;
var style = document.createElement('style');
style.id = 'kcStyle';
style.textContent = css;
root.appendChild(style);
"""

BANNER_SCRIPT = """
var visible = arguments[0], title = arguments[1], line = arguments[2], detail = arguments[3];
var el = document.getElementById('kcStopToast');
if (!visible) { if (el) el.style.display = 'none'; return; }
if (!el) {
  el = document.createElement('div');
  el.id = 'kcStopToast';
  el.innerHTML = '<div class="row"><div>&#9888;</div><div style="flex:1;">' +
    '<div class="title"></div><div class="line"></div><div class="small"></div></div>' +
    '<button class="btn" type="button">OK</button></div>';
  el.querySelector('.btn').addEventListener('click', function () {
    el.style.display = 'none';
    window.__kcBannerDismissed = true;
  });
  document.documentElement.appendChild(el);
}
el.querySelector('.title').textContent = title;
el.querySelector('.line').textContent = line;
el.querySelector('.small').textContent = detail;
el.style.display = 'block';
"""

INDICATOR_SCRIPT = """
var symbol = arguments[0], anomaly = arguments[1], title = arguments[2];
var layer = document.getElementById('kcUiLayer');
if (!layer) {
  layer = document.createElement('div');
  layer.id = 'kcUiLayer';
  document.documentElement.appendChild(layer);
}
var el = document.getElementById('kcIndicator');
if (!el) {
  el = document.createElement('div');
  el.id = 'kcIndicator';
  el.addEventListener('click', function () {
    if (el.getAttribute('data-anomaly') !== '1') return;
    var toast = document.getElementById('kcStopToast');
    if (toast) toast.style.display = 'block';
    window.__kcReopenRequested = true;
  });
  layer.appendChild(el);
}
el.title = title;
el.textContent = symbol;
el.setAttribute('data-anomaly', anomaly ? '1' : '0');
el.style.cursor = anomaly ? 'pointer' : 'default';
"""

MARKERS_SCRIPT = """
var keys = arguments[0], selector = arguments[1], highlight = arguments[2], animate = arguments[3];
var marked = {};
keys.forEach(function (k) { marked[k] = true; });
document.querySelectorAll(selector).forEach(function (tr, i) {
  var key = tr.getAttribute('data-key') || tr.id || ('#' + i);
  var on = !!marked[key];
  tr.classList.toggle('kc-error-highlight', on && highlight);
  tr.classList.toggle('kc-anim', on && animate);
});
"""

REMOVE_SCRIPT = """
['kcStopToast', 'kcUiLayer', 'kcStyle'].forEach(function (id) {
  var el = document.getElementById(id);
  if (el && el.parentNode) el.parentNode.removeChild(el);
});
document.querySelectorAll('.kc-error-highlight, .kc-anim').forEach(function (tr) {
  tr.classList.remove('kc-error-highlight');
  tr.classList.remove('kc-anim');
});
"""


def indicator_symbol(status):
    """Indicator glyph: white off the view, yellow while waiting, red or green when active."""
    if status.screen_state is ScreenState.INACTIVE:
        return INDICATOR_IDLE
    if status.screen_state is ScreenState.WAITING:
        return INDICATOR_WAITING
    return INDICATOR_ALERT if status.has_active_anomaly else INDICATOR_OK


def banner_detail(status):
    """Text of the banner's detail line, e.g. "Active anomalies: 2 - Status"."""
    detail = f"Active anomalies: {status.count}"
    if status.source_label:
        detail += f" - {status.source_label}"
    return detail


class LoggingListener(MonitorListener):
    """Reports monitor state on the log (console and log file)."""

    def __init__(self):
        self._last = None

    def on_state_change(self, status):
        previous = self._last
        self._last = status
        if previous is None or previous.screen_state != status.screen_state:
            logger.info(f"Monitored view: {status.screen_state.value}")
        if status.has_active_anomaly:
            logger.info(f"{banner_detail(status)} (banner {'shown' if status.banner_visible else 'hidden'})")
        elif previous is not None and previous.has_active_anomaly:
            logger.info("Anomaly cleared")

    def on_alert_fire(self):
        detail = banner_detail(self._last) if self._last is not None else ""
        logger.warning(f"{BANNER_TITLE}! {BANNER_LINE}. {detail}")

    def on_markers_changed(self, row_keys):
        logger.debug(f"Marked rows: {list(row_keys)}")


class BrowserOverlay(MonitorListener):
    """
    Renders row highlights, the banner and the status indicator into the
    monitored page. Clicking the red indicator sets a page flag that the
    probes report through poll_banner_reopen().

    Args:
        driver: Selenium WebDriver
        settings (MonitorSettings): highlight_* and color_profile
    """

    def __init__(self, driver, settings, row_selector=None):
        self._driver = driver
        self.highlight = settings.highlight_enabled
        self.animate = settings.highlight_animate
        self.profile = COLOR_PROFILES.get(settings.color_profile, COLOR_PROFILES["classic"])
        self.row_selector = row_selector or SELECTORS["rows"][0]

    def _run(self, script, *args):
        try:
            return self._driver.execute_script(script, *args)
        except WebDriverException as e:
            logger.debug(f"Overlay update failed: {e}")
            return None

    def on_state_change(self, status):
        self._run(STYLE_SCRIPT, STYLE_CSS, self.profile)
        visible = status.has_active_anomaly and status.banner_visible
        self._run(BANNER_SCRIPT, visible, BANNER_TITLE, BANNER_LINE, banner_detail(status))
        self._run(INDICATOR_SCRIPT, indicator_symbol(status), status.has_active_anomaly, INDICATOR_TITLE)

    def on_markers_changed(self, row_keys):
        self._run(MARKERS_SCRIPT, list(row_keys), self.row_selector, self.highlight, self.animate)

    def remove(self):
        self._run(REMOVE_SCRIPT)


class EmailAlertListener(MonitorListener):
    """
    Sends one e-mail per fired alert.

    Args:
        smtp_server (str): SMTP host
        smtp_port (int): SMTP port (STARTTLS)
        sender_email (str): Login and From address
        sender_password (str): SMTP password
        receiver_emails (list of str): Recipients
        monitor_url (str, optional): Page being monitored, quoted in the mail
    """

    def __init__(self, smtp_server, smtp_port, sender_email, sender_password, receiver_emails, monitor_url=""):
        self.smtp_server = smtp_server
        self.smtp_port = smtp_port
        self.sender_email = sender_email
        self.sender_password = sender_password
        self.receiver_emails = list(receiver_emails)
        self.monitor_url = monitor_url
        self._last = None

    @classmethod
    def from_settings(cls, settings):
        return cls(
            settings.smtp_server, settings.smtp_port, settings.sender_email,
            settings.sender_password, settings.receiver_emails, settings.monitor_url,
        )

    def on_state_change(self, status):
        self._last = status

    def on_alert_fire(self):
        self.send(self._last)

    def build_message(self, status):
        detail = banner_detail(status) if status is not None else ""
        body = f"""Hello!

The monitor detected an anomaly. {BANNER_LINE}.

{detail}
"""
        if self.monitor_url:
            body += f"\nPage: {self.monitor_url}\n"
        body += """
---
This is an automated notification. Please do not reply to this email.
"""
        message = MIMEText(body, "plain")
        message["From"] = self.sender_email
        message["To"] = ", ".join(self.receiver_emails)
        message["Subject"] = f"{BANNER_TITLE}: {detail}" if detail else BANNER_TITLE
        return message

    def send(self, status):
        """
        Returns:
            bool: True if the e-mail was sent
        """
        if not self.sender_email or not self.sender_password or not self.receiver_emails:
            logger.error("Email credentials not configured. Set SENDER_EMAIL, SENDER_PASSWORD and RECEIVER_EMAILS.")
            return False

        message = self.build_message(status)
        try:
            with smtplib.SMTP(self.smtp_server, self.smtp_port) as server:
                server.starttls()
                server.login(self.sender_email, self.sender_password)
                server.send_message(message)
            logger.info(f"Alert e-mail sent to {', '.join(self.receiver_emails)}")
            return True
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error sending alert e-mail: {e}")
            return False
        except OSError as e:
            logger.error(f"Error sending alert e-mail: {e}")
            return False


class PlaysoundAudio(AlertAudio):
    """Plays the alert sound file without blocking the monitor loop."""

    def __init__(self, sound_path="beep.wav"):
        self.sound_path = Path(sound_path)

    def play(self):
        if not self.sound_path.exists():
            raise AudioUnavailable(f"Alert sound not found: {self.sound_path}")
        try:
            playsound(str(self.sound_path), block=False)
        except Exception as e:
            raise AudioUnavailable(f"Could not play {self.sound_path}: {e}") from e
        return True
