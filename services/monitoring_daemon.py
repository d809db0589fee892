"""
Monitoring Daemon

Opens the monitored page in Chrome and runs the table anomaly monitor on it
until SIGINT/SIGTERM.
"""

import logging
import signal
import sys

from selenium.common.exceptions import WebDriverException

from config.settings import MonitorSettings
from monitoring.monitor import MonitorEngine
from monitoring.notifier import BrowserOverlay, EmailAlertListener, LoggingListener, PlaysoundAudio
from monitoring.ports import CompositeListener, SilentAudio
from monitoring.scraper import BrowserLoadMore, BrowserProbeProvider, PageChangeNotifier, get_driver
from monitoring.timers import TimerLoop
from utils.text_matcher import TextMatcher

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE = "monitoring_daemon.log"

logger = logging.getLogger(__name__)


def setup_logging(debug=False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.FileHandler(LOG_FILE), logging.StreamHandler()],
    )
    # Selenium and urllib3 are very chatty at debug level
    logging.getLogger("selenium").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_engine(settings, driver, loop=None):
    """
    Wire the browser collaborators into a monitor engine.

    Args:
        settings (MonitorSettings): Validated settings
        driver: Selenium WebDriver showing the monitored page
        loop (TimerLoop, optional): Timer owner

    Returns:
        tuple: (MonitorEngine, BrowserOverlay)
    """
    probes = BrowserProbeProvider(
        driver,
        matcher=TextMatcher(settings.anomaly_patterns),
        snapshot_ttl_s=settings.page_snapshot_ttl_ms / 1000.0,
    )
    overlay = BrowserOverlay(driver, settings)

    listener = CompositeListener([LoggingListener(), overlay])
    if settings.alert_email_enabled:
        listener.add(EmailAlertListener.from_settings(settings))

    if settings.sound_enabled:
        audio = PlaysoundAudio(settings.alert_sound_path)
    else:
        audio = SilentAudio()

    engine = MonitorEngine(
        settings,
        probes,
        loop=loop,
        corrective_action=BrowserLoadMore(driver, probes),
        notifier=PageChangeNotifier(driver),
        audio=audio,
        listener=listener,
    )
    return engine, overlay


def run_daemon(settings, driver_factory=get_driver):
    """
    Run the monitor until a shutdown signal arrives.

    Args:
        settings (MonitorSettings): Validated settings
        driver_factory (callable): Returns a WebDriver, called with headless=...

    Returns:
        int: Process exit code
    """
    logger.info("Starting Monitoring Daemon")
    logger.info("Press Ctrl+C to stop")

    driver = driver_factory(headless=settings.headless)
    loop = TimerLoop()
    engine = None
    overlay = None
    shutdown_requested = False

    def signal_handler(signum, frame):
        """Handle shutdown signals gracefully."""
        nonlocal shutdown_requested
        logger.info("Received shutdown signal. Stopping gracefully...")
        shutdown_requested = True
        loop.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        if settings.monitor_url:
            logger.info(f"Opening {settings.monitor_url}")
            driver.get(settings.monitor_url)
        else:
            logger.info("No MONITOR_URL set, watching whatever page the browser shows")

        engine, overlay = build_engine(settings, driver, loop=loop)
        if not shutdown_requested:
            engine.run_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        if engine is not None:
            engine.teardown("shutdown")
        if overlay is not None:
            overlay.remove()
        try:
            driver.quit()
        except WebDriverException as e:
            logger.warning(f"Error closing browser: {e}")
        logger.info("Monitoring Daemon stopped")
    return 0


def main():
    setup_logging()
    try:
        settings = MonitorSettings.from_env().validate()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    return run_daemon(settings)


if __name__ == "__main__":
    sys.exit(main())
