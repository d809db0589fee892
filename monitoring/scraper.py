"""
Browser Probes

Selenium WebDriver setup plus the browser-backed collaborators of the
monitor engine:

- BrowserProbeProvider: snapshots the page source and reads it locally with
  BeautifulSoup, trying a ranked list of selectors per probe.
- BrowserLoadMore: triggers the table's growing ("More") feature.
- PageChangeNotifier: a MutationObserver injected into the page whose queue
  is drained once per tick.
"""

import logging
import re
import time

from bs4 import BeautifulSoup
from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from webdriver_manager.chrome import ChromeDriverManager

from monitoring.errors import ProbeUnavailable
from monitoring.models import AuthoritativeState, ChangeNotice, PaginationProgress, ScreenState
from monitoring.ports import ChangeNotifier, CorrectiveAction, ProbeProvider
from utils.text_matcher import TextMatcher, normalize_text

logger = logging.getLogger(__name__)

# Ranked selector lists: the first selector that matches wins.
SELECTORS = {
    "page": ['[id$="--pageHuControl"]'],
    "title": ['[id$="--titleTableHuControl-inner"]', '[id$="--titleTableHuControl"]'],
    "table": ['[id$="--tableHuItems"]', '[id*="--tableHuItems"]'],
    "rows": ['tr.sapMListTblRow'],
    "quantity": ['[id*="--objectNumberQuanToCount"] .sapMObjectNumberText'],
    "status": ['.sapMObjStatusText'],
    "trigger": ['[id$="--tableHuItems-trigger"]', '[id$="--tableHuItems-triggerList"]'],
    "trigger_info": ['[id$="--tableHuItems-triggerInfo"]'],
}

# "Handling unit: 123456 (1234567890)"
ACTIVE_TITLE_PATTERN = re.compile(r":\s*\d+\s*\(\s*\d+\s*\)")
VIEW_ID_PATTERN = re.compile(r":\s*(\d{6,})\s*\(\s*(\d{10,})\s*\)")
VIEW_ID_SHORT_PATTERN = re.compile(r"\b(\d{6,})\b")
# "[20 / 57]"
TRIGGER_INFO_PATTERN = re.compile(r"\[\s*(\d+)\s*/\s*(\d+)\s*\]")

MESSAGES_SCRIPT = """
try {
  var core = window.sap && sap.ui && sap.ui.getCore && sap.ui.getCore();
  if (!core || !core.getMessageManager) return null;
  var data = core.getMessageManager().getMessageModel().getData();
  if (!Array.isArray(data)) return null;
  return data.map(function (m) {
    return {id: m.id || '', code: m.code || '', message: m.message || '',
            text: m.text || '', description: m.description || ''};
  });
} catch (e) {
  return null;
}
"""

ACTIVITY_SCRIPT = """
var w = window;
if (!w.__kcActivity) {
  w.__kcActivity = {count: 0};
  ['keydown', 'mousedown', 'touchstart', 'wheel'].forEach(function (t) {
    w.addEventListener(t, function () { w.__kcActivity.count++; }, true);
  });
  return 0;
}
var n = w.__kcActivity.count;
w.__kcActivity.count = 0;
return n;
"""

DISMISSED_SCRIPT = """
var d = !!window.__kcBannerDismissed;
window.__kcBannerDismissed = false;
return d;
"""

REOPEN_SCRIPT = """
var r = !!window.__kcReopenRequested;
window.__kcReopenRequested = false;
return r;
"""

GROWING_SCRIPT = """
var core = window.sap && sap.ui && sap.ui.getCore && sap.ui.getCore();
if (!core || !core.byId) return false;
var selectors = arguments[0];
for (var i = 0; i < selectors.length; i++) {
  var el = document.querySelector(selectors[i]);
  if (!el || !el.id) continue;
  var ctrl = core.byId(el.id);
  if (!ctrl) continue;
  try {
    if (typeof ctrl.triggerGrowing === 'function') { ctrl.triggerGrowing(); return true; }
    if (typeof ctrl._triggerGrowing === 'function') { ctrl._triggerGrowing(); return true; }
    var gd = ctrl._oGrowingDelegate;
    if (gd && typeof gd.requestNewPage === 'function') { gd.requestNewPage(); return true; }
  } catch (e) {
    return false;
  }
}
return false;
"""

OBSERVER_INSTALL_SCRIPT = """
var selectors = arguments[0];
var target = null;
for (var i = 0; i < selectors.length && !target; i++) target = document.querySelector(selectors[i]);
var st = window.__kcObserver;
if (!target) {
  if (st) { st.obs.disconnect(); window.__kcObserver = null; }
  return false;
}
if (st && st.target === target) return true;
if (st) st.obs.disconnect();
var queue = [];
var obs = new MutationObserver(function (mutations) {
  for (var j = 0; j < mutations.length; j++) {
    var ids = [];
    var n = mutations[j].target;
    while (n && ids.length < 12) { if (n.id) ids.push(n.id); n = n.parentNode; }
    if (queue.length < 50) queue.push(ids);
  }
});
obs.observe(target, {childList: true, subtree: true});
window.__kcObserver = {obs: obs, target: target, queue: queue};
return true;
"""

OBSERVER_DRAIN_SCRIPT = """
var st = window.__kcObserver;
if (!st) return [];
return st.queue.splice(0, st.queue.length);
"""

OBSERVER_DISCONNECT_SCRIPT = """
var st = window.__kcObserver;
if (st) { st.obs.disconnect(); window.__kcObserver = null; }
return true;
"""


def get_driver(headless=True):
    """
    Get a configured Chrome driver.
    """
    chrome_options = Options()
    chrome_options.add_argument("--no-sandbox")
    chrome_options.add_argument("--disable-dev-shm-usage")
    chrome_options.add_argument("--window-size=1920,1080")
    if headless:
        chrome_options.add_argument("--headless=new")

    return webdriver.Chrome(
        service=Service(ChromeDriverManager().install()), options=chrome_options
    )


def find_first(root, selectors):
    for selector in selectors:
        element = root.select_one(selector)
        if element is not None:
            return element
    return None


def parse_trigger_info(text):
    """
    Parse the growing trigger's "[loaded / total]" text.

    Returns:
        PaginationProgress or None: None if the text does not hold a valid pair
    """
    match = TRIGGER_INFO_PATTERN.search(normalize_text(text))
    if not match:
        return None
    loaded, total = int(match.group(1)), int(match.group(2))
    if loaded < 0 or total <= 0:
        return None
    return PaginationProgress(loaded=loaded, total=total)


class BrowserProbeProvider(ProbeProvider):
    """
    Reads the monitored page through a WebDriver.

    The page source is fetched at most once per `snapshot_ttl_s` and parsed
    locally, so one tick costs a single round trip to the browser.

    Args:
        driver: Selenium WebDriver
        matcher (TextMatcher, optional): Anomaly text matcher for the message list
        snapshot_ttl_s (float): Lifetime of a page snapshot
        clock (callable): Seconds, monotonic
        selectors (dict, optional): Override of SELECTORS
    """

    def __init__(self, driver, matcher=None, snapshot_ttl_s=0.1, clock=time.monotonic, selectors=None):
        self._driver = driver
        self.matcher = matcher or TextMatcher()
        self.snapshot_ttl_s = snapshot_ttl_s
        self._clock = clock
        self.selectors = dict(SELECTORS, **(selectors or {}))
        self._soup = None
        self._soup_at = None

    def invalidate(self):
        self._soup = None
        self._soup_at = None

    def snapshot(self):
        now = self._clock()
        if self._soup is not None and now - self._soup_at < self.snapshot_ttl_s:
            return self._soup
        try:
            html = self._driver.page_source
        except WebDriverException as e:
            raise ProbeUnavailable(f"Page source unavailable: {e}") from e
        self._soup = BeautifulSoup(html or "", "html.parser")
        self._soup_at = now
        return self._soup

    def _title_text(self, soup):
        title = find_first(soup, self.selectors["title"])
        return normalize_text(title.get_text(" ")) if title is not None else ""

    def classify_screen(self):
        soup = self.snapshot()
        page = find_first(soup, self.selectors["page"])
        title = find_first(soup, self.selectors["title"])
        if page is None or title is None:
            return ScreenState.INACTIVE
        if ACTIVE_TITLE_PATTERN.search(self._title_text(soup)):
            return ScreenState.ACTIVE
        return ScreenState.WAITING

    def read_view_id(self):
        text = self._title_text(self.snapshot())
        if not text:
            return ""
        match = VIEW_ID_PATTERN.search(text)
        if match:
            return f"{match.group(1)}({match.group(2)})"
        match = VIEW_ID_SHORT_PATTERN.search(text)
        return match.group(1) if match else ""

    def enumerate_rows(self):
        soup = self.snapshot()
        root = find_first(soup, self.selectors["table"]) or soup
        for selector in self.selectors["rows"]:
            rows = root.select(selector)
            if rows:
                return rows
        return []

    def read_numeric_field(self, row):
        element = find_first(row, self.selectors["quantity"])
        return element.get_text() if element is not None else None

    def read_status_field(self, row):
        element = find_first(row, self.selectors["status"])
        return element.get_text(" ") if element is not None else None

    def read_row_key(self, row):
        return row.get("data-key") or row.get("id") or None

    def read_authoritative_channel(self):
        try:
            messages = self._driver.execute_script(MESSAGES_SCRIPT)
        except WebDriverException as e:
            raise ProbeUnavailable(f"Message list unavailable: {e}") from e
        if messages is None:
            return None

        hits = []
        for message in messages:
            if not isinstance(message, dict):
                continue
            text = normalize_text(
                f"{message.get('message') or message.get('text') or ''} {message.get('description') or ''}"
            )
            if not text or not self.matcher.matches(text):
                continue
            hits.append(normalize_text(message.get("id") or message.get("code") or "") or text)

        hits.sort()
        return AuthoritativeState(active=bool(hits), signature="||".join(hits))

    def read_pagination_progress(self):
        soup = self.snapshot()
        if find_first(soup, self.selectors["trigger"]) is None:
            return None
        info = find_first(soup, self.selectors["trigger_info"])
        if info is None:
            return None
        return parse_trigger_info(info.get_text(" "))

    def poll_user_activity(self):
        try:
            return bool(self._driver.execute_script(ACTIVITY_SCRIPT))
        except WebDriverException as e:
            raise ProbeUnavailable(f"User activity unavailable: {e}") from e

    def poll_banner_dismissed(self):
        try:
            return bool(self._driver.execute_script(DISMISSED_SCRIPT))
        except WebDriverException as e:
            raise ProbeUnavailable(f"Banner state unavailable: {e}") from e

    def poll_banner_reopen(self):
        try:
            return bool(self._driver.execute_script(REOPEN_SCRIPT))
        except WebDriverException as e:
            raise ProbeUnavailable(f"Indicator state unavailable: {e}") from e


class BrowserLoadMore(CorrectiveAction):
    """
    Triggers one growing step of the table.

    Strategies are tried in order: the UI5 control's growing API, then a
    plain click on the trigger element.
    """

    def __init__(self, driver, probes=None, selectors=None):
        self._driver = driver
        self._probes = probes
        self.selectors = dict(SELECTORS, **(selectors or {}))
        self.strategies = [self._trigger_growing, self._click_trigger]

    def invoke(self):
        for strategy in self.strategies:
            try:
                if strategy():
                    if self._probes is not None:
                        self._probes.invalidate()
                    return True
            except WebDriverException as e:
                logger.debug(f"Load-more strategy {strategy.__name__} failed: {e}")
        logger.debug("No load-more strategy could be applied")
        return False

    def _trigger_growing(self):
        return bool(self._driver.execute_script(GROWING_SCRIPT, self.selectors["table"]))

    def _click_trigger(self):
        for selector in self.selectors["trigger"]:
            elements = self._driver.find_elements(By.CSS_SELECTOR, selector)
            if elements:
                elements[0].click()
                return True
        return False


class PageChangeNotifier(ChangeNotifier):
    """
    Pull-based change notifications from a MutationObserver on the table.

    The observer is (re)installed on every pump so a re-rendered table is
    picked up again.
    """

    def __init__(self, driver, selectors=None):
        self._driver = driver
        self.selectors = dict(SELECTORS, **(selectors or {}))
        self._callback = None

    def subscribe(self, callback):
        self._callback = callback

    def unsubscribe(self):
        if self._callback is None:
            return
        self._callback = None
        try:
            self._driver.execute_script(OBSERVER_DISCONNECT_SCRIPT)
        except WebDriverException as e:
            logger.debug(f"Could not disconnect page observer: {e}")

    def pump(self):
        callback = self._callback
        if callback is None:
            return
        try:
            self._driver.execute_script(OBSERVER_INSTALL_SCRIPT, self.selectors["table"])
            queued = self._driver.execute_script(OBSERVER_DRAIN_SCRIPT) or []
        except WebDriverException as e:
            logger.debug(f"Page observer unavailable: {e}")
            return
        for source_ids in queued:
            callback(ChangeNotice(source_ids=tuple(source_ids or ())))
