"""
Tests for the browser-backed probes against a fake WebDriver serving a
static page.
"""

import pytest
from selenium.common.exceptions import WebDriverException

from monitoring.errors import ProbeUnavailable
from monitoring.models import ChangeNotice, PaginationProgress, ScreenState
from monitoring.scraper import (
    DISMISSED_SCRIPT,
    GROWING_SCRIPT,
    MESSAGES_SCRIPT,
    OBSERVER_DISCONNECT_SCRIPT,
    OBSERVER_DRAIN_SCRIPT,
    REOPEN_SCRIPT,
    BrowserLoadMore,
    BrowserProbeProvider,
    PageChangeNotifier,
    parse_trigger_info,
)

PAGE = """
<html><body>
<div id="app--pageHuControl">
  <span id="app--titleTableHuControl-inner">Handling unit: 123456 (1234567890)</span>
  <table id="app--tableHuItems">
    <tr class="sapMListTblRow" id="row-1">
      <td><span id="app--objectNumberQuanToCount-0"><span class="sapMObjectNumberText">-0,15</span></span></td>
      <td><span class="sapMObjStatusText">OK</span></td>
    </tr>
    <tr class="sapMListTblRow" data-key="item-2">
      <td><span id="app--objectNumberQuanToCount-1"><span class="sapMObjectNumberText">1.234,56</span></span></td>
      <td><span class="sapMObjStatusText">Mengendifferenz
          vorhanden</span></td>
    </tr>
  </table>
  <div id="app--tableHuItems-trigger"><span id="app--tableHuItems-triggerInfo">[ 20 / 57 ]</span></div>
</div>
</body></html>
"""


class FakeElement:
    def __init__(self):
        self.clicks = 0

    def click(self):
        self.clicks += 1


class FakeDriver:
    def __init__(self, html=PAGE):
        self.html = html
        self.source_reads = 0
        self.fail = False
        self.scripts = []
        self.results = {}
        self.elements = {}

    @property
    def page_source(self):
        self.source_reads += 1
        if self.fail:
            raise WebDriverException("browser gone")
        return self.html

    def execute_script(self, script, *args):
        self.scripts.append(script)
        if self.fail:
            raise WebDriverException("browser gone")
        result = self.results.get(script)
        return result(*args) if callable(result) else result

    def find_elements(self, by, selector):
        return self.elements.get(selector, [])


@pytest.fixture
def driver():
    return FakeDriver()


@pytest.fixture
def provider(driver, clock):
    return BrowserProbeProvider(driver, snapshot_ttl_s=0.1, clock=clock.time)


def test_active_screen_and_view_id(provider):
    assert provider.classify_screen() is ScreenState.ACTIVE
    assert provider.read_view_id() == "123456(1234567890)"


def test_waiting_and_inactive_screens(clock):
    waiting = FakeDriver(PAGE.replace("Handling unit: 123456 (1234567890)", "Scan a handling unit"))
    assert BrowserProbeProvider(waiting, clock=clock.time).classify_screen() is ScreenState.WAITING

    inactive = FakeDriver("<html><body><p>Launchpad</p></body></html>")
    assert BrowserProbeProvider(inactive, clock=clock.time).classify_screen() is ScreenState.INACTIVE


def test_rows_and_fields(provider):
    rows = provider.enumerate_rows()
    assert len(rows) == 2
    assert provider.read_numeric_field(rows[0]) == "-0,15"
    assert provider.read_numeric_field(rows[1]) == "1.234,56"
    assert provider.read_status_field(rows[1]).split() == ["Mengendifferenz", "vorhanden"]
    assert provider.read_row_key(rows[0]) == "row-1"
    assert provider.read_row_key(rows[1]) == "item-2"


def test_pagination_progress(provider):
    assert provider.read_pagination_progress() == PaginationProgress(loaded=20, total=57)


def test_no_trigger_means_no_progress(clock):
    html = PAGE.replace('id="app--tableHuItems-trigger"', 'id="other"')
    assert BrowserProbeProvider(FakeDriver(html), clock=clock.time).read_pagination_progress() is None


@pytest.mark.parametrize("text, expected", [
    ("[20 / 57]", PaginationProgress(20, 57)),
    ("More [ 57 / 57 ]", PaginationProgress(57, 57)),
    ("[0 / 0]", None),
    ("More", None),
    ("", None),
])
def test_parse_trigger_info(text, expected):
    assert parse_trigger_info(text) == expected


def test_snapshot_is_reused_within_ttl(provider, driver, clock):
    provider.classify_screen()
    provider.enumerate_rows()
    assert driver.source_reads == 1

    clock.advance(0.2)
    provider.enumerate_rows()
    assert driver.source_reads == 2

    provider.invalidate()
    provider.enumerate_rows()
    assert driver.source_reads == 3


def test_page_source_failure_is_probe_unavailable(provider, driver):
    driver.fail = True
    with pytest.raises(ProbeUnavailable):
        provider.classify_screen()


def test_authoritative_channel(provider, driver):
    driver.results[MESSAGES_SCRIPT] = [
        {"id": "/msg/2", "message": "Mengendifferenz vorhanden", "description": ""},
        {"id": "", "code": "E01", "message": "Quantity difference", "description": "bin 4"},
        {"id": "/msg/3", "message": "Saved", "description": ""},
        "garbage",
    ]
    state = provider.read_authoritative_channel()
    assert state.active
    assert state.signature == "/msg/2||E01"


def test_authoritative_channel_unavailable(provider, driver):
    driver.results[MESSAGES_SCRIPT] = None
    assert provider.read_authoritative_channel() is None

    driver.results[MESSAGES_SCRIPT] = []
    state = provider.read_authoritative_channel()
    assert not state.active

    driver.fail = True
    with pytest.raises(ProbeUnavailable):
        provider.read_authoritative_channel()


def test_banner_dismissal_poll(provider, driver):
    driver.results[DISMISSED_SCRIPT] = True
    assert provider.poll_banner_dismissed()


def test_banner_reopen_poll(provider, driver):
    assert not provider.poll_banner_reopen()
    driver.results[REOPEN_SCRIPT] = True
    assert provider.poll_banner_reopen()

    driver.fail = True
    with pytest.raises(ProbeUnavailable):
        provider.poll_banner_reopen()


def test_load_more_uses_growing_api_first(driver, provider):
    driver.results[GROWING_SCRIPT] = True
    trigger = FakeElement()
    driver.elements['[id$="--tableHuItems-trigger"]'] = [trigger]

    provider.snapshot()
    assert BrowserLoadMore(driver, provider).invoke()
    assert trigger.clicks == 0
    # The next probe reads a fresh page
    provider.snapshot()
    assert driver.source_reads == 2


def test_load_more_falls_back_to_click(driver):
    driver.results[GROWING_SCRIPT] = False
    trigger = FakeElement()
    driver.elements['[id$="--tableHuItems-triggerList"]'] = [trigger]

    assert BrowserLoadMore(driver).invoke()
    assert trigger.clicks == 1


def test_load_more_unavailable(driver):
    assert not BrowserLoadMore(driver).invoke()
    driver.fail = True
    assert not BrowserLoadMore(driver).invoke()


def test_page_change_notifier(driver):
    driver.results[OBSERVER_DRAIN_SCRIPT] = [["row-1", "app--tableHuItems"], ["kcStopToast"], None]
    notices = []
    notifier = PageChangeNotifier(driver)

    notifier.pump()
    assert notices == []

    notifier.subscribe(notices.append)
    notifier.pump()
    assert notices == [
        ChangeNotice(("row-1", "app--tableHuItems")),
        ChangeNotice(("kcStopToast",)),
        ChangeNotice(()),
    ]

    notifier.unsubscribe()
    notifier.unsubscribe()
    assert driver.scripts.count(OBSERVER_DISCONNECT_SCRIPT) == 1


def test_page_change_notifier_survives_driver_errors(driver):
    notifier = PageChangeNotifier(driver)
    notifier.subscribe(lambda notice: None)
    driver.fail = True
    notifier.pump()
    notifier.unsubscribe()
