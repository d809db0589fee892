"""
Shared fakes for the monitor tests.

Nothing here needs a browser: the engine is driven with a fake clock and
stub collaborators.
"""

from dataclasses import replace

import pytest

from config.settings import MonitorSettings
from monitoring.errors import AudioUnavailable, ProbeUnavailable
from monitoring.models import PaginationProgress, ScreenState
from monitoring.ports import AlertAudio, ChangeNotifier, CorrectiveAction, MonitorListener, ProbeProvider
from monitoring.timers import TimerLoop


class FakeClock:
    """Virtual monotonic clock; sleep() advances it instantly."""

    def __init__(self, start=1000.0):
        self.now = start

    def time(self):
        return self.now

    def sleep(self, seconds):
        self.now += max(0.0, seconds)

    def advance(self, seconds):
        self.now += seconds


def make_row(key, qty="1", status=""):
    return {"key": key, "qty": qty, "status": status}


class StubProbes(ProbeProvider):
    """
    Probe provider over plain dicts. Row handles are the dicts themselves:
    {"key": ..., "qty": ..., "status": ...}.
    """

    def __init__(self, screen=ScreenState.ACTIVE, rows=None):
        self.screen = screen
        self.rows = list(rows or [])
        self.authoritative = None
        self.progress = None
        self.view_id = "HU-1"
        self.activity = False
        self.dismissed = False
        self.reopen = False
        self.fail_screen = False
        self.fail_rows = False
        self.enumerate_calls = 0
        self.numeric_reads = 0

    def classify_screen(self):
        if self.fail_screen:
            raise ProbeUnavailable("screen gone")
        return self.screen

    def enumerate_rows(self):
        self.enumerate_calls += 1
        if self.fail_rows:
            raise ProbeUnavailable("table gone")
        return list(self.rows)

    def read_numeric_field(self, row):
        self.numeric_reads += 1
        return row.get("qty")

    def read_status_field(self, row):
        return row.get("status")

    def read_row_key(self, row):
        return row.get("key")

    def read_authoritative_channel(self):
        return self.authoritative

    def read_pagination_progress(self):
        return self.progress

    def read_view_id(self):
        return self.view_id

    def poll_user_activity(self):
        active, self.activity = self.activity, False
        return active

    def poll_banner_dismissed(self):
        dismissed, self.dismissed = self.dismissed, False
        return dismissed

    def poll_banner_reopen(self):
        reopen, self.reopen = self.reopen, False
        return reopen


class StubAction(CorrectiveAction):
    """
    "Load more" that appends `grow` rows to the probes per call and updates
    the loaded count of their pagination progress.
    """

    def __init__(self, probes, grow=0, available=True, on_invoke=None):
        self.probes = probes
        self.grow = grow
        self.available = available
        self.on_invoke = on_invoke
        self.calls = 0

    def invoke(self):
        self.calls += 1
        if not self.available:
            return False
        for _ in range(self.grow):
            self.probes.rows.append(make_row(f"g{len(self.probes.rows)}"))
        progress = self.probes.progress
        if progress is not None:
            self.probes.progress = replace(progress, loaded=min(len(self.probes.rows), progress.total))
        if self.on_invoke is not None:
            self.on_invoke()
        return True


class StubNotifier(ChangeNotifier):
    def __init__(self):
        self.callback = None
        self.subscribes = 0
        self.unsubscribes = 0
        self.pumps = 0

    def subscribe(self, callback):
        self.subscribes += 1
        self.callback = callback

    def unsubscribe(self):
        self.unsubscribes += 1
        self.callback = None

    def pump(self):
        self.pumps += 1

    def emit(self, notice=None):
        if self.callback is not None:
            self.callback(notice)


class RecordingListener(MonitorListener):
    def __init__(self):
        self.states = []
        self.fires = 0
        self.markers = []

    @property
    def last(self):
        return self.states[-1] if self.states else None

    def on_state_change(self, status):
        self.states.append(status)

    def on_alert_fire(self):
        self.fires += 1

    def on_markers_changed(self, row_keys):
        self.markers.append(tuple(row_keys))


class RecordingAudio(AlertAudio):
    def __init__(self, result=True, unavailable=False):
        self.result = result
        self.unavailable = unavailable
        self.plays = 0

    def play(self):
        self.plays += 1
        if self.unavailable:
            raise AudioUnavailable("audio locked")
        return self.result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def loop(clock):
    return TimerLoop(clock=clock.time, sleep=clock.sleep)


@pytest.fixture
def settings():
    return MonitorSettings()


@pytest.fixture
def probes():
    return StubProbes()


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def audio():
    return RecordingAudio()


@pytest.fixture
def notifier():
    return StubNotifier()


@pytest.fixture
def paginated_probes():
    """ACTIVE view with 10 of 57 rows loaded."""
    p = StubProbes(rows=[make_row(f"r{i}") for i in range(10)])
    p.progress = PaginationProgress(loaded=10, total=57)
    return p
