"""Tests for change-notification coalescing."""

import pytest

from monitoring.dirty import DirtyTracker
from monitoring.models import ChangeNotice


@pytest.fixture
def tracker(clock):
    calls = []
    t = DirtyTracker(clock.time, throttle_s=0.25, on_dirty=lambda: calls.append(clock.now))
    t.dirty_calls = calls
    return t


def test_starts_dirty_and_consume_clears(tracker):
    assert tracker.consume()
    assert not tracker.consume()


def test_change_sets_flag_and_invalidates(tracker, clock):
    tracker.consume()
    tracker.on_change(ChangeNotice(("row-1", "app--tableHuItems")))
    assert tracker.consume()
    assert tracker.dirty_calls == [clock.now]


def test_notifications_are_throttled(tracker, clock):
    tracker.on_change()
    clock.advance(0.1)
    tracker.on_change()
    assert len(tracker.dirty_calls) == 1

    clock.advance(0.2)
    tracker.on_change()
    assert len(tracker.dirty_calls) == 2


def test_own_ui_changes_are_ignored(tracker):
    tracker.consume()
    tracker.on_change(ChangeNotice(("kcStopToast",)))
    tracker.on_change(ChangeNotice(("inner", "kcUiLayer")))
    assert not tracker.consume()
    assert tracker.dirty_calls == []


def test_attach_and_detach(tracker, notifier):
    tracker.attach(notifier)
    tracker.attach(notifier)
    assert notifier.subscribes == 1
    assert tracker.attached

    notifier.emit(ChangeNotice(("row-1",)))
    assert tracker.dirty_calls

    tracker.pump()
    assert notifier.pumps == 1

    tracker.detach()
    tracker.detach()
    assert notifier.unsubscribes == 1
    assert not tracker.attached


def test_failing_unsubscribe_is_logged_not_raised(tracker, notifier, caplog):
    def fail():
        raise RuntimeError("observer gone")

    notifier.unsubscribe = fail
    tracker.attach(notifier)
    tracker.detach()
    assert not tracker.attached
    assert "unsubscribe failed" in caplog.text
