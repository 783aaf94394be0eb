"""Tests for the GC pause ring."""

import gc

from runtime_metrics.collector.gc_stats import RING_SIZE, GCTracker, default_tracker, pause_index


def test_pause_index_matches_ring_policy():
    for count in range(0, 2000, 7):
        assert pause_index(count) == (count + 255) % 256
    assert pause_index(0) == 255
    assert pause_index(1) == 0
    assert pause_index(256) == 255
    assert pause_index(257) == 0


def test_pause_index_other_ring_sizes():
    for ring_size in (1, 4, 10):
        for count in range(50):
            assert pause_index(count, ring_size) == (count + ring_size - 1) % ring_size


def test_tracker_reports_latest_pause():
    tracker = GCTracker()
    assert tracker.snapshot().count == 0
    assert tracker.snapshot().pause_ns == 0

    for i in range(1, 600):
        tracker.record(i * 10)
        snap = tracker.snapshot()
        assert snap.count == i
        assert snap.pause_ns == i * 10


def test_tracker_ring_wraps():
    tracker = GCTracker(ring_size=4)
    for pause in (1, 2, 3, 4, 5):
        tracker.record(pause)
    # the fifth pause overwrote slot 0
    assert tracker._ring == [5, 2, 3, 4]
    assert tracker.snapshot().pause_ns == 5
    assert tracker.snapshot().pause_total_ns == 15


def test_tracker_callback_phases():
    tracker = GCTracker()
    tracker.callback("stop", {"collected": 3})  # stop without start is ignored
    assert tracker.snapshot().count == 0

    tracker.callback("start", {"generation": 0})
    tracker.callback("stop", {"generation": 0, "collected": 3, "uncollectable": 1})
    snap = tracker.snapshot()
    assert snap.count == 1
    assert snap.pause_ns >= 0
    assert snap.collected == 3
    assert snap.uncollectable == 1
    assert snap.last_ns > 0


def test_tracker_install_observes_collections():
    tracker = GCTracker()
    tracker.install()
    try:
        assert tracker.installed
        gc.collect()
        assert tracker.snapshot().count >= 1
    finally:
        tracker.uninstall()
    assert not tracker.installed
    assert tracker.callback not in gc.callbacks


def test_default_tracker_is_shared():
    assert default_tracker() is default_tracker()
    assert default_tracker().installed
    assert default_tracker().ring_size == RING_SIZE
