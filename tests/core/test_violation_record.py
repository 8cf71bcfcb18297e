from __future__ import annotations

from hrassessment.core import ViolationMonitor, ViolationRecord


def test_record_is_monotonic():
    record = ViolationRecord()

    record.update("focus_lost", 2)
    record.update("focus_lost", 1)
    record.update("copy", 1)

    assert record["focus_lost"] == 2
    assert record.total == 3
    assert record.exceeds(3)
    assert not record.exceeds(4)
    assert record.as_dict() == {"focus_lost": 2, "copy": 1}


def test_monitor_forwards_cumulative_counts():
    received: list[tuple[str, int]] = []
    monitor = ViolationMonitor(lambda kind, count: received.append((kind, count)))

    monitor.record("focus_lost")
    monitor.record("tab_switch")
    monitor.record("focus_lost")

    assert received == [("focus_lost", 1), ("tab_switch", 1), ("focus_lost", 2)]
    assert monitor.counts() == {"focus_lost": 2, "tab_switch": 1}
