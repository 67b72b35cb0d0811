"""Tests for sysguard.alerts: sustained alerting, de-duplication and the ring."""

from __future__ import annotations

from datetime import timedelta

import pytest

from sysguard.alerts import AlertEngine, sustain_ticks
from sysguard.health import Thresholds
from sysguard.models import Severity
from tests.conftest import FakeClock, make_snapshot


@pytest.fixture
def engine(clock: FakeClock) -> AlertEngine:
    return AlertEngine(Thresholds(), clock=clock)


def feed(engine: AlertEngine, clock: FakeClock, count: int, **snapshot_fields) -> list:
    """Feed ``count`` identical snapshots 2 s apart; return all fired alerts."""
    fired = []
    for _ in range(count):
        fired.extend(engine.process_snapshot(make_snapshot(timestamp=clock(), **snapshot_fields)))
        clock.advance(2)
    return fired


# ═══════════════════════════════════════════════════════════════════════════
#  Sustain streaks
# ═══════════════════════════════════════════════════════════════════════════

class TestSustain:
    def test_four_high_cpu_snapshots_do_not_fire(self, engine, clock):
        assert feed(engine, clock, 4, cpu=95) == []
        assert len(engine) == 0

    def test_fifth_high_cpu_snapshot_fires_once(self, engine, clock):
        fired = feed(engine, clock, 5, cpu=95)
        assert len(fired) == 1
        assert fired[0].source == "CPU"
        assert fired[0].severity == Severity.CRITICAL
        assert "10s" in fired[0].message

    def test_streak_decays_instead_of_resetting(self, engine, clock):
        feed(engine, clock, 4, cpu=95)   # streak 4
        feed(engine, clock, 1, cpu=10)   # streak 3
        assert feed(engine, clock, 1, cpu=95) == []   # streak 4
        assert len(feed(engine, clock, 1, cpu=95)) == 1

    def test_streak_floors_at_zero(self, engine, clock):
        feed(engine, clock, 10, cpu=10)
        assert feed(engine, clock, 4, cpu=95) == []

    def test_streak_resets_after_firing(self, engine, clock):
        feed(engine, clock, 5, cpu=95)
        clock.advance(60)  # outside the de-duplication window
        assert feed(engine, clock, 4, cpu=95) == []
        assert len(feed(engine, clock, 1, cpu=95)) == 1

    def test_ram_fires_after_three(self, engine, clock):
        assert feed(engine, clock, 2, ram_percent=90) == []
        fired = feed(engine, clock, 1, ram_percent=90)
        assert [a.source for a in fired] == ["RAM"]

    def test_threshold_changes_apply_to_next_snapshot(self, engine, clock):
        engine.thresholds.cpu_percent = 50
        assert len(feed(engine, clock, 5, cpu=60)) == 1

    def test_custom_sustain_ticks(self, clock):
        engine = AlertEngine(Thresholds(), cpu_sustain_ticks=2, clock=clock)
        assert len(feed(engine, clock, 2, cpu=95)) == 1


class TestStatelessConditions:
    def test_low_disk_fires_immediately(self, engine, clock):
        fired = feed(engine, clock, 1, disk_free_gb=4.0)
        assert [(a.source, a.severity) for a in fired] == [("Disk", Severity.CRITICAL)]

    def test_unreadable_disk_does_not_fire(self, engine, clock):
        assert feed(engine, clock, 1, disk_total_gb=0, disk_free_gb=0) == []

    def test_no_adapters_fires_network_warning(self, engine, clock):
        fired = feed(engine, clock, 1, active_adapters=0)
        assert [(a.source, a.severity) for a in fired] == [("Network", Severity.WARNING)]

    def test_zero_traffic_fires_network_warning(self, engine, clock):
        fired = feed(engine, clock, 1, upload_bps=0, download_bps=0)
        assert [a.source for a in fired] == ["Network"]

    def test_unmeasured_traffic_does_not_fire(self, engine, clock):
        assert feed(engine, clock, 3, upload_bps=None, download_bps=None) == []
        assert len(engine) == 0

    def test_unmeasured_traffic_still_checks_adapters(self, engine, clock):
        fired = feed(engine, clock, 1, upload_bps=None, download_bps=None, active_adapters=0)
        assert [a.source for a in fired] == ["Network"]

    def test_explicit_limits_override_shared_thresholds(self, engine, clock):
        limits = engine.thresholds.values().model_copy(update={"disk_min_free_gb": 250.0})
        fired = engine.process_snapshot(make_snapshot(timestamp=clock()), limits)
        assert [a.source for a in fired] == ["Disk"]


# ═══════════════════════════════════════════════════════════════════════════
#  De-duplication and storage
# ═══════════════════════════════════════════════════════════════════════════

class TestDeduplication:
    def test_repeat_within_window_is_suppressed(self, engine, clock):
        assert engine.fire("CPU", "first", Severity.CRITICAL, "fix") is not None
        clock.advance(10)
        assert engine.fire("CPU", "second", Severity.CRITICAL, "fix") is None
        assert len(engine) == 1

    def test_repeat_after_window_is_kept(self, engine, clock):
        engine.fire("CPU", "first", Severity.CRITICAL, "fix")
        clock.advance(31)
        engine.fire("CPU", "second", Severity.CRITICAL, "fix")
        assert [a.message for a in engine.get_recent()] == ["second", "first"]

    def test_different_severity_is_not_a_duplicate(self, engine):
        engine.fire("CPU", "a", Severity.CRITICAL, "fix")
        engine.fire("CPU", "b", Severity.WARNING, "fix")
        assert len(engine) == 2

    def test_noisy_disk_reading_is_deduplicated(self, engine, clock):
        fired = feed(engine, clock, 5, disk_free_gb=4.0)
        assert len(fired) == 1

    def test_custom_window(self, clock):
        engine = AlertEngine(Thresholds(), dedup_window=timedelta(seconds=5), clock=clock)
        engine.fire("RAM", "a", Severity.CRITICAL, "fix")
        clock.advance(6)
        assert engine.fire("RAM", "b", Severity.CRITICAL, "fix") is not None


class TestRing:
    def test_capacity_keeps_newest_first(self, engine, clock):
        for i in range(205):
            engine.fire("CPU", f"alert {i}", Severity.CRITICAL, "fix")
            clock.advance(31)

        alerts = engine.get_recent()
        assert len(alerts) == 200
        assert alerts[0].message == "alert 204"
        assert alerts[-1].message == "alert 5"

    def test_get_recent_count(self, engine, clock):
        for i in range(3):
            engine.fire("CPU", f"alert {i}", Severity.CRITICAL, "fix")
            clock.advance(31)
        assert [a.message for a in engine.get_recent(2)] == ["alert 2", "alert 1"]
        assert engine.get_recent(0) == []

    def test_clear(self, engine):
        engine.fire("CPU", "a", Severity.CRITICAL, "fix")
        engine.clear()
        assert len(engine) == 0
        assert engine.fire("CPU", "again", Severity.CRITICAL, "fix") is not None

    def test_acknowledge(self, engine):
        engine.fire("CPU", "a", Severity.CRITICAL, "fix")
        engine.fire("RAM", "b", Severity.CRITICAL, "fix")

        alert = engine.acknowledge(1)

        assert alert.source == "CPU"
        assert alert.acknowledged
        assert engine.unacknowledged_count() == 1

    def test_acknowledge_replaces_stored_alert(self, engine):
        original = engine.fire("CPU", "a", Severity.CRITICAL, "fix")

        acked = engine.acknowledge(0)

        assert acked is not original
        assert original.acknowledged is False
        assert engine.get_recent()[0] is acked
        assert engine.get_recent()[0].acknowledged

    def test_acknowledge_does_not_touch_published_copy(self, engine):
        seen = []
        engine.alerts.subscribe(seen.append)
        engine.fire("CPU", "a", Severity.CRITICAL, "fix")

        engine.acknowledge(0)

        assert seen[0].acknowledged is False
        assert len(engine) == 1

    def test_acknowledge_out_of_range(self, engine):
        with pytest.raises(IndexError):
            engine.acknowledge(0)

    def test_subscribers_see_alerts_in_append_order(self, engine, clock):
        seen = []
        engine.alerts.subscribe(lambda a: seen.append(a.source))

        feed(engine, clock, 3, ram_percent=90, disk_free_gb=4.0)

        assert seen == ["Disk", "RAM"]
        assert [a.source for a in engine.get_recent()] == ["RAM", "Disk"]

    def test_failing_subscriber_does_not_block_storage(self, engine):
        def broken(alert):
            raise RuntimeError("boom")

        engine.alerts.subscribe(broken)
        assert engine.fire("CPU", "a", Severity.CRITICAL, "fix") is not None
        assert len(engine) == 1


class TestSustainTicks:
    @pytest.mark.parametrize("seconds,interval_ms,expected", [
        (10, 2000, 5),
        (6, 2000, 3),
        (10, 1000, 10),
        (10, 3000, 4),
        (1, 5000, 1),
    ])
    def test_conversion(self, seconds, interval_ms, expected):
        assert sustain_ticks(seconds, interval_ms) == expected
