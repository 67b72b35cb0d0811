"""Sustained-condition alerting with de-duplication."""
import logging
import math
import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Callable, Optional

from .events import EventHub
from .health import ThresholdValues, Thresholds
from .models import Alert, Severity, Snapshot

logger = logging.getLogger(__name__)

# Tick counts assume the default 2 s sampling interval (10 s of CPU, 6 s of RAM).
# Use sustain_ticks() to derive them for other intervals.
CPU_SUSTAIN_TICKS = 5
RAM_SUSTAIN_TICKS = 3
DEDUP_WINDOW = timedelta(seconds=30)
ALERT_CAPACITY = 200


def sustain_ticks(seconds: float, interval_ms: int) -> int:
    """Convert a sustain duration into a tick count for the given sampling interval."""
    if interval_ms <= 0:
        return 1
    return max(1, math.ceil(round(seconds * 1000 / interval_ms, 6)))


class AlertEngine:
    """
    Turns a stream of snapshots into de-duplicated alerts.

    CPU and RAM must stay at or above their thresholds for a number of
    consecutive snapshots before firing; the streak decays by one on each
    snapshot below threshold and resets after firing. Low disk space and
    missing network are checked on every snapshot.

    All state changes and alert publication happen under one lock, so
    subscribers see alerts in the order they were stored.
    """

    def __init__(
        self,
        thresholds: Thresholds,
        cpu_sustain_ticks: int = CPU_SUSTAIN_TICKS,
        ram_sustain_ticks: int = RAM_SUSTAIN_TICKS,
        dedup_window: timedelta = DEDUP_WINDOW,
        capacity: int = ALERT_CAPACITY,
        sample_interval_ms: int = 2000,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.thresholds = thresholds
        self.cpu_sustain_ticks = cpu_sustain_ticks
        self.ram_sustain_ticks = ram_sustain_ticks
        self.dedup_window = dedup_window
        self.sample_interval_ms = sample_interval_ms
        self.alerts: EventHub[Alert] = EventHub("alert")

        self._clock = clock
        self._lock = threading.RLock()
        self._alerts: deque[Alert] = deque(maxlen=capacity)
        self._cpu_streak = 0
        self._ram_streak = 0

    @property
    def capacity(self) -> int:
        return self._alerts.maxlen or 0

    def process_snapshot(self, snap: Snapshot, limits: Optional[ThresholdValues] = None) -> list[Alert]:
        """
        Feed one snapshot through the alert rules.

        Args:
            snap: Snapshot to check.
            limits: Thresholds to apply; defaults to the shared ones.

        Returns:
            Alerts fired (and not suppressed) for this snapshot.
        """
        if limits is None:
            limits = self.thresholds.values()
        fired: list[Alert] = []

        with self._lock:
            if snap.cpu_percent >= limits.cpu_percent:
                self._cpu_streak += 1
                if self._cpu_streak >= self.cpu_sustain_ticks:
                    seconds = self._cpu_streak * self.sample_interval_ms / 1000
                    fired.append(self.fire(
                        "CPU",
                        f"CPU above {limits.cpu_percent:g}% for {seconds:g}s ({snap.cpu_percent:.0f}%)",
                        Severity.CRITICAL,
                        "Close CPU-intensive processes.",
                    ))
                    self._cpu_streak = 0
            else:
                self._cpu_streak = max(0, self._cpu_streak - 1)

            if snap.ram_percent >= limits.ram_percent:
                self._ram_streak += 1
                if self._ram_streak >= self.ram_sustain_ticks:
                    fired.append(self.fire(
                        "RAM",
                        f"RAM at {snap.ram_percent:.0f}% ({snap.ram_used_mb} MB / {snap.ram_total_mb} MB)",
                        Severity.CRITICAL,
                        "Close memory-heavy apps or increase RAM.",
                    ))
                    self._ram_streak = 0
            else:
                self._ram_streak = max(0, self._ram_streak - 1)

            if snap.total_disk_gb > 0 and snap.free_disk_gb < limits.disk_min_free_gb:
                fired.append(self.fire(
                    "Disk",
                    f"Disk almost full: {snap.free_disk_gb:.1f} GB free of {snap.total_disk_gb:.0f} GB",
                    Severity.CRITICAL,
                    "Clean temp files or expand storage.",
                ))

            # Unmeasured throughput (None) says nothing about traffic
            no_traffic = snap.upload_bps == 0 and snap.download_bps == 0
            if snap.active_adapters == 0 or no_traffic:
                fired.append(self.fire(
                    "Network",
                    "No active network traffic detected.",
                    Severity.WARNING,
                    "Check network cable or Wi-Fi connection.",
                ))

        return [alert for alert in fired if alert is not None]

    def fire(self, source: str, message: str, severity: Severity, suggested_fix: str) -> Optional[Alert]:
        """
        Store and publish an alert unless one with the same source and
        severity was created within the de-duplication window.

        Returns:
            The new alert, or None if it was suppressed.
        """
        with self._lock:
            now = self._clock()
            cutoff = now - self.dedup_window
            for existing in self._alerts:
                if existing.source == source and existing.severity == severity and existing.created_at > cutoff:
                    logger.debug(f"Suppressed duplicate {severity.value} alert from {source}")
                    return None

            alert = Alert(
                source=source,
                message=message,
                severity=severity,
                suggested_fix=suggested_fix,
                created_at=now,
            )
            self._alerts.appendleft(alert)
            logger.warning(f"Alert [{severity.value}] {source}: {message}")
            self.alerts.publish(alert)
            return alert

    def get_recent(self, count: Optional[int] = None) -> list[Alert]:
        """Return up to ``count`` alerts, newest first."""
        with self._lock:
            alerts = list(self._alerts)
        if count is None:
            return alerts
        return alerts[:max(0, count)]

    def acknowledge(self, index: int) -> Alert:
        """Mark the alert at ``index`` (0 = newest) as acknowledged."""
        with self._lock:
            if not 0 <= index < len(self._alerts):
                raise IndexError(f"No alert at index {index}")
            alert = self._alerts[index].model_copy(update={"acknowledged": True})
            self._alerts[index] = alert
            return alert

    def unacknowledged_count(self) -> int:
        with self._lock:
            return sum(1 for alert in self._alerts if not alert.acknowledged)

    def clear(self) -> None:
        with self._lock:
            self._alerts.clear()
        logger.info("Alerts cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)
