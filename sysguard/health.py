"""Threshold-based health evaluation."""
import threading
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .models import HealthReport, HealthStatus, Issue, Severity, Snapshot

# Fraction of a threshold at which CPU and RAM start reporting a warning
APPROACH_RATIO = 0.85

CRITICAL_PENALTY = 25
WARNING_PENALTY = 10
HEALTHY_MIN_SCORE = 80
WARNING_MIN_SCORE = 50

SUGGESTED_FIXES = {
    "CPU": "Check top CPU-consuming processes and close unnecessary apps.",
    "RAM": "Close memory-heavy applications or increase system RAM.",
    "Disk I/O": "Reduce disk-intensive operations or check for disk errors.",
    "Disk Space": "Clear temp files, uninstall unused apps, or expand storage.",
}
GENERIC_FIX = "Investigate the issue source."


def suggested_fix(source: str) -> str:
    return SUGGESTED_FIXES.get(source, GENERIC_FIX)


class ThresholdValues(BaseModel):
    """Immutable copy of the thresholds used for one evaluation."""
    model_config = ConfigDict(frozen=True)

    cpu_percent: float = 85.0
    ram_percent: float = 80.0
    disk_active_percent: float = 90.0
    disk_min_free_gb: float = 10.0


class Thresholds:
    """
    Shared, runtime-adjustable thresholds.

    Each value can be set independently from any thread (last write wins).
    Readers take a consistent copy with ``values()``. Values are not
    validated here; callers are responsible for sensible settings.
    """

    def __init__(self, values: Optional[ThresholdValues] = None):
        self._values = values or ThresholdValues()
        self._lock = threading.Lock()

    def values(self) -> ThresholdValues:
        with self._lock:
            return self._values

    def update(self, **changes: float) -> ThresholdValues:
        """Set any subset of threshold fields at once."""
        unknown = set(changes) - set(ThresholdValues.model_fields)
        if unknown:
            raise AttributeError(f"Unknown threshold(s): {', '.join(sorted(unknown))}")
        with self._lock:
            self._values = self._values.model_copy(update=changes)
            return self._values

    @property
    def cpu_percent(self) -> float:
        return self.values().cpu_percent

    @cpu_percent.setter
    def cpu_percent(self, value: float) -> None:
        self.update(cpu_percent=value)

    @property
    def ram_percent(self) -> float:
        return self.values().ram_percent

    @ram_percent.setter
    def ram_percent(self, value: float) -> None:
        self.update(ram_percent=value)

    @property
    def disk_active_percent(self) -> float:
        return self.values().disk_active_percent

    @disk_active_percent.setter
    def disk_active_percent(self, value: float) -> None:
        self.update(disk_active_percent=value)

    @property
    def disk_min_free_gb(self) -> float:
        return self.values().disk_min_free_gb

    @disk_min_free_gb.setter
    def disk_min_free_gb(self, value: float) -> None:
        self.update(disk_min_free_gb=value)


class HealthEvaluator:
    """
    Maps a snapshot and the current thresholds to a HealthReport.

    Holds no state between calls besides the reference to the shared
    thresholds, so it is safe to call from several threads.
    """

    def __init__(self, thresholds: Optional[Thresholds] = None):
        self.thresholds = thresholds or Thresholds()

    def evaluate(self, snapshot: Snapshot, thresholds: Optional[ThresholdValues] = None) -> HealthReport:
        """
        Evaluate one snapshot.

        Args:
            snapshot: Snapshot to evaluate.
            thresholds: Explicit thresholds; defaults to the shared ones.

        Returns:
            Report with score in [0, 100], status and ordered issues.
        """
        limits = thresholds or self.thresholds.values()
        issues = [
            *self._check_cpu(snapshot, limits),
            *self._check_ram(snapshot, limits),
            *self._check_disk_activity(snapshot, limits),
            *self._check_disk_space(snapshot, limits),
        ]

        score = 100.0
        for issue in issues:
            score -= CRITICAL_PENALTY if issue.severity == Severity.CRITICAL else WARNING_PENALTY
        score = round(max(0.0, min(100.0, score)))

        return HealthReport(
            timestamp=snapshot.timestamp,
            health_score=score,
            status=status_for(score),
            issues=tuple(issues),
        )

    def _check_cpu(self, snap: Snapshot, limits: ThresholdValues) -> list[Issue]:
        if snap.cpu_percent >= limits.cpu_percent:
            return [_issue(snap, "CPU", f"CPU at {snap.cpu_percent:.0f}% (threshold {limits.cpu_percent:g}%)", Severity.CRITICAL)]
        if snap.cpu_percent >= limits.cpu_percent * APPROACH_RATIO:
            return [_issue(snap, "CPU", f"CPU at {snap.cpu_percent:.0f}% (approaching threshold)", Severity.WARNING)]
        return []

    def _check_ram(self, snap: Snapshot, limits: ThresholdValues) -> list[Issue]:
        if snap.ram_percent >= limits.ram_percent:
            return [_issue(
                snap, "RAM",
                f"RAM at {snap.ram_percent:.0f}% ({snap.ram_used_mb} MB / {snap.ram_total_mb} MB)",
                Severity.CRITICAL,
            )]
        if snap.ram_percent >= limits.ram_percent * APPROACH_RATIO:
            return [_issue(snap, "RAM", f"RAM at {snap.ram_percent:.0f}% (approaching threshold)", Severity.WARNING)]
        return []

    def _check_disk_activity(self, snap: Snapshot, limits: ThresholdValues) -> list[Issue]:
        if snap.disk_active_percent >= limits.disk_active_percent:
            return [_issue(snap, "Disk I/O", f"Disk active time at {snap.disk_active_percent:.0f}%", Severity.CRITICAL)]
        return []

    def _check_disk_space(self, snap: Snapshot, limits: ThresholdValues) -> list[Issue]:
        # No partitions read means no data, not a full disk
        if snap.total_disk_gb <= 0:
            return []
        if snap.free_disk_gb < limits.disk_min_free_gb:
            return [_issue(snap, "Disk Space", f"Only {snap.free_disk_gb:.1f} GB free", Severity.CRITICAL)]
        if snap.free_disk_gb < limits.disk_min_free_gb * 2:
            return [_issue(snap, "Disk Space", f"{snap.free_disk_gb:.1f} GB free (low)", Severity.WARNING)]
        return []


def status_for(score: float) -> HealthStatus:
    if score >= HEALTHY_MIN_SCORE:
        return HealthStatus.HEALTHY
    if score >= WARNING_MIN_SCORE:
        return HealthStatus.WARNING
    return HealthStatus.CRITICAL


def _issue(snap: Snapshot, source: str, description: str, severity: Severity) -> Issue:
    return Issue(
        source=source,
        description=description,
        severity=severity,
        suggested_fix=suggested_fix(source),
        timestamp=snap.timestamp,
    )
