"""Data models for snapshots, health reports and alerts."""
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


def _percent(part: float, total: float) -> float:
    return round(part / total * 100, 1) if total > 0 else 0.0


def _mbps(bps: Optional[int]) -> Optional[float]:
    return None if bps is None else round(bps / 125_000, 2)


class Severity(str, Enum):
    """Severity shared by issues and alerts."""
    INFO = "Info"
    WARNING = "Warning"
    CRITICAL = "Critical"


class HealthStatus(str, Enum):
    HEALTHY = "Healthy"
    WARNING = "Warning"
    CRITICAL = "Critical"


class TrendDirection(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


class DiskPartition(BaseModel):
    """Disk partition usage."""
    model_config = ConfigDict(frozen=True)

    device: str
    mountpoint: str
    filesystem: str = ""
    total_gb: float
    free_gb: float

    @computed_field
    @property
    def used_gb(self) -> float:
        return round(self.total_gb - self.free_gb, 2)

    @computed_field
    @property
    def percent_used(self) -> float:
        return _percent(self.total_gb - self.free_gb, self.total_gb)


class MemoryReading(BaseModel):
    """Raw RAM reading in MB."""
    model_config = ConfigDict(frozen=True)

    total_mb: int = 0
    available_mb: int = 0


class NetworkCounters(BaseModel):
    """Cumulative byte counters summed over active adapters."""
    model_config = ConfigDict(frozen=True)

    bytes_sent: int = 0
    bytes_recv: int = 0
    active_adapters: int = 0


class Snapshot(BaseModel):
    """Point-in-time read of all sampled system metrics.

    Only raw counts are stored. Every percentage and unit conversion is a
    computed field so derived values can never drift from their source.
    """
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=datetime.now)

    # CPU
    cpu_percent: float = 0.0

    # Memory
    ram_total_mb: int = 0
    ram_available_mb: int = 0

    # Disk
    disk_active_percent: float = 0.0
    disk_partitions: tuple[DiskPartition, ...] = ()

    # Network (bytes/sec); None when throughput was not measured
    upload_bps: Optional[int] = 0
    download_bps: Optional[int] = 0
    active_adapters: int = 0

    # System
    process_count: int = 0
    uptime: timedelta = timedelta(0)

    @computed_field
    @property
    def ram_used_mb(self) -> int:
        return max(0, self.ram_total_mb - self.ram_available_mb)

    @computed_field
    @property
    def ram_percent(self) -> float:
        return _percent(self.ram_used_mb, self.ram_total_mb)

    @computed_field
    @property
    def total_disk_gb(self) -> float:
        return round(sum(p.total_gb for p in self.disk_partitions), 2)

    @computed_field
    @property
    def free_disk_gb(self) -> float:
        return round(sum(p.free_gb for p in self.disk_partitions), 2)

    @computed_field
    @property
    def used_disk_gb(self) -> float:
        return round(self.total_disk_gb - self.free_disk_gb, 2)

    @computed_field
    @property
    def disk_usage_percent(self) -> float:
        return _percent(self.used_disk_gb, self.total_disk_gb)

    @computed_field
    @property
    def upload_mbps(self) -> Optional[float]:
        return _mbps(self.upload_bps)

    @computed_field
    @property
    def download_mbps(self) -> Optional[float]:
        return _mbps(self.download_bps)


class Issue(BaseModel):
    """A single finding produced by the health evaluator."""
    model_config = ConfigDict(frozen=True)

    source: str
    description: str
    severity: Severity
    suggested_fix: str
    timestamp: datetime


class HealthReport(BaseModel):
    """Score, status and issues derived from one snapshot."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    health_score: float = Field(ge=0, le=100)
    status: HealthStatus
    issues: tuple[Issue, ...] = ()

    def count(self, severity: Severity) -> int:
        return sum(1 for issue in self.issues if issue.severity == severity)


class Alert(BaseModel):
    """Alert raised by the alert engine.

    Immutable; acknowledging stores a copy with the flag set.
    """
    model_config = ConfigDict(frozen=True)

    source: str
    message: str
    severity: Severity
    suggested_fix: str
    created_at: datetime
    acknowledged: bool = False


class TrendSignal(BaseModel):
    """Moving-average trend label for quick display."""
    direction: TrendDirection
    delta: float
    window: int
    forecast: float


class Forecast(BaseModel):
    """Regression forecast for one metric over recent history."""
    metric: str
    has_prediction: bool
    predicted: Optional[float] = None
    current: Optional[float] = None
    trend: float = 0.0
    data_points: int = 0
    message: str
