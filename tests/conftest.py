"""Shared fixtures for sysguard tests."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from sysguard.models import DiskPartition, MemoryReading, NetworkCounters, Snapshot

BASE_TIME = datetime(2026, 3, 1, 12, 0, 0)


# ── Helper: create Snapshot with sensible defaults ──────────────────────


def make_snapshot(
    *,
    timestamp: datetime = BASE_TIME,
    cpu: float = 10.0,
    ram_percent: float = 40.0,
    ram_total_mb: int = 10_000,
    disk_active: float = 5.0,
    disk_total_gb: float = 500.0,
    disk_free_gb: float = 200.0,
    upload_bps: int | None = 10_000,
    download_bps: int | None = 50_000,
    active_adapters: int = 1,
    process_count: int = 250,
) -> Snapshot:
    """Build a healthy snapshot; override only what the test cares about."""
    used_mb = round(ram_total_mb * ram_percent / 100)
    partitions = ()
    if disk_total_gb > 0:
        partitions = (
            DiskPartition(device="/dev/sda1", mountpoint="/", filesystem="ext4",
                          total_gb=disk_total_gb, free_gb=disk_free_gb),
        )
    return Snapshot(
        timestamp=timestamp,
        cpu_percent=cpu,
        ram_total_mb=ram_total_mb,
        ram_available_mb=ram_total_mb - used_mb,
        disk_active_percent=disk_active,
        disk_partitions=partitions,
        upload_bps=upload_bps,
        download_bps=download_bps,
        active_adapters=active_adapters,
        process_count=process_count,
        uptime=timedelta(hours=5),
    )


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: datetime = BASE_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeSource:
    """MetricsSource returning fixed readings; any family can be made to fail."""

    def __init__(
        self,
        *,
        cpu: float = 20.0,
        ram_total_mb: int = 8000,
        ram_available_mb: int = 4000,
        disk_active: float = 3.0,
        partitions: list[DiskPartition] | None = None,
        network_step: int = 1000,
        adapters: int = 1,
        processes: int = 120,
        failing: tuple[str, ...] = (),
    ):
        self.cpu = cpu
        self.ram_total_mb = ram_total_mb
        self.ram_available_mb = ram_available_mb
        self.disk_active = disk_active
        self.partitions = partitions if partitions is not None else [
            DiskPartition(device="/dev/sda1", mountpoint="/", total_gb=256.0, free_gb=100.0),
        ]
        self.network_step = network_step
        self.adapters = adapters
        self.processes = processes
        self.failing = set(failing)
        self.network_reads = 0

    def _check(self, family: str) -> None:
        if family in self.failing:
            raise OSError(f"{family} unavailable")

    def cpu_percent(self) -> float:
        self._check("cpu")
        return self.cpu

    def memory(self) -> MemoryReading:
        self._check("memory")
        return MemoryReading(total_mb=self.ram_total_mb, available_mb=self.ram_available_mb)

    def disk_active_percent(self) -> float:
        self._check("disk")
        return self.disk_active

    def disk_partitions(self) -> list[DiskPartition]:
        self._check("disk")
        return list(self.partitions)

    def network_counters(self) -> NetworkCounters:
        self._check("network")
        self.network_reads += 1
        total = self.network_reads * self.network_step
        return NetworkCounters(bytes_sent=total, bytes_recv=total * 2, active_adapters=self.adapters)

    def process_count(self) -> int:
        self._check("processes")
        return self.processes

    def uptime(self) -> timedelta:
        self._check("uptime")
        return timedelta(minutes=42)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()
