"""Metrics sources: the contract the collector samples from, and a psutil implementation."""
import logging
import time
from datetime import timedelta
from typing import Optional, Protocol, runtime_checkable

import psutil

from .models import DiskPartition, MemoryReading, NetworkCounters

logger = logging.getLogger(__name__)

# Pseudo filesystems that do not represent real storage
SKIPPED_FILESYSTEMS = {"squashfs", "tmpfs", "devtmpfs", "overlay"}

BYTES_PER_MB = 1024**2
BYTES_PER_GB = 1024**3


@runtime_checkable
class MetricsSource(Protocol):
    """Supplies raw readings for one metric family per call.

    Implementations may raise; the collector isolates each call so that one
    unreadable family never prevents the others from being sampled.
    """

    def cpu_percent(self) -> float: ...

    def memory(self) -> MemoryReading: ...

    def disk_active_percent(self) -> float: ...

    def disk_partitions(self) -> list[DiskPartition]: ...

    def network_counters(self) -> NetworkCounters: ...

    def process_count(self) -> int: ...

    def uptime(self) -> timedelta: ...


class PsutilMetricsSource:
    """Cross-platform source backed by psutil."""

    def __init__(self):
        self._last_disk_busy_ms: Optional[float] = None
        self._last_disk_time: Optional[float] = None
        # Prime the non-blocking counters so the first real read is meaningful
        try:
            psutil.cpu_percent(interval=None)
        except Exception as e:
            logger.warning(f"Failed to prime CPU counter: {e}")
        try:
            self.disk_active_percent()
        except Exception as e:
            logger.warning(f"Failed to prime disk activity counter: {e}")

    def cpu_percent(self) -> float:
        return float(psutil.cpu_percent(interval=None))

    def memory(self) -> MemoryReading:
        mem = psutil.virtual_memory()
        return MemoryReading(
            total_mb=mem.total // BYTES_PER_MB,
            available_mb=mem.available // BYTES_PER_MB,
        )

    def disk_active_percent(self) -> float:
        """
        Percentage of wall time the disks were busy since the previous call.

        Uses busy_time where the platform reports it (Linux), otherwise the
        sum of read and write time. The first call only records a baseline
        and returns 0.
        """
        counters = psutil.disk_io_counters()
        if counters is None:
            return 0.0

        busy_ms = getattr(counters, "busy_time", None)
        if busy_ms is None:
            busy_ms = counters.read_time + counters.write_time

        now = time.monotonic()
        last_busy, last_time = self._last_disk_busy_ms, self._last_disk_time
        self._last_disk_busy_ms, self._last_disk_time = busy_ms, now

        if last_busy is None or last_time is None or now <= last_time:
            return 0.0

        elapsed_ms = (now - last_time) * 1000
        percent = (busy_ms - last_busy) / elapsed_ms * 100
        return round(min(100.0, max(0.0, percent)), 1)

    def disk_partitions(self) -> list[DiskPartition]:
        """Get usage for all mounted local partitions."""
        partitions = []

        for partition in psutil.disk_partitions(all=False):
            if partition.fstype in SKIPPED_FILESYSTEMS:
                continue
            try:
                usage = psutil.disk_usage(partition.mountpoint)
            except (PermissionError, OSError) as e:
                logger.warning(f"Cannot access partition {partition.mountpoint}: {e}")
                continue

            partitions.append(DiskPartition(
                device=partition.device,
                mountpoint=partition.mountpoint,
                filesystem=partition.fstype,
                total_gb=round(usage.total / BYTES_PER_GB, 2),
                free_gb=round(usage.free / BYTES_PER_GB, 2),
            ))

        return partitions

    def network_counters(self) -> NetworkCounters:
        """Sum byte counters over adapters that are up, excluding loopback."""
        stats = psutil.net_if_stats()
        counters = psutil.net_io_counters(pernic=True)

        sent = recv = adapters = 0
        for name, nic in counters.items():
            nic_stats = stats.get(name)
            if nic_stats is None or not nic_stats.isup or _is_loopback(name):
                continue
            sent += nic.bytes_sent
            recv += nic.bytes_recv
            adapters += 1

        return NetworkCounters(bytes_sent=sent, bytes_recv=recv, active_adapters=adapters)

    def process_count(self) -> int:
        return len(psutil.pids())

    def uptime(self) -> timedelta:
        return timedelta(seconds=int(time.time() - psutil.boot_time()))


def _is_loopback(name: str) -> bool:
    lowered = name.lower()
    return lowered == "lo" or lowered.startswith("loopback") or lowered.startswith("lo0")
