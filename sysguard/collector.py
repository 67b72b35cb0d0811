"""Periodic snapshot collector with a bounded rolling history."""
import logging
import threading
import time
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel

from .events import EventHub
from .models import DiskPartition, MemoryReading, NetworkCounters, Snapshot
from .sources import MetricsSource

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_INTERVAL_MS = 2000
DEFAULT_HISTORY_SIZE = 600  # ~10 min at 1s, ~20 min at 2s
DEFAULT_NETWORK_SAMPLE_MS = 500


class Collector:
    """
    Samples a MetricsSource on a dedicated scheduler thread.

    Every tick collects one snapshot, appends it to the history ring and
    publishes it to ``snapshots`` subscribers, all on the scheduler thread.
    Ticks never overlap: if a tick overruns the interval, the missed slots
    are skipped rather than queued.

    Each cycle blocks for ``network_sample_ms`` between the two network
    counter reads used to compute throughput. Keep it short relative to the
    sampling interval. A delay of 0 skips the measurement and leaves the
    snapshot rates unset.
    """

    def __init__(
        self,
        source: MetricsSource,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        history_size: int = DEFAULT_HISTORY_SIZE,
        network_sample_ms: int = DEFAULT_NETWORK_SAMPLE_MS,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.source = source
        self.interval_ms = interval_ms
        self.network_sample_ms = network_sample_ms
        self.snapshots: EventHub[Snapshot] = EventHub("snapshot")

        self._clock = clock
        self._sleep = sleep
        self._history: deque[Snapshot] = deque(maxlen=history_size)
        self._history_lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def history_size(self) -> int:
        return self._history.maxlen or 0

    def start(self, interval_ms: Optional[int] = None) -> None:
        """
        Start ticking immediately, then every interval. No-op if already running.

        Raises:
            ValueError: If the interval is not positive.
        """
        with self._state_lock:
            if self._thread is not None and self._thread.is_alive():
                return
            interval_ms = self.interval_ms if interval_ms is None else interval_ms
            if interval_ms <= 0:
                raise ValueError(f"Sampling interval must be positive, got {interval_ms} ms")
            self.interval_ms = interval_ms

            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event, self.interval_ms / 1000),
                name="sysguard-collector",
                daemon=True,
            )
            self._thread.start()

        logger.info(f"Collector started (interval {self.interval_ms} ms)")

    def stop(self) -> None:
        """
        Stop the scheduler. No tick starts after this returns.

        A tick already in flight is allowed to finish.
        """
        with self._state_lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
            self._thread = None

        if thread is not threading.current_thread():
            thread.join()
        logger.info("Collector stopped")

    def _run(self, stop_event: threading.Event, interval: float) -> None:
        next_tick = time.monotonic()
        while not stop_event.is_set():
            self._tick()

            next_tick += interval
            now = time.monotonic()
            if next_tick < now:
                missed = int((now - next_tick) // interval) + 1
                next_tick += missed * interval
                logger.debug(f"Collection overran interval, skipped {missed} tick(s)")

            if stop_event.wait(next_tick - now):
                break

    def _tick(self) -> None:
        try:
            self.refresh()
        except Exception as e:
            logger.exception(f"Collection cycle failed: {e}")

    def refresh(self) -> Snapshot:
        """
        Collect, record and publish one snapshot.

        Serialized with the timer's ticks so subscribers always observe
        snapshots in chronological order.
        """
        with self._tick_lock:
            snapshot = self.collect_once()
            with self._history_lock:
                self._history.append(snapshot)
            self.snapshots.publish(snapshot)
            return snapshot

    def collect_once(self) -> Snapshot:
        """
        Take a single snapshot without recording or publishing it.

        Each metric family is read and converted independently; a family
        that fails or returns an unusable value is logged and left at
        zero/empty. Never raises.
        """
        timestamp = self._clock()

        cpu_percent = self._read("CPU", self.source.cpu_percent, 0.0, float)
        memory = self._read("memory", self.source.memory, MemoryReading(), _as_model(MemoryReading))
        disk_active = self._read("disk activity", self.source.disk_active_percent, 0.0, float)
        partitions = self._read("disk partitions", self.source.disk_partitions, (), _as_partitions)
        upload_bps, download_bps, adapters = self._sample_network()
        process_count = self._read("process count", self.source.process_count, 0, int)
        uptime = self._read("uptime", self.source.uptime, timedelta(0), _as_timedelta)

        return Snapshot(
            timestamp=timestamp,
            cpu_percent=cpu_percent,
            ram_total_mb=memory.total_mb,
            ram_available_mb=memory.available_mb,
            disk_active_percent=disk_active,
            disk_partitions=partitions,
            upload_bps=upload_bps,
            download_bps=download_bps,
            active_adapters=adapters,
            process_count=process_count,
            uptime=uptime,
        )

    def _read(
        self,
        family: str,
        reader: Callable[[], Any],
        default: T,
        convert: Callable[[Any], T],
    ) -> T:
        try:
            return convert(reader())
        except Exception as e:
            logger.warning(f"Failed to read {family}: {e}")
            return default

    def _sample_network(self) -> tuple[Optional[int], Optional[int], int]:
        """
        Return (upload_bps, download_bps, active_adapters) from two reads
        spaced by the sample delay.

        Rates are None when no delay is configured, since throughput is
        then not measured at all.
        """
        as_counters = _as_model(NetworkCounters)
        before = self._read("network counters", self.source.network_counters, None, as_counters)
        if before is None:
            return 0, 0, 0
        if self.network_sample_ms <= 0:
            return None, None, before.active_adapters

        self._sleep(self.network_sample_ms / 1000)

        after = self._read("network counters", self.source.network_counters, None, as_counters)
        if after is None:
            return 0, 0, before.active_adapters

        scale = 1000 / self.network_sample_ms
        upload = max(0, int((after.bytes_sent - before.bytes_sent) * scale))
        download = max(0, int((after.bytes_recv - before.bytes_recv) * scale))
        return upload, download, after.active_adapters

    def get_recent(self, count: int) -> list[Snapshot]:
        """Return the last ``count`` snapshots, oldest first."""
        if count <= 0:
            return []
        with self._history_lock:
            history = list(self._history)
        return history[-count:]

    def latest(self) -> Optional[Snapshot]:
        with self._history_lock:
            return self._history[-1] if self._history else None

    def __len__(self) -> int:
        with self._history_lock:
            return len(self._history)


def _as_model(model: type[BaseModel]) -> Callable[[Any], Any]:
    def convert(value: Any) -> Any:
        return model.model_validate(value, from_attributes=True)

    return convert


def _as_partitions(value: Any) -> tuple[DiskPartition, ...]:
    return tuple(DiskPartition.model_validate(p, from_attributes=True) for p in value)


def _as_timedelta(value: Any) -> timedelta:
    if not isinstance(value, timedelta):
        raise TypeError(f"expected timedelta, got {type(value).__name__}")
    return value
