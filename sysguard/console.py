"""Console mode: run the pipeline in the foreground and log what it sees."""
import logging
import signal
import threading
from typing import Optional

from .config import Config
from .models import Alert, HealthReport, HealthStatus
from .monitor import Monitor

logger = logging.getLogger(__name__)


class ConsoleReporter:
    """Logs health reports and alerts as they are published."""

    def __init__(self, monitor: Monitor):
        self.monitor = monitor
        self._last_status: Optional[HealthStatus] = None

    def on_report(self, report: HealthReport) -> None:
        snapshot = self.monitor.collector.latest()
        if snapshot is not None:
            logger.info(
                f"Health {report.health_score:.0f} ({report.status.value}) | "
                f"CPU {snapshot.cpu_percent:.0f}% | RAM {snapshot.ram_percent:.0f}% | "
                f"Disk free {snapshot.free_disk_gb:.1f} GB | "
                f"Net ↑{_rate(snapshot.upload_mbps)} ↓{_rate(snapshot.download_mbps)} Mbps"
            )

        if report.status != self._last_status:
            if self._last_status is not None:
                logger.info(f"Health status changed: {self._last_status.value} -> {report.status.value}")
            self._last_status = report.status
            for issue in report.issues:
                logger.info(f"  [{issue.severity.value}] {issue.source}: {issue.description}")

    def on_alert(self, alert: Alert) -> None:
        logger.warning(f"ALERT {alert.source}: {alert.message} -> {alert.suggested_fix}")


def run_console(config: Config) -> None:
    """Run the monitor until SIGINT/SIGTERM."""
    monitor = Monitor.from_config(config)
    reporter = ConsoleReporter(monitor)
    monitor.reports.subscribe(reporter.on_report)
    monitor.alert_engine.alerts.subscribe(reporter.on_alert)

    stop_requested = threading.Event()

    def signal_handler(signum, frame):
        logger.info("Received shutdown signal")
        stop_requested.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(sig, signal_handler)
        except (ValueError, OSError):
            # Not in the main thread, or unsupported on this platform
            pass

    logger.info("Starting console monitor")
    logger.info(f"  Interval: {config.collector.interval_ms} ms")
    logger.info(f"  History: {config.collector.history_size} snapshots")

    monitor.start()
    try:
        stop_requested.wait()
    finally:
        monitor.stop()
        logger.info("Console monitor stopped")


def _rate(mbps: Optional[float]) -> str:
    return "n/a" if mbps is None else f"{mbps:.2f}"
