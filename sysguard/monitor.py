"""Composition root wiring the collector, evaluator and alert engine together."""
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence

from .alerts import AlertEngine, sustain_ticks
from .collector import Collector
from .config import Config, PredictionConfig
from .events import EventHub
from .health import HealthEvaluator, Thresholds
from .models import Alert, Forecast, HealthReport, Snapshot, TrendSignal
from .notifier import Notifier, QueuedNotifier
from .predictor import forecast, moving_average_trend, predict_next
from .sources import MetricsSource, PsutilMetricsSource

logger = logging.getLogger(__name__)

# Snapshot fields that can be forecast
METRICS = (
    "cpu_percent",
    "ram_percent",
    "disk_active_percent",
    "disk_usage_percent",
    "upload_mbps",
    "download_mbps",
)


class UnknownMetricError(KeyError):
    """Raised when a forecast is requested for a metric that is not tracked."""


class Monitor:
    """
    Owns one instance of each pipeline component.

    Every collected snapshot is evaluated and fed to the alert engine on the
    collector's thread before the next tick starts. Health reports are
    published on ``reports``; alerts on ``alert_engine.alerts``.
    """

    def __init__(
        self,
        collector: Collector,
        evaluator: HealthEvaluator,
        alert_engine: AlertEngine,
        prediction: Optional[PredictionConfig] = None,
        notifier: Optional[QueuedNotifier] = None,
    ):
        self.collector = collector
        self.evaluator = evaluator
        self.alert_engine = alert_engine
        self.prediction = prediction or PredictionConfig()
        self.notifier = notifier
        self.reports: EventHub[HealthReport] = EventHub("health report")

        self._latest_report: Optional[HealthReport] = None
        self._report_lock = threading.Lock()

        collector.snapshots.subscribe(self._on_snapshot)
        if notifier is not None:
            alert_engine.alerts.subscribe(notifier)

    @classmethod
    def from_config(
        cls,
        config: Config,
        source: Optional[MetricsSource] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> "Monitor":
        """Build the whole pipeline from configuration."""
        interval_ms = config.collector.interval_ms
        thresholds = Thresholds(config.thresholds)

        collector = Collector(
            source or PsutilMetricsSource(),
            interval_ms=interval_ms,
            history_size=config.collector.history_size,
            network_sample_ms=config.collector.network_sample_ms,
            clock=clock,
        )
        alert_engine = AlertEngine(
            thresholds,
            cpu_sustain_ticks=sustain_ticks(config.alerts.cpu_sustain_seconds, interval_ms),
            ram_sustain_ticks=sustain_ticks(config.alerts.ram_sustain_seconds, interval_ms),
            dedup_window=timedelta(seconds=config.alerts.dedup_window_seconds),
            capacity=config.alerts.capacity,
            sample_interval_ms=interval_ms,
            clock=clock,
        )
        notifier = QueuedNotifier(Notifier(config.ntfy)) if config.ntfy.enabled else None

        return cls(
            collector,
            HealthEvaluator(thresholds),
            alert_engine,
            prediction=config.prediction,
            notifier=notifier,
        )

    @property
    def thresholds(self) -> Thresholds:
        return self.evaluator.thresholds

    def start(self, interval_ms: Optional[int] = None) -> None:
        if self.notifier is not None:
            self.notifier.start()
        self.collector.start(interval_ms)

    def stop(self) -> None:
        self.collector.stop()
        if self.notifier is not None:
            self.notifier.stop()

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        limits = self.thresholds.values()
        report = self.evaluator.evaluate(snapshot, limits)
        with self._report_lock:
            self._latest_report = report
        self.alert_engine.process_snapshot(snapshot, limits)
        self.reports.publish(report)

    # Query surface

    def refresh(self) -> Snapshot:
        """Collect one snapshot on demand and run it through the pipeline."""
        return self.collector.refresh()

    def get_recent_snapshots(self, count: int) -> list[Snapshot]:
        return self.collector.get_recent(count)

    def get_recent_alerts(self, count: Optional[int] = None) -> list[Alert]:
        return self.alert_engine.get_recent(count)

    def latest_report(self) -> Optional[HealthReport]:
        with self._report_lock:
            return self._latest_report

    def evaluate(self, snapshot: Snapshot) -> HealthReport:
        return self.evaluator.evaluate(snapshot)

    def predict(self, history: Sequence[float], floor: Optional[float] = None) -> float:
        return predict_next(history, self.prediction.floor if floor is None else floor)

    def clear_alerts(self) -> None:
        self.alert_engine.clear()

    def acknowledge_alert(self, index: int) -> Alert:
        return self.alert_engine.acknowledge(index)

    def metric_history(self, metric: str, count: int) -> list[float]:
        """Values of one snapshot metric over the last ``count`` snapshots, oldest first.

        Snapshots where the metric was not measured are skipped.
        """
        if metric not in METRICS:
            raise UnknownMetricError(metric)
        values = (getattr(s, metric) for s in self.collector.get_recent(count))
        return [float(v) for v in values if v is not None]

    def forecast(self, metric: str, lookback: Optional[int] = None) -> Forecast:
        history = self.metric_history(metric, lookback or self.prediction.lookback)
        return forecast(metric, history, self.prediction.floor)

    def trend(self, metric: str) -> TrendSignal:
        history = self.metric_history(metric, self.collector.history_size)
        return moving_average_trend(history, self.prediction.trend_window, self.prediction.dead_band)
