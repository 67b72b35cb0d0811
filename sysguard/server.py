"""Local REST API exposing the monitor's query surface to the dashboard."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from .health import ThresholdValues
from .models import Alert, Forecast, HealthReport, Snapshot, TrendSignal
from .monitor import METRICS, Monitor, UnknownMetricError

logger = logging.getLogger(__name__)


class ThresholdUpdate(BaseModel):
    """Partial threshold update; omitted fields keep their value."""
    cpu_percent: Optional[float] = Field(default=None, ge=0)
    ram_percent: Optional[float] = Field(default=None, ge=0)
    disk_active_percent: Optional[float] = Field(default=None, ge=0)
    disk_min_free_gb: Optional[float] = Field(default=None, ge=0)


def create_app(monitor: Monitor, manage_lifecycle: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        monitor: Pipeline to expose.
        manage_lifecycle: Start the monitor on startup and stop it on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_lifecycle:
            logger.info("Starting monitor...")
            monitor.start()
        yield
        if manage_lifecycle:
            monitor.stop()
        logger.info("Server stopped")

    app = FastAPI(
        title="SysGuard",
        description="Local telemetry, health and alert API for the desktop dashboard",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "monitoring": monitor.collector.is_running,
            "timestamp": datetime.now().isoformat(),
        }

    @app.get("/snapshots", response_model=list[Snapshot])
    async def recent_snapshots(count: int = Query(60, ge=1, le=10_000)):
        """Most recent snapshots, oldest first."""
        return monitor.get_recent_snapshots(count)

    @app.get("/snapshots/latest", response_model=Snapshot)
    async def latest_snapshot():
        snapshot = monitor.collector.latest()
        if snapshot is None:
            raise HTTPException(status_code=404, detail="No snapshot collected yet")
        return snapshot

    @app.post("/collect", response_model=Snapshot)
    def collect_now():
        """Collect a snapshot immediately (blocks for the network sample delay)."""
        return monitor.refresh()

    @app.get("/report", response_model=HealthReport)
    async def health_report():
        """Health report for the latest snapshot, using current thresholds."""
        snapshot = monitor.collector.latest()
        if snapshot is None:
            raise HTTPException(status_code=404, detail="No snapshot collected yet")
        return monitor.evaluate(snapshot)

    @app.get("/alerts", response_model=list[Alert])
    async def recent_alerts(count: int = Query(50, ge=1, le=1000)):
        """Recent alerts, newest first."""
        return monitor.get_recent_alerts(count)

    @app.post("/alerts/{index}/acknowledge", response_model=Alert)
    async def acknowledge_alert(index: int):
        try:
            return monitor.acknowledge_alert(index)
        except IndexError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.delete("/alerts")
    async def clear_alerts():
        monitor.clear_alerts()
        return {"status": "cleared"}

    @app.get("/thresholds", response_model=ThresholdValues)
    async def get_thresholds():
        return monitor.thresholds.values()

    @app.put("/thresholds", response_model=ThresholdValues)
    async def update_thresholds(update: ThresholdUpdate):
        changes = update.model_dump(exclude_none=True)
        values = monitor.thresholds.update(**changes)
        logger.info(f"Thresholds updated: {changes}")
        return values

    @app.get("/predict/{metric}", response_model=Forecast)
    async def predict_metric(metric: str, lookback: Optional[int] = Query(None, ge=1, le=10_000)):
        try:
            return monitor.forecast(metric, lookback)
        except UnknownMetricError:
            raise HTTPException(status_code=404, detail=f"Unknown metric '{metric}'. Use one of: {', '.join(METRICS)}")

    @app.get("/trend/{metric}", response_model=TrendSignal)
    async def metric_trend(metric: str):
        try:
            return monitor.trend(metric)
        except UnknownMetricError:
            raise HTTPException(status_code=404, detail=f"Unknown metric '{metric}'. Use one of: {', '.join(METRICS)}")

    return app
