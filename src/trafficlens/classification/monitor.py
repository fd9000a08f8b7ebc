"""Simulated traffic monitor.

Feeds randomly generated synthetic flows through a classification engine at
a fixed interval and raises alerts for anomalous or high-bandwidth flows.
Stands in for a live feed when demonstrating the engine.
"""

import asyncio
import inspect
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

import numpy as np

from trafficlens.classification.engine import TrafficClassificationEngine
from trafficlens.classification.flow import ClassificationResult
from trafficlens.classification.ml.synthetic import SyntheticFlowGenerator
from trafficlens.common.config import MonitorSettings, get_settings
from trafficlens.common.logging import get_logger
from trafficlens.common.metrics import MONITOR_ALERTS

logger = get_logger(__name__)

AlertKind = Literal["anomaly", "high_bandwidth"]


@dataclass
class TrafficAlert:
    """Alert raised for a classified flow."""

    kind: AlertKind
    title: str
    message: str
    severity: Literal["info", "warning", "high"]
    result: ClassificationResult
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "kind": self.kind,
            "title": self.title,
            "message": self.message,
            "severity": self.severity,
            "timestamp": self.timestamp.isoformat(),
            "result": self.result.to_dict(),
        }


AlertHandler = Callable[[TrafficAlert], Awaitable[None] | None]


class TrafficMonitor:
    """Periodically classifies synthetic traffic and dispatches alerts.

    Each tick:
    1. Generate a random synthetic flow
    2. Classify it with the engine
    3. Alert on anomalies and on throughput above the bandwidth threshold
    """

    def __init__(
        self,
        engine: TrafficClassificationEngine,
        settings: MonitorSettings | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        """Initialize the traffic monitor.

        Args:
            engine: Engine that classifies the generated flows.
            settings: Monitor settings. Uses global settings if not provided.
            rng: Random source for flow generation.
        """
        if settings is None:
            settings = get_settings().monitor

        self._engine = engine
        self._settings = settings
        self._interval = settings.interval_ms / 1000
        self._generator = SyntheticFlowGenerator(rng=rng)
        self._handlers: list[AlertHandler] = []

        # State
        self._running = False
        self._processed_count = 0
        self._alert_count = 0

    @property
    def running(self) -> bool:
        """Whether the monitor loop is active."""
        return self._running

    @property
    def processed_count(self) -> int:
        """Flows classified so far."""
        return self._processed_count

    @property
    def alert_count(self) -> int:
        """Alerts dispatched so far."""
        return self._alert_count

    def add_handler(self, handler: AlertHandler) -> None:
        """Register a sync or async alert handler."""
        self._handlers.append(handler)

    async def start(self) -> None:
        """Run the monitor loop until `stop` is called."""
        self._running = True
        logger.info("Traffic monitor started", interval=self._interval)

        while self._running:
            try:
                if self._engine.is_ready():
                    await self.run_once()
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Monitor tick failed", error=str(e))
                await asyncio.sleep(self._interval)

        self._running = False
        logger.info(
            "Traffic monitor stopped",
            total_processed=self._processed_count,
            total_alerts=self._alert_count,
        )

    async def stop(self) -> None:
        """Stop the monitor loop after the current tick."""
        self._running = False

    async def run_once(self) -> tuple[ClassificationResult, list[TrafficAlert]]:
        """Generate, classify and alert on a single flow.

        Returns:
            Tuple of (classification result, alerts raised for it).
        """
        flow, _ = self._generator.generate_random_flow()
        # classify holds the engine lock; keep it off the event loop
        result = await asyncio.to_thread(self._engine.classify, flow)
        self._processed_count += 1

        alerts = self.check_alerts(result)
        for alert in alerts:
            await self._dispatch(alert)

        return result, alerts

    def recent_results(self) -> list[ClassificationResult]:
        """The engine's newest results, trimmed to the display window."""
        return self._engine.get_history(limit=self._settings.history_window)

    def check_alerts(self, result: ClassificationResult) -> list[TrafficAlert]:
        """Build the alerts a classification result warrants."""
        alerts: list[TrafficAlert] = []

        if result.is_anomaly:
            alerts.append(TrafficAlert(
                kind="anomaly",
                title="Unusual Traffic Detected",
                message=(
                    f"{result.category.value} traffic shows anomalous behavior "
                    f"(score: {result.anomaly_score:.3f})"
                ),
                severity="high",
                result=result,
            ))

        bytes_per_second = result.features.bytes_per_second
        if bytes_per_second > self._settings.high_bandwidth_threshold:
            alerts.append(TrafficAlert(
                kind="high_bandwidth",
                title="High Bandwidth Usage",
                message=(
                    f"{result.category.value} traffic using "
                    f"{bytes_per_second / 1_000_000:.2f} MB/s"
                ),
                severity="warning",
                result=result,
            ))

        return alerts

    async def _dispatch(self, alert: TrafficAlert) -> None:
        self._alert_count += 1
        MONITOR_ALERTS.labels(kind=alert.kind).inc()
        logger.info("Traffic alert", kind=alert.kind, message=alert.message)

        for handler in self._handlers:
            try:
                outcome = handler(alert)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error(
                    "Alert handler failed",
                    kind=alert.kind,
                    error=str(e),
                )
