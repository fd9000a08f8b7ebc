"""Traffic classification engine.

Orchestrates feature normalization, both neural models, a bounded history
of results and aggregate statistics. Models are trained (or loaded) on a
background thread at construction; until that finishes every call is
answered with the default result instead of blocking.
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from collections.abc import Callable
from enum import Enum
from typing import Any

import numpy as np

from trafficlens.classification.flow import ClassificationResult, FlowDescriptor, TrafficStats
from trafficlens.classification.ml.feature_transformer import FeatureTransformer
from trafficlens.classification.ml.model_manager import ModelBundle, ModelManager, TrainingStats
from trafficlens.classification.ml.trainer import MLTrainer
from trafficlens.common.config import Settings, get_settings
from trafficlens.common.exceptions import ConfigurationError, ModelPersistenceError
from trafficlens.common.logging import get_logger
from trafficlens.common.metrics import (
    ANOMALIES_DETECTED,
    CLASSIFICATIONS_TOTAL,
    DEGRADED_RESULTS,
    ENGINE_READY,
    HISTORY_SIZE,
    INFERENCE_LATENCY,
    TRAINING_DURATION,
    TRAINING_FAILURES,
)

logger = get_logger(__name__)

ReadyCallback = Callable[["TrafficClassificationEngine"], None]


class EngineState(str, Enum):
    """Lifecycle state of the engine."""

    INITIALIZING = "initializing"
    READY = "ready"


class TrafficClassificationEngine:
    """Classifies flows into traffic categories and scores them for anomalies.

    Lifecycle: construct -> train in background -> ready -> serve. The
    transition to ready happens at most once; a failed training run leaves
    the engine initializing for good and records the error in
    `training_error`.

    Thread safety: `classify`, `get_history`, `get_statistics` and
    `clear_history` may be called from any thread. Inference and the
    history update for one call happen under a single lock, so history
    never holds a partial update or more than `history_size` entries.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        seed: int | None = None,
        auto_start: bool = True,
    ) -> None:
        """Initialize the engine.

        Args:
            settings: Application settings. Uses global settings if not provided.
            seed: Seed for every random draw the engine makes (synthetic
                corpus, weight init, dropout, shuffling, noise feature).
                Falls back to the model settings seed.
            auto_start: Start background training immediately.

        Raises:
            ConfigurationError: If saving is requested without a model path.
        """
        self.settings = settings or get_settings()
        if self.settings.model.save_trained_model and self.settings.model.model_path is None:
            raise ConfigurationError(
                "save_trained_model requires model_path",
                details={"save_trained_model": True},
            )
        self.anomaly_threshold = self.settings.engine.anomaly_threshold
        self.history_size = self.settings.engine.history_size

        if seed is None:
            seed = self.settings.model.seed
        self.seed = seed
        self._rng = np.random.default_rng(seed)
        self._transformer = FeatureTransformer(self._rng)

        self._bundle: ModelBundle | None = None
        self._state = EngineState.INITIALIZING
        self._ready_event = threading.Event()
        self._ready_callbacks: list[ReadyCallback] = []
        self._training_thread: threading.Thread | None = None
        self.training_error: Exception | None = None

        self._history: deque[ClassificationResult] = deque(maxlen=self.history_size)
        self._lock = threading.Lock()

        if auto_start:
            self.start()

    @property
    def state(self) -> EngineState:
        """Current lifecycle state."""
        return self._state

    @property
    def training_stats(self) -> TrainingStats | None:
        """Statistics of the training run, once ready."""
        return self._bundle.stats if self._bundle else None

    @property
    def model_version(self) -> str | None:
        """Version of the loaded models, once ready."""
        return self._bundle.version if self._bundle else None

    def is_ready(self) -> bool:
        """Whether both models are trained and inference is served."""
        return self._state is EngineState.READY

    def start(self) -> None:
        """Start model initialization on a background thread.

        Calling it again while a run is in flight, or after it finished,
        does nothing.
        """
        if self._training_thread is not None:
            return

        ENGINE_READY.set(0)
        self._training_thread = threading.Thread(
            target=self._initialize_models,
            name="trafficlens-training",
            daemon=True,
        )
        self._training_thread.start()

    def wait_until_ready(self, timeout: float | None = None) -> bool:
        """Block until the engine is ready or the timeout elapses.

        Returns:
            True if the engine is ready.
        """
        self._ready_event.wait(timeout)
        return self.is_ready()

    def add_ready_callback(self, callback: ReadyCallback) -> None:
        """Register a callback for the transition to ready.

        Runs immediately on the calling thread if the engine is already
        ready, otherwise once on the training thread.
        """
        with self._lock:
            if not self.is_ready():
                self._ready_callbacks.append(callback)
                return
        callback(self)

    def classify(self, flow: FlowDescriptor) -> ClassificationResult:
        """Classify a flow and record the result.

        Never raises for model-side problems: before readiness, or if
        normalization or inference fails or yields a non-finite confidence
        or score, the default result (unknown,
        zero confidence, not anomalous) is returned and history is left
        untouched.

        Args:
            flow: Flow observation.

        Returns:
            ClassificationResult for the flow.
        """
        bundle = self._bundle
        if bundle is None:
            DEGRADED_RESULTS.labels(reason="not_ready").inc()
            return ClassificationResult.default(flow)

        with self._lock:
            try:
                started = time.perf_counter()
                features = self._transformer.transform(flow)
                category, confidence = bundle.classifier.predict(features)
                anomaly_score = bundle.detector.score(features)
                INFERENCE_LATENCY.observe(time.perf_counter() - started)
            except Exception as e:
                logger.warning(
                    "Classification failed, returning default result",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                DEGRADED_RESULTS.labels(reason="inference_error").inc()
                return ClassificationResult.default(flow)

            if not (math.isfinite(confidence) and math.isfinite(anomaly_score)):
                logger.warning(
                    "Non-finite model output, returning default result",
                    confidence=confidence,
                    anomaly_score=anomaly_score,
                )
                DEGRADED_RESULTS.labels(reason="non_finite_output").inc()
                return ClassificationResult.default(flow)

            result = ClassificationResult(
                category=category,
                confidence=confidence,
                is_anomaly=anomaly_score >= self.anomaly_threshold,
                anomaly_score=anomaly_score,
                features=flow,
            )
            # deque(maxlen) drops from the right when full
            self._history.appendleft(result)
            HISTORY_SIZE.set(len(self._history))

        CLASSIFICATIONS_TOTAL.labels(category=category.value).inc()
        if result.is_anomaly:
            ANOMALIES_DETECTED.inc()
            logger.debug(
                "Anomalous flow",
                category=category.value,
                anomaly_score=round(anomaly_score, 4),
            )

        return result

    def get_history(self, limit: int | None = None) -> list[ClassificationResult]:
        """Most recent results first.

        Args:
            limit: Maximum number of results. All retained results if None.

        Returns:
            A copy of the history.
        """
        with self._lock:
            if limit is None:
                return list(self._history)
            return list(self._history)[: max(limit, 0)]

    def get_statistics(self) -> TrafficStats:
        """Aggregate statistics recomputed from the current history."""
        return TrafficStats.from_results(self.get_history())

    def clear_history(self) -> None:
        """Drop every retained result. Models are unaffected."""
        with self._lock:
            self._history.clear()
        HISTORY_SIZE.set(0)
        logger.info("Classification history cleared")

    def get_status(self) -> dict[str, Any]:
        """Get the current status of the engine.

        Returns:
            Dictionary with engine status information.
        """
        stats = self.training_stats
        return {
            "state": self._state.value,
            "ready": self.is_ready(),
            "model_version": self.model_version,
            "anomaly_threshold": self.anomaly_threshold,
            "history_size": self.history_size,
            "history_count": len(self._history),
            "training_stats": stats.to_dict() if stats else None,
            "training_error": str(self.training_error) if self.training_error else None,
        }

    def _initialize_models(self) -> None:
        """Train or load both models, then flip to ready."""
        model_settings = self.settings.model
        manager = (
            ModelManager(model_settings.model_path)
            if model_settings.model_path is not None
            else None
        )

        try:
            if manager is not None and manager.exists():
                bundle = manager.load(anomaly_threshold=self.anomaly_threshold)
            else:
                trainer = MLTrainer(
                    settings=model_settings,
                    anomaly_threshold=self.anomaly_threshold,
                )
                started = time.perf_counter()
                bundle = trainer.train(rng=self._rng)
                TRAINING_DURATION.observe(time.perf_counter() - started)

                if manager is not None and model_settings.save_trained_model:
                    self._save_bundle(manager, bundle)
        except Exception as e:
            self.training_error = e
            TRAINING_FAILURES.inc()
            logger.error(
                "Model initialization failed, engine will stay initializing",
                error=str(e),
                error_type=type(e).__name__,
            )
            self._ready_event.set()
            return

        with self._lock:
            self._bundle = bundle
            self._state = EngineState.READY
            callbacks, self._ready_callbacks = self._ready_callbacks, []
        ENGINE_READY.set(1)
        self._ready_event.set()

        logger.info(
            "Traffic classification engine ready",
            model_version=bundle.version,
            training_accuracy=round(bundle.stats.accuracy, 4),
        )

        for callback in callbacks:
            try:
                callback(self)
            except Exception as e:
                logger.error("Ready callback failed", error=str(e))

    @staticmethod
    def _save_bundle(manager: ModelManager, bundle: ModelBundle) -> None:
        """Persist freshly trained models; a failed write does not block readiness."""
        try:
            manager.save(bundle)
        except ModelPersistenceError as e:
            logger.warning("Could not persist trained models", error=str(e))
