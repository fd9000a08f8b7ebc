"""Unit tests for the traffic classification engine."""

import statistics
import threading
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from trafficlens.classification.constants import FlowProtocol, TrafficCategory
from trafficlens.classification.engine import EngineState, TrafficClassificationEngine
from trafficlens.classification.ml.synthetic import SyntheticFlowGenerator
from trafficlens.classification.ml.trainer import MLTrainer
from trafficlens.common.config import Settings
from trafficlens.common.exceptions import TrainingError

READY_TIMEOUT = 120.0
CORPUS_SEED = 1234  # seed of the session-scoped trained_engine fixture


def _quick_engine(history_size: int = 100, seed: int = 7, **kwargs) -> TrafficClassificationEngine:
    settings = Settings(
        model={"training_samples": 64, "epochs": 2, "batch_size": 16},
        engine={"history_size": history_size},
    )
    return TrafficClassificationEngine(settings=settings, seed=seed, **kwargs)


@pytest.mark.unit
class TestEngineLifecycle:
    """Test cases for engine initialization and readiness."""

    def test_idle_engine_is_initializing(self, idle_engine: TrafficClassificationEngine):
        """Test an unstarted engine is not ready."""
        assert idle_engine.state is EngineState.INITIALIZING
        assert idle_engine.is_ready() is False
        assert idle_engine.training_stats is None
        assert idle_engine.model_version is None

    def test_default_result_before_ready(self, idle_engine: TrafficClassificationEngine, flow_factory):
        """Test classify answers immediately with the default result."""
        flow = flow_factory()
        result = idle_engine.classify(flow)

        assert result.category is TrafficCategory.UNKNOWN
        assert result.confidence == 0.0
        assert result.is_anomaly is False
        assert result.anomaly_score == 0.0
        assert result.features is flow
        assert idle_engine.get_history() == []

    def test_becomes_ready(self):
        """Test background training flips the engine to ready."""
        engine = _quick_engine()

        assert engine.wait_until_ready(timeout=READY_TIMEOUT)
        assert engine.state is EngineState.READY
        assert engine.training_error is None
        assert engine.training_stats.training_samples == 64
        assert engine.model_version.startswith("synthetic-")

    def test_start_is_idempotent(self):
        """Test a second start does not retrain."""
        engine = _quick_engine(auto_start=False)
        engine.start()
        thread = engine._training_thread
        engine.start()

        assert engine._training_thread is thread
        assert engine.wait_until_ready(timeout=READY_TIMEOUT)

    def test_training_failure_keeps_engine_initializing(self, monkeypatch, flow_factory):
        """Test a failed training run is recorded and never retried."""

        def broken(self, rng=None):
            raise TrainingError("boom")

        monkeypatch.setattr(MLTrainer, "train", broken)
        engine = _quick_engine()

        assert engine.wait_until_ready(timeout=READY_TIMEOUT) is False
        assert engine.state is EngineState.INITIALIZING
        assert isinstance(engine.training_error, TrainingError)
        assert engine.classify(flow_factory()).category is TrafficCategory.UNKNOWN
        assert engine.get_status()["training_error"] == "boom"

    def test_ready_callback_after_training(self):
        """Test callbacks registered early run once the engine is ready."""
        engine = _quick_engine(auto_start=False)
        called = threading.Event()
        seen: list[TrafficClassificationEngine] = []

        def on_ready(ready_engine: TrafficClassificationEngine) -> None:
            seen.append(ready_engine)
            called.set()

        engine.add_ready_callback(on_ready)
        engine.start()

        assert called.wait(timeout=READY_TIMEOUT)
        assert seen == [engine]

    def test_ready_callback_when_already_ready(self, trained_engine: TrafficClassificationEngine):
        """Test callbacks run immediately on a ready engine."""
        seen = []
        trained_engine.add_ready_callback(seen.append)
        assert seen == [trained_engine]

    def test_seeded_engines_agree(self, flow_factory):
        """Test engines with the same seed produce the same results."""
        first = _quick_engine(seed=21)
        second = _quick_engine(seed=21)
        assert first.wait_until_ready(timeout=READY_TIMEOUT)
        assert second.wait_until_ready(timeout=READY_TIMEOUT)

        flow = flow_factory()
        a = first.classify(flow)
        b = second.classify(flow)

        assert a.category is b.category
        assert a.confidence == pytest.approx(b.confidence, rel=1e-5)
        assert a.anomaly_score == pytest.approx(b.anomaly_score, rel=1e-5)

    def test_get_status(self, idle_engine: TrafficClassificationEngine):
        """Test status reporting."""
        status = idle_engine.get_status()

        assert status["state"] == "initializing"
        assert status["ready"] is False
        assert status["anomaly_threshold"] == 0.1
        assert status["history_size"] == 100
        assert status["history_count"] == 0
        assert status["training_stats"] is None


@pytest.mark.unit
class TestEngineHistory:
    """Test cases for result history and statistics."""

    def test_classify_records_result(self, engine: TrafficClassificationEngine, flow_factory):
        """Test a ready engine records each result."""
        result = engine.classify(flow_factory())

        assert isinstance(result.category, TrafficCategory)
        assert 0.0 < result.confidence <= 1.0
        assert result.anomaly_score >= 0.0
        assert result.is_anomaly == (result.anomaly_score >= engine.anomaly_threshold)
        assert engine.get_history() == [result]

    def test_history_is_bounded_most_recent_first(
        self, engine: TrafficClassificationEngine, flow_factory
    ):
        """Test history keeps the newest history_size results."""
        for i in range(150):
            engine.classify(flow_factory(source_port=50000 + i))

        history = engine.get_history()
        assert len(history) == 100
        assert history[0].features.source_port == 50149
        assert history[-1].features.source_port == 50050

    @pytest.mark.parametrize(("limit", "expected"), [(5, 5), (0, 0), (-3, 0), (None, 10)])
    def test_history_limit(self, engine: TrafficClassificationEngine, flow_factory, limit, expected):
        """Test the history limit."""
        for i in range(10):
            engine.classify(flow_factory(source_port=50000 + i))

        history = engine.get_history(limit=limit)
        assert len(history) == expected
        if expected:
            assert history[0].features.source_port == 50009

    def test_history_is_a_copy(self, engine: TrafficClassificationEngine, flow_factory):
        """Test callers cannot mutate retained history."""
        engine.classify(flow_factory())
        engine.get_history().clear()
        assert len(engine.get_history()) == 1

    def test_clear_history(self, engine: TrafficClassificationEngine, flow_factory):
        """Test clearing history keeps the models."""
        engine.classify(flow_factory())
        engine.clear_history()

        assert engine.get_history() == []
        assert engine.get_statistics().total == 0
        assert engine.is_ready()
        assert engine.classify(flow_factory()).confidence > 0.0

    def test_statistics(self, engine: TrafficClassificationEngine, flow_factory):
        """Test statistics are computed from history."""
        for i in range(30):
            engine.classify(flow_factory(source_port=50000 + i))

        history = engine.get_history()
        stats = engine.get_statistics()

        assert stats.total == 30
        assert sum(stats.by_category.values()) == stats.total
        assert stats.anomalies == sum(r.is_anomaly for r in history)
        assert stats.avg_confidence == pytest.approx(
            statistics.fmean(r.confidence for r in history)
        )

    def test_small_history_size(self, flow_factory):
        """Test the history bound comes from settings."""
        engine = _quick_engine(history_size=5)
        assert engine.wait_until_ready(timeout=READY_TIMEOUT)

        for i in range(8):
            engine.classify(flow_factory(source_port=50000 + i))
        assert [r.features.source_port for r in engine.get_history()] == [
            50007, 50006, 50005, 50004, 50003,
        ]

    def test_inference_failure_returns_default(
        self, engine: TrafficClassificationEngine, flow_factory, monkeypatch
    ):
        """Test a failing model degrades to the default result."""
        engine.classify(flow_factory())

        def broken(features):
            raise RuntimeError("bad weights")

        monkeypatch.setattr(engine._bundle.classifier, "predict", broken)
        result = engine.classify(flow_factory())

        assert result.category is TrafficCategory.UNKNOWN
        assert result.confidence == 0.0
        assert len(engine.get_history()) == 1

    @pytest.mark.parametrize("output", ["confidence", "anomaly_score"])
    def test_non_finite_output_returns_default(
        self, engine: TrafficClassificationEngine, flow_factory, monkeypatch, output: str
    ):
        """Test a NaN from either model degrades to the default result."""
        engine.classify(flow_factory())
        before = engine.get_statistics()

        if output == "confidence":
            monkeypatch.setattr(
                engine._bundle.classifier,
                "predict",
                lambda features: (TrafficCategory.WEB, float("nan")),
            )
        else:
            monkeypatch.setattr(engine._bundle.detector, "score", lambda features: float("nan"))
        result = engine.classify(flow_factory())

        assert result.category is TrafficCategory.UNKNOWN
        assert result.confidence == 0.0
        assert result.anomaly_score == 0.0
        assert result.is_anomaly is False
        assert len(engine.get_history()) == 1
        assert engine.get_statistics() == before


@pytest.mark.unit
class TestEngineConcurrency:
    """Test cases for concurrent classification."""

    def test_concurrent_classify_records_every_result(
        self, engine: TrafficClassificationEngine, flow_factory
    ):
        """Test no concurrent result is lost or duplicated."""
        flows = [flow_factory(source_port=50000 + i) for i in range(60)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(engine.classify, flows))

        history = engine.get_history()
        assert len(results) == 60
        assert len(history) == 60
        assert {r.features.source_port for r in history} == {f.source_port for f in flows}

    def test_concurrent_classify_respects_bound(
        self, engine: TrafficClassificationEngine, flow_factory
    ):
        """Test concurrent writers never exceed the history bound."""
        flows = [flow_factory(source_port=50000 + i) for i in range(300)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            futures = [pool.submit(engine.classify, flow) for flow in flows]
            sizes = [len(engine.get_history()) for _ in range(50)]
            for future in futures:
                future.result()

        assert max(sizes) <= 100
        history = engine.get_history()
        assert len(history) == 100
        assert len({r.features.source_port for r in history}) == 100


@pytest.mark.unit
@pytest.mark.slow
class TestTrainedModels:
    """Behavioral checks against the default trained engine."""

    def test_extreme_flow_is_anomalous(self, engine: TrafficClassificationEngine, flow_factory):
        """Test a flow saturating every feature is flagged."""
        flow = flow_factory(
            packet_size=2000,
            protocol=FlowProtocol.HTTPS,
            source_port=65535,
            dest_port=65535,
            bytes_per_second=10_000_000,
            packets_per_second=2000,
            connection_duration=3600,
        )
        flagged = [engine.classify(flow).is_anomaly for _ in range(20)]

        # the noise feature varies per call
        assert sum(flagged) >= 18

    def test_synthetic_traffic_is_mostly_normal(self, engine: TrafficClassificationEngine):
        """Test in-distribution flows reconstruct below the threshold."""
        generator = SyntheticFlowGenerator(seed=99)
        scores = [
            engine.classify(generator.generate_random_flow()[0]).anomaly_score
            for _ in range(200)
        ]
        assert statistics.median(scores) < engine.anomaly_threshold

    def test_classifies_fresh_synthetic_flows(self, engine: TrafficClassificationEngine):
        """Test held-out synthetic flows are mostly classified correctly."""
        generator = SyntheticFlowGenerator(rng=np.random.default_rng(2024))
        correct = 0
        for _ in range(200):
            flow, category = generator.generate_random_flow()
            correct += engine.classify(flow).category is category

        assert correct / 200 > 0.6

    def test_training_corpus_flow_is_normal(self, engine: TrafficClassificationEngine):
        """Test a flow from the engine's own training corpus is not flagged."""
        # the session engine trains on the corpus drawn from this seed
        rng = np.random.default_rng(CORPUS_SEED)
        generator = SyntheticFlowGenerator(rng=rng)
        dataset = generator.generate_dataset(n_samples=engine.settings.model.training_samples)

        scores = engine._bundle.detector.score_batch(dataset.features)
        assert statistics.median(scores.tolist()) < engine.anomaly_threshold

        replay = SyntheticFlowGenerator(rng=np.random.default_rng(CORPUS_SEED))
        flows = [replay.generate_random_flow()[0] for _ in range(dataset.n_samples)]
        flow = flows[int(np.argmin(scores))]

        assert engine.classify(flow).is_anomaly is False

    def test_training_stats_recorded(self, trained_engine: TrafficClassificationEngine):
        """Test stats from the default training run."""
        stats = trained_engine.training_stats
        assert stats.training_samples == 1000
        assert stats.epochs == 50
        assert stats.accuracy > 0.6
