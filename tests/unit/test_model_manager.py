"""Unit tests for model persistence."""

from pathlib import Path

import joblib
import numpy as np
import pytest

from trafficlens.classification.engine import TrafficClassificationEngine
from trafficlens.classification.ml.model_manager import ModelManager, TrainingStats
from trafficlens.classification.ml.trainer import MLTrainer
from trafficlens.common.config import Settings
from trafficlens.common.exceptions import ConfigurationError, ModelPersistenceError

READY_TIMEOUT = 120.0


@pytest.fixture
def bundle(small_settings: Settings):
    """Bundle from a short training run."""
    return MLTrainer(settings=small_settings.model).train()


@pytest.mark.unit
class TestTrainingStats:
    """Test cases for TrainingStats."""

    def test_dict_round_trip(self):
        """Test stats survive conversion to and from a dictionary."""
        stats = TrainingStats(
            training_samples=10,
            epochs=2,
            accuracy=0.5,
            class_distribution={"web": 10},
        )
        data = stats.to_dict()

        assert isinstance(data["trained_at"], str)
        assert TrainingStats.from_dict(data) == stats


@pytest.mark.unit
class TestModelManager:
    """Test cases for ModelManager."""

    def test_save_and_load(self, bundle, tmp_path: Path, rng: np.random.Generator):
        """Test a loaded bundle predicts like the saved one."""
        manager = ModelManager(tmp_path / "models" / "traffic.joblib")
        path = manager.save(bundle)

        assert path.exists()
        assert manager.exists()

        loaded = manager.load(anomaly_threshold=0.25)
        features = rng.random((10, 8)).astype(np.float32)

        assert loaded.version == bundle.version
        assert loaded.stats == bundle.stats
        assert loaded.detector.threshold == 0.25
        np.testing.assert_allclose(
            loaded.classifier.probabilities(features),
            bundle.classifier.probabilities(features),
            rtol=1e-6,
        )
        np.testing.assert_allclose(
            loaded.detector.score_batch(features),
            bundle.detector.score_batch(features),
            rtol=1e-6,
        )

    def test_load_missing_file(self, tmp_path: Path):
        """Test loading a missing bundle raises FileNotFoundError."""
        manager = ModelManager(tmp_path / "missing.joblib")
        assert manager.exists() is False
        with pytest.raises(FileNotFoundError):
            manager.load()

    def test_load_unsupported_format(self, tmp_path: Path):
        """Test an unknown bundle format is rejected."""
        path = tmp_path / "old.joblib"
        joblib.dump({"format_version": 99}, path)

        with pytest.raises(ModelPersistenceError, match="unsupported bundle format"):
            ModelManager(path).load()

    def test_save_without_models(self, bundle, tmp_path: Path):
        """Test an untrained bundle cannot be saved."""
        bundle.classifier.model = None
        with pytest.raises(ModelPersistenceError):
            ModelManager(tmp_path / "x.joblib").save(bundle)


@pytest.mark.unit
class TestEnginePersistence:
    """Test cases for engine load and save through settings."""

    def test_engine_saves_trained_models(self, tmp_path: Path):
        """Test save_trained_model writes the bundle after training."""
        path = tmp_path / "engine.joblib"
        settings = Settings(
            model={
                "training_samples": 64,
                "epochs": 2,
                "batch_size": 16,
                "model_path": path,
                "save_trained_model": True,
            },
        )
        engine = TrafficClassificationEngine(settings=settings, seed=3)

        assert engine.wait_until_ready(timeout=READY_TIMEOUT)
        assert path.exists()

    def test_engine_does_not_save_by_default(self, tmp_path: Path):
        """Test a configured path alone does not trigger a save."""
        path = tmp_path / "engine.joblib"
        settings = Settings(
            model={"training_samples": 64, "epochs": 2, "batch_size": 16, "model_path": path},
        )
        engine = TrafficClassificationEngine(settings=settings, seed=3)

        assert engine.wait_until_ready(timeout=READY_TIMEOUT)
        assert not path.exists()

    def test_save_requires_path(self):
        """Test saving without a destination is a configuration error."""
        settings = Settings(model={"save_trained_model": True})
        with pytest.raises(ConfigurationError):
            TrafficClassificationEngine(settings=settings, auto_start=False)

    def test_engine_loads_saved_models(self, bundle, tmp_path: Path, monkeypatch):
        """Test an engine with an existing bundle skips training."""
        path = ModelManager(tmp_path / "saved.joblib").save(bundle)

        def no_training(self, rng=None):
            raise AssertionError("should not train")

        monkeypatch.setattr(MLTrainer, "train", no_training)
        engine = TrafficClassificationEngine(
            settings=Settings(model={"model_path": path}),
            seed=3,
        )

        assert engine.wait_until_ready(timeout=READY_TIMEOUT)
        assert engine.model_version == bundle.version
        assert engine.training_stats == bundle.stats
