"""Model manager for ML classification.

Handles optional persistence of trained weights so an engine can skip the
synthetic training run. By default nothing is persisted and every engine
trains from scratch.
"""

from __future__ import annotations

import hashlib
import pickle
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import joblib
import numpy as np
import torch

from trafficlens.classification.ml.anomaly import AnomalyDetector, FlowAutoencoder
from trafficlens.classification.ml.classifier import MLClassifier, TrafficClassifierNet
from trafficlens.common.exceptions import ModelPersistenceError
from trafficlens.common.logging import get_logger

logger = get_logger(__name__)

BUNDLE_FORMAT_VERSION = 1


@dataclass
class TrainingStats:
    """Statistics from model training."""

    training_samples: int
    epochs: int
    accuracy: float
    f1_score: float | None = None
    classifier_loss: float | None = None
    reconstruction_loss: float | None = None
    class_distribution: dict[str, int] | None = None
    duration_seconds: float | None = None
    trained_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage."""
        data = asdict(self)
        data["trained_at"] = self.trained_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrainingStats:
        """Rebuild from a stored dictionary."""
        data = dict(data)
        if isinstance(data.get("trained_at"), str):
            data["trained_at"] = datetime.fromisoformat(data["trained_at"])
        return cls(**data)


@dataclass
class ModelBundle:
    """Both trained models plus the statistics of the run that produced them."""

    classifier: MLClassifier
    detector: AnomalyDetector
    stats: TrainingStats
    version: str


class ModelManager:
    """Save and load trained model bundles with joblib."""

    def __init__(self, model_path: Path) -> None:
        """Initialize the model manager.

        Args:
            model_path: File the bundle is written to and read from.
        """
        self.model_path = Path(model_path)

    def exists(self) -> bool:
        """Check if a saved bundle exists."""
        return self.model_path.exists()

    def save(self, bundle: ModelBundle) -> Path:
        """Write a bundle to disk.

        Args:
            bundle: Trained models to persist.

        Returns:
            Path of the written file.

        Raises:
            ModelPersistenceError: If either model is missing or the write fails.
        """
        classifier_net = bundle.classifier.model
        autoencoder = bundle.detector.model
        if classifier_net is None or autoencoder is None:
            raise ModelPersistenceError("No trained models to save")

        payload = {
            "format_version": BUNDLE_FORMAT_VERSION,
            "version": bundle.version,
            "classifier": {
                "hidden_units": classifier_net.hidden_units,
                "dropout_rates": classifier_net.dropout_rates,
                "state": _to_numpy(classifier_net.state_dict()),
            },
            "autoencoder": {
                "encoder_units": autoencoder.encoder_units,
                "state": _to_numpy(autoencoder.state_dict()),
            },
            "stats": bundle.stats.to_dict(),
        }

        try:
            self.model_path.parent.mkdir(parents=True, exist_ok=True)
            joblib.dump(payload, self.model_path)
        except OSError as e:
            raise ModelPersistenceError(
                f"Failed to save models to {self.model_path}: {e}",
                cause=e,
            ) from e

        logger.info(
            "Models saved",
            path=str(self.model_path),
            version=bundle.version,
            checksum=self._calculate_checksum(self.model_path),
        )
        return self.model_path

    def load(self, anomaly_threshold: float = 0.1) -> ModelBundle:
        """Read a bundle from disk.

        Args:
            anomaly_threshold: Threshold for the rebuilt detector. Thresholds
                are configuration and are never persisted.

        Returns:
            Loaded ModelBundle.

        Raises:
            FileNotFoundError: If no bundle exists.
            ModelPersistenceError: If the bundle cannot be decoded.
        """
        if not self.exists():
            raise FileNotFoundError(f"Model file not found: {self.model_path}")

        try:
            payload = joblib.load(self.model_path)
            if payload.get("format_version") != BUNDLE_FORMAT_VERSION:
                raise ValueError(
                    f"unsupported bundle format {payload.get('format_version')!r}"
                )

            classifier_net = TrafficClassifierNet(
                hidden_units=payload["classifier"]["hidden_units"],
                dropout_rates=payload["classifier"]["dropout_rates"],
            )
            classifier_net.load_state_dict(_to_tensors(payload["classifier"]["state"]))

            autoencoder = FlowAutoencoder(
                encoder_units=payload["autoencoder"]["encoder_units"],
            )
            autoencoder.load_state_dict(_to_tensors(payload["autoencoder"]["state"]))

            version = payload["version"]
            stats = TrainingStats.from_dict(payload["stats"])
        except (
            KeyError,
            TypeError,
            ValueError,
            RuntimeError,
            EOFError,
            pickle.UnpicklingError,
        ) as e:
            raise ModelPersistenceError(
                f"Failed to load models from {self.model_path}: {e}",
                cause=e,
            ) from e

        logger.info(
            "Models loaded",
            path=str(self.model_path),
            version=version,
        )

        return ModelBundle(
            classifier=MLClassifier(model=classifier_net, model_version=version),
            detector=AnomalyDetector(
                model=autoencoder,
                threshold=anomaly_threshold,
                model_version=version,
            ),
            stats=stats,
            version=version,
        )

    @staticmethod
    def _calculate_checksum(path: Path) -> str:
        """Calculate SHA256 checksum of a file."""
        sha256 = hashlib.sha256()
        with path.open("rb") as f:
            for chunk in iter(lambda: f.read(8192), b""):
                sha256.update(chunk)
        return sha256.hexdigest()


def _to_numpy(state: dict[str, torch.Tensor]) -> dict[str, np.ndarray]:
    return {name: tensor.detach().cpu().numpy() for name, tensor in state.items()}


def _to_tensors(state: dict[str, np.ndarray]) -> dict[str, torch.Tensor]:
    return {name: torch.from_numpy(np.asarray(array)) for name, array in state.items()}
