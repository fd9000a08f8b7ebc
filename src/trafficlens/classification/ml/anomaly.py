"""Autoencoder anomaly detector.

The autoencoder is trained to reconstruct normal feature vectors. The mean
squared error between a vector and its reconstruction is the anomaly score;
a flow is anomalous when the score reaches the configured threshold.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import torch
from torch import nn

from trafficlens.classification.constants import FEATURE_COUNT
from trafficlens.common.exceptions import ModelNotReadyError


class FlowAutoencoder(nn.Module):
    """Dense encoder-decoder trained on synthetic traffic.

    With the default sizes the encoder is 8->16->8->4 and the decoder
    mirrors it 4->8->16->8. All hidden layers use ReLU; the output layer
    uses a sigmoid so reconstructions stay in [0, 1].
    """

    def __init__(
        self,
        encoder_units: Sequence[int] = (16, 8, 4),
        input_size: int = FEATURE_COUNT,
    ) -> None:
        super().__init__()
        self.encoder_units = list(encoder_units)

        encoder_layers: list[nn.Module] = []
        in_features = input_size
        for units in self.encoder_units:
            encoder_layers += [nn.Linear(in_features, units), nn.ReLU()]
            in_features = units
        self.encoder = nn.Sequential(*encoder_layers)

        decoder_layers: list[nn.Module] = []
        for units in reversed(self.encoder_units[:-1]):
            decoder_layers += [nn.Linear(in_features, units), nn.ReLU()]
            in_features = units
        decoder_layers += [nn.Linear(in_features, input_size), nn.Sigmoid()]
        self.decoder = nn.Sequential(*decoder_layers)

    def forward(self, features: torch.Tensor) -> torch.Tensor:
        return self.decoder(self.encoder(features))

    @staticmethod
    def reconstruction_error(inputs: torch.Tensor, reconstruction: torch.Tensor) -> torch.Tensor:
        """Mean squared error per sample."""
        return torch.mean((inputs - reconstruction) ** 2, dim=-1)


class AnomalyDetector:
    """Reconstruction-error anomaly scoring around a trained autoencoder."""

    def __init__(
        self,
        model: FlowAutoencoder | None = None,
        threshold: float = 0.1,
        model_version: str | None = None,
    ) -> None:
        """Initialize the detector.

        Args:
            model: Trained autoencoder.
            threshold: Scores at or above this are anomalous.
            model_version: Version string for the model.
        """
        self.model = model
        self.threshold = threshold
        self.model_version = model_version

    @property
    def is_ready(self) -> bool:
        """Check if model is loaded and ready for scoring."""
        return self.model is not None

    def reconstruct(self, features: np.ndarray) -> np.ndarray:
        """Reconstruct one or more feature vectors.

        Raises:
            ModelNotReadyError: If no model is loaded.
        """
        if self.model is None:
            raise ModelNotReadyError("Autoencoder not trained")

        if features.ndim == 1:
            features = features.reshape(1, -1)

        self.model.eval()
        with torch.no_grad():
            return self.model(torch.as_tensor(features, dtype=torch.float32)).numpy()

    def score_batch(self, features: np.ndarray) -> np.ndarray:
        """Anomaly score (MSE) for each row of a feature matrix."""
        if self.model is None:
            raise ModelNotReadyError("Autoencoder not trained")

        if features.ndim == 1:
            features = features.reshape(1, -1)

        self.model.eval()
        with torch.no_grad():
            inputs = torch.as_tensor(features, dtype=torch.float32)
            errors = FlowAutoencoder.reconstruction_error(inputs, self.model(inputs))
        return errors.numpy()

    def score(self, features: np.ndarray) -> float:
        """Anomaly score (MSE) for a single feature vector."""
        return float(self.score_batch(features)[0])

    def is_anomaly(self, score: float) -> bool:
        """Whether a score reaches the threshold."""
        return score >= self.threshold

    def evaluate(self, features: np.ndarray) -> tuple[float, bool]:
        """Score a vector and flag it.

        Returns:
            Tuple of (anomaly_score, is_anomaly).
        """
        score = self.score(features)
        return score, self.is_anomaly(score)
