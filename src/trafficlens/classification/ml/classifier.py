"""ML classifier for traffic category prediction.

A feed-forward network over the 8-element feature vector with a softmax
over the eight traffic categories, wrapped for numpy-in / category-out
prediction with confidence scoring.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import torch
from torch import nn

from trafficlens.classification.constants import (
    CATEGORY_ORDER,
    FEATURE_COUNT,
    NUM_CATEGORIES,
    TrafficCategory,
)
from trafficlens.common.exceptions import ModelNotReadyError


class TrafficClassifierNet(nn.Module):
    """Multi-layer perceptron producing category logits.

    Hidden layers use ReLU. Dropout follows the first len(dropout_rates)
    hidden layers and is only active in training mode. The softmax is
    applied by `probabilities` and, during training, inside the
    cross-entropy loss.
    """

    def __init__(
        self,
        hidden_units: Sequence[int] = (64, 32, 16),
        dropout_rates: Sequence[float] = (0.3, 0.2),
        input_size: int = FEATURE_COUNT,
        num_classes: int = NUM_CATEGORIES,
    ) -> None:
        super().__init__()
        self.hidden_units = list(hidden_units)
        self.dropout_rates = list(dropout_rates)

        layers: list[nn.Module] = []
        in_features = input_size
        for i, units in enumerate(self.hidden_units):
            layers.append(nn.Linear(in_features, units))
            layers.append(nn.ReLU())
            if i < len(self.dropout_rates) and self.dropout_rates[i] > 0:
                layers.append(nn.Dropout(self.dropout_rates[i]))
            in_features = units
        layers.append(nn.Linear(in_features, num_classes))
        self.layers = nn.Sequential(*layers)

    def forward(self, features: torch.Tensor) -> torch.Tensor:
        return self.layers(features)

    def probabilities(self, features: torch.Tensor) -> torch.Tensor:
        """Softmax distribution over categories; rows sum to 1."""
        return torch.softmax(self.forward(features), dim=-1)


class MLClassifier:
    """Traffic classifier with confidence scoring.

    Wraps a trained TrafficClassifierNet. The predicted category is the
    first index of maximum probability in category order; the confidence
    is that probability.
    """

    def __init__(
        self,
        model: TrafficClassifierNet | None = None,
        model_version: str | None = None,
    ) -> None:
        """Initialize the ML classifier.

        Args:
            model: Trained network.
            model_version: Version string for the model.
        """
        self.model = model
        self.model_version = model_version

    @property
    def is_ready(self) -> bool:
        """Check if model is loaded and ready for predictions."""
        return self.model is not None

    @property
    def classes(self) -> list[str]:
        """Return the list of class names in output order."""
        return [c.value for c in CATEGORY_ORDER]

    def probabilities(self, features: np.ndarray) -> np.ndarray:
        """Compute the category distribution for one or more vectors.

        Args:
            features: 1D vector or 2D matrix of feature vectors.

        Returns:
            Array of shape (n_samples, 8).

        Raises:
            ModelNotReadyError: If no model is loaded.
        """
        if self.model is None:
            raise ModelNotReadyError("Classifier not trained")

        if features.ndim == 1:
            features = features.reshape(1, -1)

        self.model.eval()
        with torch.no_grad():
            inputs = torch.as_tensor(features, dtype=torch.float32)
            return self.model.probabilities(inputs).numpy()

    def predict(self, features: np.ndarray) -> tuple[TrafficCategory, float]:
        """Predict traffic category with confidence score.

        Args:
            features: Feature vector from FeatureTransformer.

        Returns:
            Tuple of (predicted_category, confidence).

        Raises:
            ModelNotReadyError: If no model is loaded.
        """
        probas = self.probabilities(features)[0]
        predicted_idx = int(np.argmax(probas))
        return CATEGORY_ORDER[predicted_idx], float(probas[predicted_idx])

    def predict_proba(self, features: np.ndarray) -> dict[str, float]:
        """Get probability distribution over all categories.

        Args:
            features: Feature vector from FeatureTransformer.

        Returns:
            Dictionary mapping category names to probabilities.
        """
        probas = self.probabilities(features)[0]
        return {
            class_name: float(prob)
            for class_name, prob in zip(self.classes, probas, strict=True)
        }

    def predict_batch(self, features: np.ndarray) -> list[tuple[TrafficCategory, float]]:
        """Batch predict traffic categories.

        Args:
            features: 2D feature array of shape (n_samples, 8).

        Returns:
            List of (predicted_category, confidence) tuples.
        """
        probas = self.probabilities(features)
        predicted_indices = np.argmax(probas, axis=1)
        confidences = probas[np.arange(len(probas)), predicted_indices]
        return [
            (CATEGORY_ORDER[int(idx)], float(conf))
            for idx, conf in zip(predicted_indices, confidences, strict=True)
        ]
