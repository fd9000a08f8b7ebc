"""Training dataset utilities for ML classification.

Provides the labeled feature matrix shared by the classifier and the
autoencoder, and a builder that turns flows into one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from trafficlens.classification.constants import CATEGORY_ORDER, NUM_CATEGORIES, TrafficCategory
from trafficlens.classification.ml.feature_transformer import FeatureTransformer
from trafficlens.common.logging import get_logger

if TYPE_CHECKING:
    from trafficlens.classification.flow import FlowDescriptor

logger = get_logger(__name__)


@dataclass
class TrainingDataset:
    """A dataset for ML model training.

    Attributes:
        features: Feature matrix of shape (n_samples, 8).
        labels: Category index array of shape (n_samples,).
        class_names: Category names in index order.
    """

    features: np.ndarray
    labels: np.ndarray
    class_names: list[str] = field(
        default_factory=lambda: [c.value for c in CATEGORY_ORDER]
    )

    @property
    def n_samples(self) -> int:
        """Number of samples in the dataset."""
        return len(self.labels)

    @property
    def n_features(self) -> int:
        """Number of features per sample."""
        return self.features.shape[1] if len(self.features.shape) > 1 else 0

    @property
    def n_classes(self) -> int:
        """Number of classes."""
        return len(self.class_names)

    def one_hot(self) -> np.ndarray:
        """Return labels as a one-hot matrix of shape (n_samples, n_classes)."""
        encoded = np.zeros((self.n_samples, self.n_classes), dtype=np.float32)
        encoded[np.arange(self.n_samples), self.labels] = 1.0
        return encoded

    def class_distribution(self) -> dict[str, int]:
        """Get the count of samples per class present in the dataset.

        Returns:
            Dictionary mapping class names to sample counts.
        """
        unique, counts = np.unique(self.labels, return_counts=True)
        return {
            self.class_names[int(label)]: int(count)
            for label, count in zip(unique, counts, strict=True)
        }


class DatasetBuilder:
    """Builds training datasets from labeled flows."""

    def __init__(self, transformer: FeatureTransformer | None = None) -> None:
        """Initialize the dataset builder.

        Args:
            transformer: Feature transformer. Its generator draws the noise column.
        """
        self.transformer = transformer or FeatureTransformer()

    def from_flows(
        self,
        flows: list[FlowDescriptor],
        labels: list[TrafficCategory | int],
    ) -> TrainingDataset:
        """Build a dataset from flows and their categories.

        Args:
            flows: Flow observations.
            labels: Category (or category index) for each flow.

        Returns:
            TrainingDataset over all eight categories.

        Raises:
            ValueError: If lengths differ or a label is out of range.
        """
        if len(flows) != len(labels):
            raise ValueError(
                f"Got {len(flows)} flows but {len(labels)} labels"
            )

        indices = np.array(
            [
                label.index if isinstance(label, TrafficCategory) else int(label)
                for label in labels
            ],
            dtype=np.int64,
        )
        if indices.size and (indices.min() < 0 or indices.max() >= NUM_CATEGORIES):
            raise ValueError(f"Labels must be in 0..{NUM_CATEGORIES - 1}")

        features = self.transformer.transform_batch(flows)

        logger.debug(
            "Built dataset from flows",
            samples=len(flows),
        )

        return TrainingDataset(features=features, labels=indices)
