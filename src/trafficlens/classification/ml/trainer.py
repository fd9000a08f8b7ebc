"""ML model trainer for traffic classification.

Builds the synthetic corpus and fits the category classifier and the
anomaly autoencoder on it. Both models see the same feature matrix: the
classifier against one-hot category labels, the autoencoder against the
features themselves.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime

import numpy as np
import torch
from sklearn.metrics import accuracy_score, f1_score
from torch import nn, optim
from torch.utils.data import DataLoader, TensorDataset

from trafficlens.classification.ml.anomaly import AnomalyDetector, FlowAutoencoder
from trafficlens.classification.ml.classifier import MLClassifier, TrafficClassifierNet
from trafficlens.classification.ml.dataset import TrainingDataset
from trafficlens.classification.ml.feature_transformer import FeatureTransformer
from trafficlens.classification.ml.model_manager import ModelBundle, TrainingStats
from trafficlens.classification.ml.synthetic import SyntheticFlowGenerator
from trafficlens.common.config import ModelSettings, get_settings
from trafficlens.common.exceptions import TrainingError
from trafficlens.common.logging import get_logger

logger = get_logger(__name__)


class MLTrainer:
    """Trains both traffic models from synthetic data.

    Training phases:
    1. Generate the synthetic labeled corpus
    2. Fit the classifier (categorical cross-entropy)
    3. Fit the autoencoder (mean squared reconstruction error)
    4. Measure training-set accuracy and reconstruction loss
    """

    def __init__(
        self,
        settings: ModelSettings | None = None,
        anomaly_threshold: float | None = None,
    ) -> None:
        """Initialize the trainer.

        Args:
            settings: Model settings. Uses global settings if not provided.
            anomaly_threshold: Threshold handed to the trained detector.
        """
        self.settings = settings or get_settings().model
        if anomaly_threshold is None:
            anomaly_threshold = get_settings().engine.anomaly_threshold
        self.anomaly_threshold = anomaly_threshold

    def train(self, rng: np.random.Generator | None = None) -> ModelBundle:
        """Run the full training procedure.

        Args:
            rng: Random source for the corpus and for seeding torch. Falls
                back to a generator seeded from settings.

        Returns:
            ModelBundle with both trained models.

        Raises:
            TrainingError: If any phase fails.
        """
        if rng is None:
            rng = np.random.default_rng(self.settings.seed)

        started = time.perf_counter()
        logger.info(
            "Training traffic models",
            samples=self.settings.training_samples,
            epochs=self.settings.epochs,
            batch_size=self.settings.batch_size,
            seed=self.settings.seed,
        )

        try:
            generator = SyntheticFlowGenerator(rng=rng)
            dataset = generator.generate_dataset(
                n_samples=self.settings.training_samples,
                transformer=FeatureTransformer(rng),
            )
            torch_seed = int(rng.integers(0, 2**31 - 1))

            # Weight init and dropout draw from torch's global generator;
            # fork it so a seeded run does not leak state to the caller.
            with torch.random.fork_rng(devices=[]):
                torch.manual_seed(torch_seed)
                shuffle_generator = torch.Generator().manual_seed(torch_seed)

                classifier_net = TrafficClassifierNet(
                    hidden_units=self.settings.classifier_hidden_units,
                    dropout_rates=self.settings.dropout_rates,
                )
                classifier_loss = self.fit_classifier(
                    classifier_net, dataset, shuffle_generator
                )

                autoencoder = FlowAutoencoder(encoder_units=self.settings.encoder_units)
                reconstruction_loss = self.fit_autoencoder(
                    autoencoder, dataset, shuffle_generator
                )
        except TrainingError:
            raise
        except Exception as e:
            logger.exception("Training failed", error=str(e))
            raise TrainingError(f"Training failed: {e}", cause=e) from e

        version = f"synthetic-{datetime.now(UTC).strftime('%Y%m%d-%H%M%S')}"
        classifier = MLClassifier(model=classifier_net, model_version=version)
        detector = AnomalyDetector(
            model=autoencoder,
            threshold=self.anomaly_threshold,
            model_version=version,
        )

        accuracy, f1_macro = self._evaluate(classifier, dataset)
        stats = TrainingStats(
            training_samples=dataset.n_samples,
            epochs=self.settings.epochs,
            accuracy=accuracy,
            f1_score=f1_macro,
            classifier_loss=classifier_loss,
            reconstruction_loss=reconstruction_loss,
            class_distribution=dataset.class_distribution(),
            duration_seconds=time.perf_counter() - started,
        )

        logger.info(
            "Training completed",
            version=version,
            accuracy=f"{accuracy:.2%}",
            f1_macro=f"{f1_macro:.2%}",
            classifier_loss=round(classifier_loss, 4),
            reconstruction_loss=round(reconstruction_loss, 4),
            duration_seconds=round(stats.duration_seconds, 2),
        )

        return ModelBundle(
            classifier=classifier,
            detector=detector,
            stats=stats,
            version=version,
        )

    def fit_classifier(
        self,
        model: TrafficClassifierNet,
        dataset: TrainingDataset,
        generator: torch.Generator | None = None,
    ) -> float:
        """Fit the classifier on one-hot labels.

        Returns:
            Mean loss of the final epoch.
        """
        inputs = torch.as_tensor(dataset.features, dtype=torch.float32)
        targets = torch.as_tensor(dataset.one_hot(), dtype=torch.float32)
        # probability targets: categorical cross-entropy over the softmax
        return self._fit(model, inputs, targets, nn.CrossEntropyLoss(), generator, "classifier")

    def fit_autoencoder(
        self,
        model: FlowAutoencoder,
        dataset: TrainingDataset,
        generator: torch.Generator | None = None,
    ) -> float:
        """Fit the autoencoder to reconstruct its inputs.

        Returns:
            Mean loss of the final epoch.
        """
        inputs = torch.as_tensor(dataset.features, dtype=torch.float32)
        return self._fit(model, inputs, inputs, nn.MSELoss(), generator, "autoencoder")

    def _fit(
        self,
        model: nn.Module,
        inputs: torch.Tensor,
        targets: torch.Tensor,
        criterion: nn.Module,
        generator: torch.Generator | None,
        name: str,
    ) -> float:
        loader = DataLoader(
            TensorDataset(inputs, targets),
            batch_size=self.settings.batch_size,
            shuffle=True,
            generator=generator,
        )
        optimizer = optim.Adam(model.parameters(), lr=self.settings.learning_rate)

        epoch_loss = float("nan")
        model.train()
        for epoch in range(1, self.settings.epochs + 1):
            total_loss = 0.0
            for batch_inputs, batch_targets in loader:
                optimizer.zero_grad()
                loss = criterion(model(batch_inputs), batch_targets)
                loss.backward()
                optimizer.step()
                total_loss += loss.item() * batch_inputs.shape[0]
            epoch_loss = total_loss / len(inputs)

            if not np.isfinite(epoch_loss):
                raise TrainingError(
                    f"{name} loss diverged at epoch {epoch}",
                    details={"model": name, "epoch": epoch},
                )
            logger.debug("Epoch end", model=name, epoch=epoch, loss=epoch_loss)

        model.eval()
        return epoch_loss

    @staticmethod
    def _evaluate(classifier: MLClassifier, dataset: TrainingDataset) -> tuple[float, float]:
        """Training-set accuracy and macro F1 of the classifier."""
        predictions = np.argmax(classifier.probabilities(dataset.features), axis=1)
        accuracy = accuracy_score(dataset.labels, predictions)
        f1_macro = f1_score(dataset.labels, predictions, average="macro", zero_division=0)
        return float(accuracy), float(f1_macro)
