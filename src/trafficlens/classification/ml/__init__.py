"""ML-based traffic classification module.

Provides the feature normalizer, synthetic flow generator, the neural
category classifier, the autoencoder anomaly detector and their trainer.
"""

from trafficlens.classification.ml.anomaly import AnomalyDetector, FlowAutoencoder
from trafficlens.classification.ml.classifier import MLClassifier, TrafficClassifierNet
from trafficlens.classification.ml.dataset import DatasetBuilder, TrainingDataset
from trafficlens.classification.ml.feature_transformer import FeatureTransformer, normalize_flow
from trafficlens.classification.ml.model_manager import ModelBundle, ModelManager, TrainingStats
from trafficlens.classification.ml.synthetic import (
    FlowProfile,
    SyntheticFlowGenerator,
    generate_random_traffic,
    generate_synthetic_flow,
)
from trafficlens.classification.ml.trainer import MLTrainer

__all__ = [
    "AnomalyDetector",
    "DatasetBuilder",
    "FeatureTransformer",
    "FlowAutoencoder",
    "FlowProfile",
    "MLClassifier",
    "MLTrainer",
    "ModelBundle",
    "ModelManager",
    "SyntheticFlowGenerator",
    "TrafficClassifierNet",
    "TrainingDataset",
    "TrainingStats",
    "generate_random_traffic",
    "generate_synthetic_flow",
    "normalize_flow",
]
