"""Traffic Classification Engine.

Neural classification of network flows into traffic categories with
autoencoder-based anomaly scoring.
"""

from trafficlens.classification.constants import CATEGORY_LABELS, FlowProtocol, TrafficCategory
from trafficlens.classification.engine import EngineState, TrafficClassificationEngine
from trafficlens.classification.flow import ClassificationResult, FlowDescriptor, TrafficStats
from trafficlens.classification.monitor import TrafficAlert, TrafficMonitor

__all__ = [
    "CATEGORY_LABELS",
    "ClassificationResult",
    "EngineState",
    "FlowDescriptor",
    "FlowProtocol",
    "TrafficAlert",
    "TrafficCategory",
    "TrafficClassificationEngine",
    "TrafficMonitor",
    "TrafficStats",
]
