"""Feature transformer for ML classification.

Transforms FlowDescriptors into ML-ready numpy arrays. Every column except
the last is a deterministic scaling of one descriptor field; the last column
is a fresh uniform draw from the supplied random generator on every call, so
two transforms of the same flow differ in that column unless the generator
is re-seeded. Tests asserting exact vectors must pass a seeded generator.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

import numpy as np

from trafficlens.classification.constants import (
    FEATURE_COUNT,
    MAX_BYTES_PER_SECOND,
    MAX_CONNECTION_DURATION,
    MAX_PACKET_SIZE,
    MAX_PACKETS_PER_SECOND,
    MAX_PORT,
    MAX_PROTOCOL_ORDINAL,
)

if TYPE_CHECKING:
    from trafficlens.classification.flow import FlowDescriptor


class FeatureTransformer:
    """Transform FlowDescriptors to fixed-length feature vectors.

    Applies:
    - Linear scaling for packet size (not clamped, jumbo frames exceed 1)
    - Ordinal scaling for protocol and ports
    - Clamped scaling for throughput and duration
    - A uniform noise column matching training-time dimensionality
    """

    # Feature column names in order
    FEATURE_COLUMNS: ClassVar[list[str]] = [
        "packet_size",
        "protocol",
        "source_port",
        "dest_port",
        "bytes_per_second",
        "packets_per_second",
        "connection_duration",
        "noise",
    ]

    def __init__(self, rng: np.random.Generator | None = None) -> None:
        """Initialize the feature transformer.

        Args:
            rng: Random generator for the noise column. A fresh unseeded
                generator is used if not provided.
        """
        self.rng = rng if rng is not None else np.random.default_rng()

    @property
    def feature_count(self) -> int:
        """Return the number of features produced."""
        return FEATURE_COUNT

    @property
    def feature_names(self) -> list[str]:
        """Return the feature column names."""
        return self.FEATURE_COLUMNS.copy()

    def transform(self, flow: FlowDescriptor) -> np.ndarray:
        """Convert a FlowDescriptor to a feature vector.

        Args:
            flow: Flow observation.

        Returns:
            1D float32 array of length 8.
        """
        return normalize_flow(flow, self.rng)

    def transform_batch(self, flows: list[FlowDescriptor]) -> np.ndarray:
        """Batch transform multiple flows.

        Args:
            flows: Flow observations.

        Returns:
            2D array of shape (n_samples, 8).
        """
        if not flows:
            return np.empty((0, FEATURE_COUNT), dtype=np.float32)

        return np.vstack([self.transform(f) for f in flows])


def normalize_flow(
    flow: FlowDescriptor,
    rng: np.random.Generator | None = None,
) -> np.ndarray:
    """Map a flow to its 8-element feature vector.

    Args:
        flow: Flow observation.
        rng: Source of the noise column. Unseeded if not provided.

    Returns:
        1D float32 array of length 8.
    """
    if rng is None:
        rng = np.random.default_rng()

    vector = np.empty(FEATURE_COUNT, dtype=np.float32)
    vector[0] = flow.packet_size / MAX_PACKET_SIZE
    vector[1] = int(flow.protocol) / MAX_PROTOCOL_ORDINAL
    vector[2] = flow.source_port / MAX_PORT
    vector[3] = flow.dest_port / MAX_PORT
    vector[4] = min(flow.bytes_per_second / MAX_BYTES_PER_SECOND, 1.0)
    vector[5] = min(flow.packets_per_second / MAX_PACKETS_PER_SECOND, 1.0)
    vector[6] = min(flow.connection_duration / MAX_CONNECTION_DURATION, 1.0)
    vector[7] = rng.random()
    return vector
