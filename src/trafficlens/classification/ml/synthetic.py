"""Synthetic flow generator for ML training.

Generates labeled FlowDescriptors for each traffic category from fixed,
category-specific uniform ranges. Used to build the training corpus and to
drive simulated traffic; never a source of real observations.

Ranges are chosen so categories are separable on protocol, destination
port and throughput. The "unknown" profile draws protocol and ports from
the full dynamic range and overlaps everything else on purpose.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import ClassVar

import numpy as np

from trafficlens.classification.constants import (
    CATEGORY_ORDER,
    CLIENT_PORT_MIN,
    CLIENT_PORT_SPAN,
    DATABASE_PORTS,
    EMAIL_PORTS,
    FTP_PORT,
    GAME_SERVER_PORT_BASE,
    HTTPS_PORT,
    MAX_BYTES_PER_SECOND,
    MAX_CONNECTION_DURATION,
    MAX_PACKET_SIZE,
    MAX_PACKETS_PER_SECOND,
    MAX_PORT,
    MAX_PROTOCOL_ORDINAL,
    NUM_CATEGORIES,
    SIP_PORT,
    UNKNOWN_PORT_MIN,
    UNKNOWN_PORT_SPAN,
    WEB_PORTS,
    FlowProtocol,
    TrafficCategory,
)
from trafficlens.classification.flow import FlowDescriptor
from trafficlens.classification.ml.dataset import DatasetBuilder, TrainingDataset
from trafficlens.classification.ml.feature_transformer import FeatureTransformer
from trafficlens.common.logging import get_logger

logger = get_logger(__name__)

CLIENT_PORTS = (CLIENT_PORT_MIN, CLIENT_PORT_MIN + CLIENT_PORT_SPAN)


@dataclass(frozen=True)
class FlowProfile:
    """Sampling ranges defining one traffic category.

    Float ranges are half-open [min, max). Port ranges are half-open
    integer ranges. A field with a tuple of choices is drawn uniformly
    from the choices.
    """

    packet_size_range: tuple[float, float]
    protocols: tuple[FlowProtocol, ...]
    source_port_range: tuple[int, int]
    bytes_per_second_range: tuple[float, float]
    packets_per_second_range: tuple[float, float]
    duration_range: tuple[float, float]
    dest_ports: tuple[int, ...] = ()
    dest_port_range: tuple[int, int] | None = None

    def feature_bounds(self) -> list[tuple[float, float]]:
        """Closed bounds of the first seven normalized features.

        Returns:
            One (low, high) pair per deterministic feature column, in
            FeatureTransformer column order.
        """
        if self.dest_port_range is not None:
            dest_low, dest_high = self.dest_port_range[0], self.dest_port_range[1] - 1
        else:
            dest_low, dest_high = min(self.dest_ports), max(self.dest_ports)

        protocol_ordinals = [int(p) for p in self.protocols]
        return [
            (
                self.packet_size_range[0] / MAX_PACKET_SIZE,
                self.packet_size_range[1] / MAX_PACKET_SIZE,
            ),
            (
                min(protocol_ordinals) / MAX_PROTOCOL_ORDINAL,
                max(protocol_ordinals) / MAX_PROTOCOL_ORDINAL,
            ),
            (
                self.source_port_range[0] / MAX_PORT,
                (self.source_port_range[1] - 1) / MAX_PORT,
            ),
            (dest_low / MAX_PORT, dest_high / MAX_PORT),
            (
                min(self.bytes_per_second_range[0] / MAX_BYTES_PER_SECOND, 1.0),
                min(self.bytes_per_second_range[1] / MAX_BYTES_PER_SECOND, 1.0),
            ),
            (
                min(self.packets_per_second_range[0] / MAX_PACKETS_PER_SECOND, 1.0),
                min(self.packets_per_second_range[1] / MAX_PACKETS_PER_SECOND, 1.0),
            ),
            (
                min(self.duration_range[0] / MAX_CONNECTION_DURATION, 1.0),
                min(self.duration_range[1] / MAX_CONNECTION_DURATION, 1.0),
            ),
        ]


class SyntheticFlowGenerator:
    """Generates synthetic FlowDescriptors for training and simulation."""

    PROFILES: ClassVar[dict[TrafficCategory, FlowProfile]] = {
        TrafficCategory.WEB: FlowProfile(
            packet_size_range=(1500, 2000),
            protocols=(FlowProtocol.HTTP, FlowProtocol.HTTPS),
            source_port_range=CLIENT_PORTS,
            dest_ports=WEB_PORTS,
            bytes_per_second_range=(50_000, 250_000),
            packets_per_second_range=(30, 130),
            duration_range=(5, 65),
        ),
        TrafficCategory.VIDEO: FlowProfile(
            packet_size_range=(1200, 1500),
            protocols=(FlowProtocol.UDP,),
            source_port_range=CLIENT_PORTS,
            dest_ports=(HTTPS_PORT,),
            bytes_per_second_range=(500_000, 2_500_000),
            packets_per_second_range=(200, 700),
            duration_range=(30, 330),
        ),
        TrafficCategory.FILE_TRANSFER: FlowProfile(
            packet_size_range=(1400, 1500),
            protocols=(FlowProtocol.TCP,),
            source_port_range=CLIENT_PORTS,
            dest_ports=(FTP_PORT,),
            bytes_per_second_range=(1_000_000, 6_000_000),
            packets_per_second_range=(500, 1500),
            duration_range=(10, 130),
        ),
        TrafficCategory.GAMING: FlowProfile(
            packet_size_range=(100, 300),
            protocols=(FlowProtocol.UDP,),
            source_port_range=CLIENT_PORTS,
            dest_port_range=(GAME_SERVER_PORT_BASE, GAME_SERVER_PORT_BASE + 100),
            bytes_per_second_range=(10_000, 60_000),
            packets_per_second_range=(50, 150),
            duration_range=(600, 2400),
        ),
        TrafficCategory.VOIP: FlowProfile(
            packet_size_range=(160, 240),
            protocols=(FlowProtocol.UDP,),
            source_port_range=CLIENT_PORTS,
            dest_ports=(SIP_PORT,),
            bytes_per_second_range=(64_000, 128_000),
            packets_per_second_range=(50, 100),
            duration_range=(60, 660),
        ),
        TrafficCategory.DATABASE: FlowProfile(
            packet_size_range=(500, 1000),
            protocols=(FlowProtocol.TCP,),
            source_port_range=CLIENT_PORTS,
            dest_ports=DATABASE_PORTS,
            bytes_per_second_range=(100_000, 600_000),
            packets_per_second_range=(100, 400),
            duration_range=(1, 11),
        ),
        TrafficCategory.EMAIL: FlowProfile(
            packet_size_range=(800, 1200),
            protocols=(FlowProtocol.TCP,),
            source_port_range=CLIENT_PORTS,
            dest_ports=EMAIL_PORTS,
            bytes_per_second_range=(20_000, 100_000),
            packets_per_second_range=(10, 50),
            duration_range=(2, 22),
        ),
        TrafficCategory.UNKNOWN: FlowProfile(
            packet_size_range=(500, 1500),
            protocols=tuple(FlowProtocol),
            source_port_range=(UNKNOWN_PORT_MIN, UNKNOWN_PORT_MIN + UNKNOWN_PORT_SPAN),
            dest_port_range=(UNKNOWN_PORT_MIN, UNKNOWN_PORT_MIN + UNKNOWN_PORT_SPAN),
            bytes_per_second_range=(10_000, 510_000),
            packets_per_second_range=(10, 210),
            duration_range=(1, 101),
        ),
    }

    def __init__(
        self,
        seed: int | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            seed: Random seed for reproducibility. Ignored if rng is given.
            rng: Shared random generator.
        """
        self.np_rng = rng if rng is not None else np.random.default_rng(seed)

    @classmethod
    def profile_for(cls, category: TrafficCategory | int) -> FlowProfile:
        """Return the sampling profile of a category.

        Raises:
            ValueError: If the category index is out of range.
        """
        return cls.PROFILES[_as_category(category)]

    def generate_flow(self, category: TrafficCategory | int) -> FlowDescriptor:
        """Generate a single synthetic flow for a category.

        Args:
            category: Category or category index 0-7.

        Returns:
            FlowDescriptor stamped with the generation instant.

        Raises:
            ValueError: If the category index is out of range.
        """
        profile = self.profile_for(category)
        rng = self.np_rng

        if profile.dest_port_range is not None:
            dest_port = int(rng.integers(*profile.dest_port_range))
        else:
            dest_port = self._choose(profile.dest_ports)

        return FlowDescriptor(
            timestamp=datetime.now(UTC),
            packet_size=float(rng.uniform(*profile.packet_size_range)),
            protocol=self._choose(profile.protocols),
            source_port=int(rng.integers(*profile.source_port_range)),
            dest_port=dest_port,
            bytes_per_second=float(rng.uniform(*profile.bytes_per_second_range)),
            packets_per_second=float(rng.uniform(*profile.packets_per_second_range)),
            connection_duration=float(rng.uniform(*profile.duration_range)),
        )

    def generate_flows(
        self,
        category: TrafficCategory | int,
        n: int,
    ) -> list[FlowDescriptor]:
        """Generate multiple flows for a category."""
        return [self.generate_flow(category) for _ in range(n)]

    def generate_random_flow(self) -> tuple[FlowDescriptor, TrafficCategory]:
        """Generate a flow from a uniformly chosen category.

        Returns:
            Tuple of (flow, category it was drawn from).
        """
        category = CATEGORY_ORDER[int(self.np_rng.integers(NUM_CATEGORIES))]
        return self.generate_flow(category), category

    def generate_dataset(
        self,
        n_samples: int = 1000,
        transformer: FeatureTransformer | None = None,
    ) -> TrainingDataset:
        """Generate a labeled corpus with categories drawn uniformly.

        Args:
            n_samples: Number of samples.
            transformer: Feature transformer. Defaults to one sharing this
                generator's random source.

        Returns:
            TrainingDataset of normalized features and category indices.
        """
        flows: list[FlowDescriptor] = []
        labels: list[TrafficCategory] = []

        for _ in range(n_samples):
            flow, category = self.generate_random_flow()
            flows.append(flow)
            labels.append(category)

        builder = DatasetBuilder(transformer or FeatureTransformer(self.np_rng))
        dataset = builder.from_flows(flows, labels)

        logger.info(
            "Generated synthetic dataset",
            total_samples=dataset.n_samples,
            distribution=dataset.class_distribution(),
        )

        return dataset

    def _choose(self, options: tuple):
        return options[int(self.np_rng.integers(len(options)))]


def _as_category(category: TrafficCategory | int) -> TrafficCategory:
    if isinstance(category, TrafficCategory):
        return category
    return TrafficCategory.from_index(int(category))


def generate_synthetic_flow(
    category: TrafficCategory | int,
    rng: np.random.Generator | None = None,
) -> FlowDescriptor:
    """Generate one synthetic flow for a category without building a generator."""
    return SyntheticFlowGenerator(rng=rng).generate_flow(category)


def generate_random_traffic(rng: np.random.Generator | None = None) -> FlowDescriptor:
    """Generate one synthetic flow from a uniformly chosen category."""
    flow, _ = SyntheticFlowGenerator(rng=rng).generate_random_flow()
    return flow
