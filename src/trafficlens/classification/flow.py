"""Flow and result data structures.

FlowDescriptor is the structured observation a caller hands to the engine;
ClassificationResult and TrafficStats are what the engine hands back.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from trafficlens.classification.constants import FlowProtocol, TrafficCategory
from trafficlens.common.exceptions import InvalidFlowDataError


@dataclass(frozen=True)
class FlowDescriptor:
    """A single observed network flow."""

    timestamp: datetime
    packet_size: float  # bytes
    protocol: FlowProtocol
    source_port: int
    dest_port: int
    bytes_per_second: float
    packets_per_second: float
    connection_duration: float  # seconds

    def __post_init__(self) -> None:
        try:
            protocol = FlowProtocol(self.protocol)
        except ValueError as e:
            raise InvalidFlowDataError(
                f"Unknown protocol: {self.protocol!r}",
                details={"protocol": self.protocol},
                cause=e,
            ) from e
        # frozen: coerce plain ints to the enum in place
        object.__setattr__(self, "protocol", protocol)

        for name in ("source_port", "dest_port"):
            port = getattr(self, name)
            if not 0 <= port <= 65535:
                raise InvalidFlowDataError(
                    f"{name} out of range: {port}",
                    details={name: port},
                )

        for name in (
            "packet_size",
            "bytes_per_second",
            "packets_per_second",
            "connection_duration",
        ):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise InvalidFlowDataError(
                    f"{name} must be finite, got {value}",
                    details={name: str(value)},
                )
            if value < 0:
                raise InvalidFlowDataError(
                    f"{name} must be non-negative, got {value}",
                    details={name: value},
                )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "packet_size": self.packet_size,
            "protocol": self.protocol.name,
            "source_port": self.source_port,
            "dest_port": self.dest_port,
            "bytes_per_second": self.bytes_per_second,
            "packets_per_second": self.packets_per_second,
            "connection_duration": self.connection_duration,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlowDescriptor:
        """Build a descriptor from a dictionary (e.g. decoded JSON).

        The protocol may be given by name ("TCP") or ordinal (0). A missing
        timestamp defaults to now.

        Raises:
            InvalidFlowDataError: If a field is missing or out of domain.
        """
        try:
            protocol = data["protocol"]
            if isinstance(protocol, str):
                protocol = FlowProtocol[protocol.upper()]

            timestamp = data.get("timestamp")
            if timestamp is None:
                timestamp = datetime.now(UTC)
            elif isinstance(timestamp, str):
                timestamp = datetime.fromisoformat(timestamp)

            return cls(
                timestamp=timestamp,
                packet_size=float(data["packet_size"]),
                protocol=protocol,
                source_port=int(data["source_port"]),
                dest_port=int(data["dest_port"]),
                bytes_per_second=float(data["bytes_per_second"]),
                packets_per_second=float(data["packets_per_second"]),
                connection_duration=float(data["connection_duration"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidFlowDataError(
                f"Malformed flow descriptor: {e}",
                cause=e,
            ) from e


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of classifying one flow."""

    category: TrafficCategory
    confidence: float  # probability of the chosen category, 0.0 - 1.0
    is_anomaly: bool
    anomaly_score: float  # mean squared reconstruction error
    features: FlowDescriptor

    @classmethod
    def default(cls, flow: FlowDescriptor) -> ClassificationResult:
        """Result returned when the models cannot answer."""
        return cls(
            category=TrafficCategory.UNKNOWN,
            confidence=0.0,
            is_anomaly=False,
            anomaly_score=0.0,
            features=flow,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "category": self.category.value,
            "confidence": self.confidence,
            "is_anomaly": self.is_anomaly,
            "anomaly_score": self.anomaly_score,
            "features": self.features.to_dict(),
        }


@dataclass
class TrafficStats:
    """Aggregate statistics over the retained classification history."""

    total: int = 0
    by_category: dict[str, int] = field(default_factory=dict)
    anomalies: int = 0
    avg_confidence: float = 0.0

    @classmethod
    def from_results(cls, results: list[ClassificationResult]) -> TrafficStats:
        """Compute statistics from a sequence of results."""
        if not results:
            return cls()

        by_category: dict[str, int] = {}
        total_confidence = 0.0
        anomalies = 0

        for result in results:
            key = result.category.value
            by_category[key] = by_category.get(key, 0) + 1
            total_confidence += result.confidence
            if result.is_anomaly:
                anomalies += 1

        return cls(
            total=len(results),
            by_category=by_category,
            anomalies=anomalies,
            avg_confidence=total_confidence / len(results),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total": self.total,
            "by_category": dict(self.by_category),
            "anomalies": self.anomalies,
            "avg_confidence": round(self.avg_confidence, 4),
        }
