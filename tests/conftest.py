"""Pytest configuration and fixtures for TrafficLens tests."""

from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from typing import Any

import numpy as np
import pytest

from trafficlens.classification.constants import FlowProtocol
from trafficlens.classification.engine import TrafficClassificationEngine
from trafficlens.classification.flow import FlowDescriptor
from trafficlens.common.config import Settings

TRAINED_ENGINE_SEED = 1234
READY_TIMEOUT = 300.0


def make_settings(engine: dict[str, Any] | None = None, **model: Any) -> Settings:
    """Build settings with model and engine overrides."""
    return Settings(
        environment="development",
        model=model,
        engine=engine or {},
    )


def make_flow(**kwargs: Any) -> FlowDescriptor:
    """Helper to create a FlowDescriptor with web-like defaults."""
    defaults: dict[str, Any] = {
        "timestamp": datetime.now(UTC),
        "packet_size": 1600.0,
        "protocol": FlowProtocol.HTTPS,
        "source_port": 52000,
        "dest_port": 443,
        "bytes_per_second": 120_000.0,
        "packets_per_second": 80.0,
        "connection_duration": 30.0,
    }
    defaults.update(kwargs)
    return FlowDescriptor(**defaults)


@pytest.fixture
def flow_factory() -> Callable[..., FlowDescriptor]:
    """Factory for FlowDescriptors with web-like defaults."""
    return make_flow


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded random generator."""
    return np.random.default_rng(42)


@pytest.fixture
def small_settings() -> Settings:
    """Settings for quick training runs."""
    return make_settings(training_samples=64, epochs=2, batch_size=16, seed=7)


@pytest.fixture(scope="session")
def trained_engine() -> TrafficClassificationEngine:
    """Engine trained once per session with the default architecture."""
    engine = TrafficClassificationEngine(
        settings=make_settings(),
        seed=TRAINED_ENGINE_SEED,
    )
    assert engine.wait_until_ready(timeout=READY_TIMEOUT), engine.training_error
    return engine


@pytest.fixture
def engine(trained_engine: TrafficClassificationEngine) -> Iterator[TrafficClassificationEngine]:
    """Trained engine with an empty history."""
    trained_engine.clear_history()
    yield trained_engine
    trained_engine.clear_history()


@pytest.fixture
def idle_engine() -> TrafficClassificationEngine:
    """Engine that never starts training."""
    return TrafficClassificationEngine(settings=make_settings(), seed=1, auto_start=False)
