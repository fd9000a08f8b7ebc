#!/usr/bin/env python
"""Run the classification engine against random synthetic traffic.

Builds an engine (training it unless a saved bundle is configured), waits
for it to become ready, classifies a stream of random flows through the
traffic monitor and prints the resulting statistics.

Usage:
    python scripts/simulate_traffic.py [--flows 200] [--interval-ms 0] [--seed 7]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import numpy as np

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from trafficlens.classification.constants import CATEGORY_LABELS, TrafficCategory
from trafficlens.classification.engine import TrafficClassificationEngine
from trafficlens.classification.monitor import TrafficAlert, TrafficMonitor
from trafficlens.common.config import get_settings
from trafficlens.common.logging import setup_logging


def print_alert(alert: TrafficAlert) -> None:
    print(f"  [{alert.severity.upper():7s}] {alert.title}: {alert.message}")


async def simulate(
    engine: TrafficClassificationEngine,
    flows: int,
    interval_ms: int,
    seed: int | None,
) -> TrafficMonitor:
    settings = get_settings().monitor.model_copy(update={"interval_ms": max(interval_ms, 1)})
    monitor = TrafficMonitor(engine, settings, rng=np.random.default_rng(seed))
    monitor.add_handler(print_alert)

    for _ in range(flows):
        await monitor.run_once()
        if interval_ms:
            await asyncio.sleep(interval_ms / 1000)

    return monitor


def main() -> int:
    """Run the simulation."""
    parser = argparse.ArgumentParser(description="Classify simulated traffic")
    parser.add_argument("--flows", type=int, default=200, help="Number of flows (default: 200)")
    parser.add_argument("--interval-ms", type=int, default=0, help="Delay between flows (default: 0)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--timeout", type=float, default=600.0, help="Seconds to wait for training")
    args = parser.parse_args()

    setup_logging(service_name="simulate-traffic")

    engine = TrafficClassificationEngine(seed=args.seed)
    print("Waiting for models to train...")
    if not engine.wait_until_ready(timeout=args.timeout):
        print(f"ERROR: engine not ready ({engine.training_error or 'timed out'})")
        return 1

    monitor = asyncio.run(simulate(engine, args.flows, args.interval_ms, args.seed))

    stats = engine.get_statistics()
    print()
    print("Traffic Statistics (retained history):")
    print("-" * 50)
    print(f"  Total:           {stats.total}")
    print(f"  Anomalies:       {stats.anomalies}")
    print(f"  Avg confidence:  {stats.avg_confidence:.2%}")
    for category, count in sorted(stats.by_category.items(), key=lambda x: -x[1]):
        label = CATEGORY_LABELS[TrafficCategory(category)]
        print(f"  {label:20s}: {count}")

    print()
    print(f"Alerts raised: {monitor.alert_count}")
    print("Most recent flows:")
    for result in monitor.recent_results()[:5]:
        flag = " ANOMALY" if result.is_anomaly else ""
        print(
            f"  {result.category.label:20s} {result.confidence:6.1%}  "
            f"score={result.anomaly_score:.3f}{flag}"
        )

    return 0


if __name__ == "__main__":
    sys.exit(main())
