#!/usr/bin/env python
"""Train the traffic models on synthetic data and save them.

Engines configured with MODEL_MODEL_PATH pointing at the output file load
these weights instead of training on construction.

Usage:
    python scripts/build_model.py [OPTIONS]

Options:
    --samples INT         Size of the synthetic corpus (default: 1000)
    --epochs INT          Training epochs for both models (default: 50)
    --batch-size INT      Mini-batch size (default: 32)
    --seed INT            Random seed for reproducibility (default: 42)
    --output PATH         Output path for the model bundle
    --min-accuracy FLOAT  Minimum training accuracy (default: 0.80)

Example:
    python scripts/build_model.py --samples 5000 --epochs 80
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from trafficlens.classification.ml.model_manager import ModelManager
from trafficlens.classification.ml.trainer import MLTrainer
from trafficlens.common.config import ModelSettings
from trafficlens.common.exceptions import TrainingError
from trafficlens.common.logging import setup_logging


def main() -> int:
    """Build and save the model bundle."""
    parser = argparse.ArgumentParser(
        description="Train and save the traffic classification models",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--samples", type=int, default=1000,
                        help="Size of the synthetic corpus (default: 1000)")
    parser.add_argument("--epochs", type=int, default=50,
                        help="Training epochs for both models (default: 50)")
    parser.add_argument("--batch-size", type=int, default=32,
                        help="Mini-batch size (default: 32)")
    parser.add_argument("--seed", type=int, default=42,
                        help="Random seed for reproducibility (default: 42)")
    parser.add_argument("--output", type=Path, default=Path("models/trafficlens.joblib"),
                        help="Output path for the model bundle")
    parser.add_argument("--min-accuracy", type=float, default=0.80,
                        help="Minimum training accuracy (default: 0.80)")

    args = parser.parse_args()
    setup_logging(service_name="build-model")

    settings = ModelSettings(
        training_samples=args.samples,
        epochs=args.epochs,
        batch_size=args.batch_size,
        seed=args.seed,
    )

    print("=" * 70)
    print("TrafficLens Model Builder")
    print("=" * 70)
    print(f"  Samples:        {args.samples:,}")
    print(f"  Epochs:         {args.epochs}")
    print(f"  Batch size:     {args.batch_size}")
    print(f"  Random seed:    {args.seed}")
    print(f"  Output path:    {args.output}")
    print()

    try:
        bundle = MLTrainer(settings=settings).train(rng=np.random.default_rng(args.seed))
    except TrainingError as e:
        print(f"ERROR: {e.message}")
        return 1

    stats = bundle.stats
    print("Training Results:")
    print("-" * 50)
    print(f"  Accuracy:             {stats.accuracy:.2%}")
    print(f"  F1 (macro):           {stats.f1_score:.2%}")
    print(f"  Classifier loss:      {stats.classifier_loss:.4f}")
    print(f"  Reconstruction loss:  {stats.reconstruction_loss:.4f}")
    print()

    print("Class Distribution:")
    print("-" * 50)
    for class_name, count in (stats.class_distribution or {}).items():
        print(f"  {class_name:20s}: {count:,}")
    print()

    if stats.accuracy < args.min_accuracy:
        print(f"ERROR: accuracy {stats.accuracy:.2%} is below minimum {args.min_accuracy:.0%}")
        return 1

    path = ModelManager(args.output).save(bundle)
    file_size = path.stat().st_size
    print("=" * 70)
    print(f"  Model saved to:  {path}")
    print(f"  File size:       {file_size / 1024:.1f} KB")
    print(f"  Version:         {bundle.version}")
    print("=" * 70)

    return 0


if __name__ == "__main__":
    sys.exit(main())
