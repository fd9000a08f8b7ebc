"""Prometheus metrics for TrafficLens.

Pre-defined metrics for monitoring model training and traffic classification.
"""

from prometheus_client import Counter, Gauge, Histogram

# Classification metrics
CLASSIFICATIONS_TOTAL = Counter(
    "trafficlens_classifications_total",
    "Total number of flows classified by the models",
    ["category"],
)

ANOMALIES_DETECTED = Counter(
    "trafficlens_anomalies_detected_total",
    "Total number of flows flagged anomalous",
)

DEGRADED_RESULTS = Counter(
    "trafficlens_degraded_results_total",
    "Classification calls answered with the default result",
    ["reason"],
)

INFERENCE_LATENCY = Histogram(
    "trafficlens_inference_latency_seconds",
    "Time to normalize and run both models for one flow",
    buckets=[0.0001, 0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1],
)

HISTORY_SIZE = Gauge(
    "trafficlens_history_size",
    "Number of classification results currently retained",
)

# Training metrics
TRAINING_DURATION = Histogram(
    "trafficlens_training_duration_seconds",
    "Time to build the synthetic corpus and fit both models",
    buckets=[0.5, 1, 2.5, 5, 10, 30, 60, 120, 300],
)

TRAINING_FAILURES = Counter(
    "trafficlens_training_failures_total",
    "Total number of failed model initializations",
)

ENGINE_READY = Gauge(
    "trafficlens_engine_ready",
    "Whether the most recently initialized engine is ready (1) or not (0)",
)

# Alerting
MONITOR_ALERTS = Counter(
    "trafficlens_monitor_alerts_total",
    "Alerts raised by the traffic monitor",
    ["kind"],
)
