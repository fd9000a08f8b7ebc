"""TrafficLens - Neural Traffic Classification Engine.

Classifies network flow descriptors into traffic categories with a
feed-forward network and scores them for anomalies with an autoencoder,
both trained on synthetic traffic.
"""

__version__ = "0.1.0"
