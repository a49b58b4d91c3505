"""Student progress aggregation, metric caching and accuracy alerting."""

__version__ = "0.1.0"
