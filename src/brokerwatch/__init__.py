"""Multi-broker telemetry collection, rate sampling and comparison."""

__version__ = "0.1.0"
