"""Core modules for brokerwatch - centralized definitions and utilities."""

from brokerwatch.core.errors import (
    AggregationError,
    BrokerConnectionError,
    BrokerWatchError,
    ConfigurationError,
    ExitCode,
    PersistenceError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "BrokerWatchError",
    "ConfigurationError",
    "BrokerConnectionError",
    "PersistenceError",
    "AggregationError",
    "main_with_error_handling",
    "format_error_message",
]
