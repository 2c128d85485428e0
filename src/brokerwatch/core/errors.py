"""
Unified error handling for brokerwatch.

Collection failures are normally represented in data (disconnected samples,
``missing``/``fallback`` quality tags, suppressed comparison reasons). The
exceptions here mark the seams where a tier gives up so the next fallback
tier can take over, and give the CLI a consistent exit code mapping.

Exit Codes:
- 0: Success
- 10: Configuration error
- 11: Broker connection error (external service failure)
- 12: Persistence error
- 13: Aggregation error
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    CONNECTION_ERROR = 11
    PERSISTENCE_ERROR = 12
    AGGREGATION_ERROR = 13
    UNKNOWN_ERROR = 127


class BrokerWatchError(Exception):
    """Base exception for brokerwatch errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(BrokerWatchError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class BrokerConnectionError(BrokerWatchError):
    """Raised when a broker control plane endpoint cannot be reached or answers with an error."""

    exit_code = ExitCode.CONNECTION_ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        status_code: int | None = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code


class PersistenceError(BrokerWatchError):
    """Raised when the metrics store rejects a read or write."""

    exit_code = ExitCode.PERSISTENCE_ERROR


class AggregationError(BrokerWatchError):
    """Raised for faults in the aggregation cycle itself, not in a single broker."""

    exit_code = ExitCode.AGGREGATION_ERROR
    show_traceback = True


F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI main functions that provides unified error handling.

    Exit codes:
        - BrokerWatchError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except BrokerWatchError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                print(f"error: {format_error_message(e)}", file=sys.stderr)
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: BrokerWatchError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
