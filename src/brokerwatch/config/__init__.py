"""
brokerwatch configuration.

Pydantic-based settings loaded from environment variables (BROKERWATCH_
prefix) and an optional .env file.
"""

from brokerwatch.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
