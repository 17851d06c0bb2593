"""Shared utilities and infrastructure."""

from __future__ import annotations

from masterq.utils.exceptions import (
    ConfigurationError,
    InvalidArgumentError,
    MasterQueryError,
    NetworkError,
    ProtocolError,
    QueryTimeoutError,
    TransportError,
    ValidationError,
)
from masterq.utils.logging_config import get_logger, setup_logging

__all__ = [
    "ConfigurationError",
    "InvalidArgumentError",
    "MasterQueryError",
    "NetworkError",
    "ProtocolError",
    "QueryTimeoutError",
    "TransportError",
    "ValidationError",
    "get_logger",
    "setup_logging",
]
