"""Utility functions and helpers.

This module provides various utilities for ablunit-diagnostics:
- async_helpers: Exception hierarchy and the settle-all join barrier
- logging: Structured logging configuration
- metrics: In-process metrics collection
"""

from ablunit_diagnostics.utils.async_helpers import (
    CallStackParseError,
    CatalogError,
    DebugListingError,
    DiagnosticsError,
    RuntimeNotFoundError,
    settle_all,
)
from ablunit_diagnostics.utils.logging import (
    LogEventNames,
    LogFormat,
    LogLevel,
    bind_context,
    configure_from_config,
    configure_logging,
    unbind_context,
)
from ablunit_diagnostics.utils.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricsRegistry,
    Timer,
    get_metrics,
)

__all__ = [
    # Errors
    "CallStackParseError",
    "CatalogError",
    "DebugListingError",
    "DiagnosticsError",
    "RuntimeNotFoundError",
    "settle_all",
    # Logging
    "LogEventNames",
    "LogFormat",
    "LogLevel",
    "bind_context",
    "configure_from_config",
    "configure_logging",
    "unbind_context",
    # Metrics
    "Counter",
    "Gauge",
    "Histogram",
    "MetricsRegistry",
    "Timer",
    "get_metrics",
]
