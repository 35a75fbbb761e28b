"""Structured logging setup.

Every module logs through ``structlog.get_logger()`` with snake_case event
names (see ``LogEventNames``). This module wires structlog onto the standard
library so events reach stderr, and optionally a file, as console lines or
JSON. Rendered diagnostics go to stdout, so logs never mix with them.
"""

from __future__ import annotations

import functools
import logging
import sys
from collections.abc import MutableMapping
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from structlog.typing import Processor

if TYPE_CHECKING:
    from ablunit_diagnostics.config.schema import LoggingConfig

SERVICE_NAME = "ablunit-diagnostics"


class LogFormat(StrEnum):
    """Log output format options."""

    JSON = "json"
    CONSOLE = "console"


class LogLevel(StrEnum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@functools.cache
def _package_version() -> str | None:
    try:
        from ablunit_diagnostics._version import __version__
    except (ImportError, RuntimeError):
        return None
    return __version__


def add_context_processor(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Tag every event with the service name and package version."""
    event_dict["service"] = SERVICE_NAME
    version = _package_version()
    if version is not None:
        event_dict["version"] = version
    return event_dict


def build_processors(log_format: LogFormat) -> list[Processor]:
    """Processor chain ending in the renderer for ``log_format``."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == LogFormat.JSON:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=False, exception_formatter=structlog.dev.plain_traceback
            )
        )
    return processors


def _file_handler(path: Path, level: int) -> logging.Handler | None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path)
    except OSError as e:
        logging.getLogger("ablunit_diagnostics.logging").warning(
            "Could not create log file %s: %s", path, e
        )
        return None
    handler.setLevel(level)
    return handler


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_format: LogFormat | str = LogFormat.CONSOLE,
    file_path: Path | str | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        file_path: Log file, used only when ``file_enabled`` is set
        file_enabled: Whether to also log to ``file_path``

    Example:
        configure_logging(level="DEBUG", log_format="json")
    """
    level = LogLevel(level.upper()) if isinstance(level, str) else level
    log_format = LogFormat(log_format.lower()) if isinstance(log_format, str) else log_format
    numeric_level = getattr(logging, level.value)

    structlog.configure(
        processors=build_processors(log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    handlers: list[logging.Handler] = [console]

    if file_enabled and file_path:
        file_handler = _file_handler(Path(file_path), numeric_level)
        if file_handler is not None:
            handlers.append(file_handler)

    logging.basicConfig(format="%(message)s", level=numeric_level, handlers=handlers, force=True)


def configure_from_config(config: LoggingConfig, debug: bool = False) -> None:
    """Apply the ``logging`` section of the configuration file.

    ``debug`` forces DEBUG regardless of the configured level.
    """
    configure_logging(
        level=LogLevel.DEBUG if debug else config.level,
        log_format=config.format,
        file_path=config.file.path,
        file_enabled=config.file.enabled,
    )


def bind_context(**kwargs: Any) -> None:
    """Bind variables to every later event in this context.

    Example:
        bind_context(message_code=132)
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


class LogEventNames:
    """Standard log event names."""

    # Call-stack parsing
    CALLSTACK_PARSED = "callstack_parsed"
    CALLSTACK_PARSE_ERROR = "callstack_parse_error"
    FIRST_LOCATION_MISSING = "first_location_missing"

    # Debug listings
    LISTING_IMPORT_STARTED = "listing_import_started"
    LISTING_IMPORT_REUSED = "listing_import_reused"
    LISTING_LOADED = "listing_loaded"
    LISTING_LOAD_FAILED = "listing_load_failed"
    LISTING_INVALIDATED = "listing_invalidated"

    # Message catalog
    CATALOG_LOADED = "catalog_loaded"
    CATALOG_LOAD_FAILED = "catalog_load_failed"
    CATALOG_MISS = "catalog_miss"

    # Rendering
    DIAGNOSTIC_RENDERED = "diagnostic_rendered"

    # Runtime resolution
    RUNTIME_RESOLVED = "runtime_resolved"
    RUNTIME_NOT_FOUND = "runtime_not_found"
