"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    DiagnosticsConfig,
    FileLoggingConfig,
    FrameworkConfig,
    ListingConfig,
    LoggingConfig,
    RenderConfig,
    RuntimeConfig,
    RuntimeEntry,
    WorkspaceConfig,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "DiagnosticsConfig",
    # Sections
    "WorkspaceConfig",
    "RuntimeConfig",
    "RuntimeEntry",
    "FrameworkConfig",
    "ListingConfig",
    "RenderConfig",
    "LoggingConfig",
    "FileLoggingConfig",
]
