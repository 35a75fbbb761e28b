"""Data models and transfer objects."""

from .callstack import ParsedCallStack, SourceLocation, StackFrame
from .catalog import MessageCatalogEntry
from .diagnostic import FormattedDiagnostic, RenderedFrame
from .listing import (
    UNLOADED,
    DebugListingEntry,
    ListingFailure,
    ListingState,
    Loaded,
    Loading,
    Unloaded,
)

__all__ = [
    # Call-stack models
    "SourceLocation",
    "StackFrame",
    "ParsedCallStack",
    # Debug listing models
    "DebugListingEntry",
    "ListingFailure",
    "ListingState",
    "Unloaded",
    "Loading",
    "Loaded",
    "UNLOADED",
    # Catalog models
    "MessageCatalogEntry",
    # Diagnostic models
    "RenderedFrame",
    "FormattedDiagnostic",
]
