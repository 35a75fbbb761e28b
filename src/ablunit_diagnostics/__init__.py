"""Source-mapped failure diagnostics for ABLUnit test runs."""

from ablunit_diagnostics.core import (
    ArtifactResolver,
    CallStackParser,
    DebugListingCache,
    DiagnosticContext,
    DiagnosticRenderer,
    MessageCatalog,
)
from ablunit_diagnostics.models import FormattedDiagnostic, ParsedCallStack, StackFrame
from ablunit_diagnostics.utils.async_helpers import CallStackParseError

__all__ = [
    "ArtifactResolver",
    "CallStackParseError",
    "CallStackParser",
    "DebugListingCache",
    "DiagnosticContext",
    "DiagnosticRenderer",
    "FormattedDiagnostic",
    "MessageCatalog",
    "ParsedCallStack",
    "StackFrame",
]
