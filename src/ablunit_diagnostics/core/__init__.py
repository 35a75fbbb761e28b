"""Core diagnostics components.

This module exports the main classes:
- CallStackParser: Parses ABL call-stack text into frames
- ArtifactResolver: Maps artifact names to workspace files
- DebugListingCache: Loads and caches per-artifact debug listings
- MessageCatalog: Looks up runtime message help text
- DiagnosticRenderer: Assembles the source-mapped failure report
- DiagnosticContext: Wires the above for one session
"""

from ablunit_diagnostics.core.artifacts import ArtifactResolver, is_framework_artifact
from ablunit_diagnostics.core.callstack_parser import CallStackParser
from ablunit_diagnostics.core.context import DiagnosticContext
from ablunit_diagnostics.core.debug_listing import DebugListingCache, SourceExpansionReader
from ablunit_diagnostics.core.message_catalog import MessageCatalog, extract_message_code
from ablunit_diagnostics.core.renderer import DiagnosticRenderer, RenderOptions
from ablunit_diagnostics.core.runtime import RuntimeResolver

__all__ = [
    "ArtifactResolver",
    "CallStackParser",
    "DebugListingCache",
    "DiagnosticContext",
    "DiagnosticRenderer",
    "MessageCatalog",
    "RenderOptions",
    "RuntimeResolver",
    "SourceExpansionReader",
    "extract_message_code",
    "is_framework_artifact",
]
