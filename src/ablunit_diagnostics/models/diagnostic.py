"""Data models for rendered failure diagnostics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .callstack import SourceLocation, StackFrame


@dataclass(frozen=True)
class RenderedFrame:
    """One call-stack frame as it appears in the report."""

    frame: StackFrame
    is_innermost: bool
    framework: bool  # Owned by the test framework; never resolved
    location: SourceLocation | None  # Resolved include file/line, if any
    text: str  # Plain-text rendering, without line terminator
    markdown: str  # Markdown/HTML rendering, without line terminator

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.frame.method_name,
            "artifact": self.frame.artifact_id,
            "line": self.frame.source_line,
            "unit": self.frame.unit_id,
            "framework": self.framework,
            "location": (
                {"path": str(self.location.path), "line": self.location.line}
                if self.location
                else None
            ),
            "text": self.text,
        }


@dataclass(frozen=True)
class FormattedDiagnostic:
    """Display-ready failure report.

    ``text`` and ``markdown`` hold the same report for two output media;
    ``frames`` exposes the structured per-frame data (including resolved
    locations for "jump to source" actions).
    """

    message: str
    catalog_text: str | None
    frames: tuple[RenderedFrame, ...]
    first_location: SourceLocation | None
    text: str
    markdown: str

    @property
    def locations(self) -> tuple[SourceLocation, ...]:
        """Resolved source locations, in frame order."""
        return tuple(frame.location for frame in self.frames if frame.location is not None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "catalog_text": self.catalog_text,
            "first_location": (
                {"path": str(self.first_location.path), "line": self.first_location.line}
                if self.first_location
                else None
            ),
            "frames": [frame.to_dict() for frame in self.frames],
            "text": self.text,
        }
