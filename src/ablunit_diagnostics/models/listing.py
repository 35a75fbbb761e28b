"""Data models for debug listings and their cache states."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from .callstack import SourceLocation


@dataclass(frozen=True)
class DebugListingEntry:
    """Mapping of compiled (listing) line numbers to original source locations.

    A missing key means no better location than the compiled line itself.
    """

    artifact: Path
    lines: Mapping[int, SourceLocation] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Shared by every resolution after load
        object.__setattr__(self, "lines", MappingProxyType(dict(self.lines)))

    def lookup(self, compiled_line: int) -> SourceLocation | None:
        return self.lines.get(compiled_line)

    @property
    def include_files(self) -> frozenset[Path]:
        """Every file that contributed lines to this listing."""
        return frozenset(location.path for location in self.lines.values())

    def __len__(self) -> int:
        return len(self.lines)


@dataclass(frozen=True)
class ListingFailure:
    """Marker stored in place of an entry whose listing could not be loaded."""

    artifact: Path
    reason: str


@dataclass(frozen=True)
class Unloaded:
    """No import has been requested for the artifact."""


@dataclass(frozen=True)
class Loading:
    """An import is in flight; every requester awaits the same task."""

    task: asyncio.Task[Loaded]


@dataclass(frozen=True)
class Loaded:
    """The import settled, either with an entry or with a failure marker."""

    result: DebugListingEntry | ListingFailure

    @property
    def ok(self) -> bool:
        return isinstance(self.result, DebugListingEntry)


UNLOADED = Unloaded()

ListingState = Unloaded | Loading | Loaded
