"""Debug-listing import and lookup.

This module implements:
- SourceExpansionReader: rebuilds an artifact's debug listing by expanding
  include references in its source, recording for each listing line the
  include file and line it came from
- DebugListingCache: loads each artifact's listing at most once per session,
  sharing a single in-flight load between concurrent requesters

Each cache key is in one of three states: Unloaded (absent), Loading (a
pending task every requester awaits) or Loaded (an entry or a failure
marker). The check-then-register step in ``import_listing`` never awaits, so
two requests for the same artifact cannot both start a load.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Iterable
from pathlib import Path

import structlog

from ablunit_diagnostics.core.artifacts import ArtifactResolver
from ablunit_diagnostics.interfaces.listing import DebugListingReader
from ablunit_diagnostics.models.callstack import SourceLocation
from ablunit_diagnostics.models.listing import (
    UNLOADED,
    DebugListingEntry,
    ListingFailure,
    ListingState,
    Loaded,
    Loading,
)
from ablunit_diagnostics.utils.async_helpers import DebugListingError, settle_all
from ablunit_diagnostics.utils.logging import LogEventNames
from ablunit_diagnostics.utils.metrics import MetricsRegistry, get_metrics

log = structlog.get_logger()


class SourceExpansionReader:
    """Builds debug listings by expanding include references.

    The compiler numbers debug-listing lines after include expansion. A line
    whose only content is an include reference such as ``{inc/defs.i}`` or
    ``{inc/defs.i &mode=1}`` is replaced by the included file's lines.
    Preprocessor references (``{&name}``) and argument references (``{1}``,
    ``{*}``) are left alone.

    Example:
        reader = SourceExpansionReader(resolver)
        entry = await reader.read(Path("/work/src/Orders.cls"))
        entry.lookup(42)  # SourceLocation(path=.../inc/defs.i, line=10)
    """

    INCLUDE_PATTERN = re.compile(r"^\{\s*(?P<ref>[^\s{}]+)(?:\s+[^{}]*)?\}$")

    def __init__(
        self,
        resolver: ArtifactResolver,
        max_include_depth: int = 32,
        encoding: str = "utf-8",
    ) -> None:
        self._resolver = resolver
        self._max_include_depth = max_include_depth
        self._encoding = encoding

    async def read(self, artifact: Path) -> DebugListingEntry:
        """Load the listing for an artifact without blocking the event loop.

        Raises:
            DebugListingError: If the source or an include cannot be read
        """
        return await asyncio.to_thread(self.read_sync, artifact)

    def read_sync(self, artifact: Path) -> DebugListingEntry:
        """Blocking variant of ``read``."""
        lines: dict[int, SourceLocation] = {}
        self._expand(artifact, lines, chain=())
        return DebugListingEntry(artifact=artifact, lines=lines)

    def include_reference(self, line: str) -> str | None:
        """The include file named by a listing line, or None."""
        match = self.INCLUDE_PATTERN.match(line.strip())
        if match is None:
            return None

        ref = match.group("ref")
        if ref.startswith("&") or ref.isdigit() or ref == "*":
            return None
        return ref

    def _expand(
        self,
        source: Path,
        lines: dict[int, SourceLocation],
        chain: tuple[Path, ...],
    ) -> None:
        if len(chain) >= self._max_include_depth:
            raise DebugListingError(
                f"Include nesting deeper than {self._max_include_depth} at {source}"
            )
        if source in chain:
            raise DebugListingError(f"Recursive include of {source}")

        try:
            text = source.read_text(encoding=self._encoding, errors="replace")
        except OSError as e:
            raise DebugListingError(f"Failed to read {source}: {e}") from e

        for source_line, line in enumerate(text.splitlines(), start=1):
            ref = self.include_reference(line)
            if ref is None:
                lines[len(lines) + 1] = SourceLocation(path=source, line=source_line)
                continue

            include = self._resolver.resolve_include(ref, source)
            if include is None:
                raise DebugListingError(
                    f"Include file {ref} not found (referenced from {source}:{source_line})"
                )
            self._expand(include, lines, (*chain, source))


class DebugListingCache:
    """Session-wide cache of debug listings keyed by canonical artifact path.

    Responsibilities:
    - Load each artifact's listing at most once
    - Share one in-flight load between concurrent requests
    - Record failed loads as markers instead of raising
    - Answer compiled-line lookups from settled entries

    Example:
        cache = DebugListingCache(SourceExpansionReader(resolver))
        await cache.import_listing(path)
        location = cache.get_source_line(path, 42)
    """

    def __init__(
        self,
        reader: DebugListingReader,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._reader = reader
        self._metrics = metrics or get_metrics()
        self._states: dict[Path, Loading | Loaded] = {}

    @staticmethod
    def _key(artifact: Path) -> Path:
        return Path(artifact).resolve()

    def state(self, artifact: Path) -> ListingState:
        """Current state for an artifact: Unloaded, Loading or Loaded."""
        return self._states.get(self._key(artifact), UNLOADED)

    async def import_listing(self, artifact: Path) -> Loaded:
        """Ensure the artifact's listing is loaded.

        Failures never raise; they settle as a Loaded state holding a
        ListingFailure. Cancelling the caller does not abort a load that
        other requesters may be waiting on.

        Args:
            artifact: Path to the artifact's source file

        Returns:
            The settled state for the artifact
        """
        key = self._key(artifact)

        # No await between the lookup and the registration below
        state = self._states.get(key)
        if isinstance(state, Loaded):
            self._metrics.listing_reuses.inc()
            log.debug(LogEventNames.LISTING_IMPORT_REUSED, artifact=str(key), state="loaded")
            return state
        if isinstance(state, Loading):
            self._metrics.listing_reuses.inc()
            log.debug(LogEventNames.LISTING_IMPORT_REUSED, artifact=str(key), state="loading")
            return await asyncio.shield(state.task)

        task = asyncio.get_running_loop().create_task(self._load(key))
        self._states[key] = Loading(task=task)
        log.debug(LogEventNames.LISTING_IMPORT_STARTED, artifact=str(key))
        return await asyncio.shield(task)

    async def import_all(self, artifacts: Iterable[Path]) -> dict[Path, Loaded]:
        """Import several artifacts concurrently and wait for all to settle.

        Duplicate paths are imported once.
        """
        keys = list(dict.fromkeys(self._key(artifact) for artifact in artifacts))
        results = await settle_all(self.import_listing(key) for key in keys)

        settled: dict[Path, Loaded] = {}
        for key, result in zip(keys, results, strict=True):
            if isinstance(result, BaseException):
                # import_listing converts load errors to markers, so this is a bug
                raise result
            settled[key] = result
        return settled

    def get_entry(self, artifact: Path) -> DebugListingEntry | None:
        """The loaded entry for an artifact, or None if unloaded, loading or failed."""
        state = self._states.get(self._key(artifact))
        if isinstance(state, Loaded) and isinstance(state.result, DebugListingEntry):
            return state.result
        return None

    def get_source_line(self, artifact: Path, compiled_line: int) -> SourceLocation | None:
        """Look up the original source location of a compiled line.

        Args:
            artifact: Path to the artifact's source file
            compiled_line: 1-based line number in the debug listing

        Returns:
            The include file and line, or None when the artifact was never
            imported, its import failed, or the line has no mapping
        """
        entry = self.get_entry(artifact)
        if entry is None:
            return None
        return entry.lookup(compiled_line)

    def invalidate(self, artifact: Path | None = None) -> None:
        """Drop settled entries so the next import reloads them.

        In-flight loads are left alone; their requesters still receive them.

        Args:
            artifact: Specific artifact to invalidate, or None for all
        """
        if artifact is not None:
            key = self._key(artifact)
            if isinstance(self._states.get(key), Loaded):
                del self._states[key]
            log.info(LogEventNames.LISTING_INVALIDATED, artifact=str(key))
            return

        for key in [key for key, state in self._states.items() if isinstance(state, Loaded)]:
            del self._states[key]
        log.info(LogEventNames.LISTING_INVALIDATED, artifact=None)

    def __len__(self) -> int:
        return len(self._states)

    async def _load(self, key: Path) -> Loaded:
        self._metrics.listing_loads.inc()
        self._metrics.listings_in_flight.inc()

        result: DebugListingEntry | ListingFailure
        try:
            result = await self._reader.read(key)
        except (DebugListingError, OSError, UnicodeError, ValueError) as e:
            self._metrics.listing_failures.inc()
            log.info(LogEventNames.LISTING_LOAD_FAILED, artifact=str(key), error=str(e))
            result = ListingFailure(artifact=key, reason=str(e))
        except BaseException:
            # Cancellation and reader bugs leave the artifact unloaded so a later import retries
            self._states.pop(key, None)
            raise
        else:
            log.debug(LogEventNames.LISTING_LOADED, artifact=str(key), lines_count=len(result))
        finally:
            self._metrics.listings_in_flight.dec()

        loaded = Loaded(result=result)
        self._states[key] = loaded
        return loaded
