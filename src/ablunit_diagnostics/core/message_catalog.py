"""Runtime message catalog lookup.

Runtime failure messages end with their message number in parentheses,
e.g. ``** Unable to find procedure foo.p. (293)``. The catalog maps that
number to the full message text and its help paragraphs.

Catalog sources:
- ``$DLC/prohelp/msgdata/msg*`` files shipped with the runtime. Each record
  starts on a line beginning with the message number, followed by one or
  more double-quoted segments (``""`` is a literal quote). Segments may span
  lines, and a number opening a line inside a segment is plain text.
- A JSON cache ``{"<code>": ["segment", ...]}`` written by ``save_json``.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterator, Mapping
from pathlib import Path

import structlog

from ablunit_diagnostics.models.catalog import MessageCatalogEntry
from ablunit_diagnostics.utils.async_helpers import CatalogError
from ablunit_diagnostics.utils.logging import LogEventNames
from ablunit_diagnostics.utils.metrics import MetricsRegistry, get_metrics

log = structlog.get_logger()

MESSAGE_CODE_PATTERN = re.compile(r"\((\d+)\)$")

# A quoted segment is consumed whole, so numbers inside it never start a record
MSGDATA_TOKEN_PATTERN = re.compile(
    r'"(?P<segment>(?:[^"]|"")*)"|^(?P<code>\d+)(?=\s|$)|[^"\n]+|\n',
    re.MULTILINE,
)

MSGDATA_SUBDIR = Path("prohelp") / "msgdata"


def extract_message_code(message: str) -> int | None:
    """Message number from a trailing ``(NNN)`` suffix, or None."""
    match = MESSAGE_CODE_PATTERN.search(message.rstrip())
    if match is None:
        return None
    return int(match.group(1))


def _add_record(
    entries: dict[int, MessageCatalogEntry], code: int | None, segments: list[str]
) -> None:
    if code is None:
        return
    if not segments:
        log.debug("msgdata_record_skipped", code=code)
        return
    entries[code] = MessageCatalogEntry(code=code, segments=tuple(segments))


def parse_msgdata(text: str) -> dict[int, MessageCatalogEntry]:
    """Parse the records of one msgdata file.

    A record starts at a number at the beginning of a line outside any
    quoted segment. Records without any quoted segment are skipped.
    """
    entries: dict[int, MessageCatalogEntry] = {}
    code: int | None = None
    segments: list[str] = []

    for token in MSGDATA_TOKEN_PATTERN.finditer(text):
        if token.group("code") is not None:
            _add_record(entries, code, segments)
            code, segments = int(token.group("code")), []
        elif token.group("segment") is not None and code is not None:
            segments.append(token.group("segment").replace('""', '"'))

    _add_record(entries, code, segments)
    return entries


class MessageCatalog:
    """Read-only, numeric-code-indexed table of runtime messages.

    Example:
        catalog = MessageCatalog.from_msgdata(dlc / "prohelp" / "msgdata")
        entry = catalog.lookup_message("** Something failed. (132)")
        if entry:
            print(entry.extended_text())
    """

    def __init__(
        self,
        entries: Mapping[int, MessageCatalogEntry] | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._entries = dict(entries or {})
        self._metrics = metrics or get_metrics()

    def get(self, code: int) -> MessageCatalogEntry | None:
        """Catalog entry for a message number, or None."""
        entry = self._entries.get(code)
        if entry is None:
            self._metrics.catalog_misses.inc()
            log.debug(LogEventNames.CATALOG_MISS, code=code)
        else:
            self._metrics.catalog_hits.inc()
        return entry

    def lookup_message(self, message: str) -> MessageCatalogEntry | None:
        """Catalog entry for the number at the end of a failure message.

        Messages without a ``(NNN)`` suffix are not looked up at all.
        """
        code = extract_message_code(message)
        if code is None:
            return None
        return self.get(code)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, code: object) -> bool:
        return code in self._entries

    def __iter__(self) -> Iterator[MessageCatalogEntry]:
        return iter(self._entries.values())

    @classmethod
    def from_msgdata(
        cls,
        directory: Path,
        metrics: MetricsRegistry | None = None,
    ) -> MessageCatalog:
        """Load every ``msg*`` file in a msgdata directory.

        Raises:
            CatalogError: If the directory is missing or a file is unreadable
        """
        if not directory.is_dir():
            raise CatalogError(f"Message data directory not found: {directory}")

        entries: dict[int, MessageCatalogEntry] = {}
        files = sorted(path for path in directory.glob("msg*") if path.is_file())
        for path in files:
            try:
                text = path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                raise CatalogError(f"Failed to read {path}: {e}") from e
            entries.update(parse_msgdata(text))

        log.info(
            LogEventNames.CATALOG_LOADED,
            source=str(directory),
            files_count=len(files),
            entries_count=len(entries),
        )
        return cls(entries, metrics)

    @classmethod
    def from_json(cls, path: Path, metrics: MetricsRegistry | None = None) -> MessageCatalog:
        """Load a catalog written by ``save_json``.

        Raises:
            CatalogError: If the file is unreadable or not a code->segments mapping
        """
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogError(f"Failed to load message catalog {path}: {e}") from e

        if not isinstance(data, dict):
            raise CatalogError(f"Message catalog {path} must be a JSON object")

        entries: dict[int, MessageCatalogEntry] = {}
        for key, segments in data.items():
            if not str(key).isdigit() or not isinstance(segments, list):
                raise CatalogError(f"Invalid message catalog record {key!r} in {path}")
            code = int(key)
            entries[code] = MessageCatalogEntry(
                code=code, segments=tuple(str(segment) for segment in segments)
            )

        log.info(LogEventNames.CATALOG_LOADED, source=str(path), entries_count=len(entries))
        return cls(entries, metrics)

    def save_json(self, path: Path) -> None:
        """Write the catalog as JSON for fast loading next session."""
        data = {
            str(code): list(entry.segments) for code, entry in sorted(self._entries.items())
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, ensure_ascii=False, indent=1), encoding="utf-8")

    @classmethod
    def load_default(
        cls,
        dlc: Path | None,
        cache_path: Path | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> MessageCatalog:
        """Load the catalog for a session, degrading to an empty catalog.

        The JSON cache is preferred; otherwise the runtime's msgdata files are
        parsed and the cache is written for next time.
        """
        if cache_path is not None and cache_path.is_file():
            try:
                return cls.from_json(cache_path, metrics)
            except CatalogError as e:
                log.warning(LogEventNames.CATALOG_LOAD_FAILED, source=str(cache_path), error=str(e))

        if dlc is None:
            log.info(LogEventNames.CATALOG_LOAD_FAILED, source=None, error="no runtime directory")
            return cls(metrics=metrics)

        try:
            catalog = cls.from_msgdata(dlc / MSGDATA_SUBDIR, metrics)
        except CatalogError as e:
            log.warning(LogEventNames.CATALOG_LOAD_FAILED, source=str(dlc), error=str(e))
            return cls(metrics=metrics)

        if cache_path is not None:
            try:
                catalog.save_json(cache_path)
            except OSError as e:
                log.warning("catalog_cache_write_failed", path=str(cache_path), error=str(e))

        return catalog
