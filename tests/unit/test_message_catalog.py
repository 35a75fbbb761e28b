"""Tests for the runtime message catalog."""

import json
import shutil
from pathlib import Path

import pytest

from ablunit_diagnostics.core.message_catalog import (
    MSGDATA_SUBDIR,
    MessageCatalog,
    extract_message_code,
    parse_msgdata,
)
from ablunit_diagnostics.models.catalog import MessageCatalogEntry
from ablunit_diagnostics.utils.async_helpers import CatalogError
from ablunit_diagnostics.utils.metrics import MetricsRegistry


@pytest.fixture
def dlc(tmp_path: Path, msgdata_dir: Path) -> Path:
    """Create a runtime directory holding the sample msgdata files."""
    root = tmp_path / "dlc"
    shutil.copytree(msgdata_dir, root / MSGDATA_SUBDIR)
    return root


class TestExtractMessageCode:
    """Tests for message number extraction."""

    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("** Unable to find procedure foo.p. (293)", 293),
            ("Record already exists. (132)  ", 132),
            ("(132) appears first", None),
            ("Assertion failed: expected 1 but was 2", None),
            ("Value (abc)", None),
            ("", None),
        ],
    )
    def test_extract(self, message: str, expected: int | None) -> None:
        """Test only a trailing parenthesised number counts."""
        assert extract_message_code(message) == expected


class TestParseMsgdata:
    """Tests for msgdata record parsing."""

    def test_multi_segment_record(self, msgdata_dir: Path) -> None:
        """Test a record with several help segments."""
        entries = parse_msgdata((msgdata_dir / "msg1").read_text())

        entry = entries[132]
        assert len(entry.segments) == 3
        assert entry.short_message.endswith("(132)")
        assert "\\n" in entry.segments[1]

    def test_doubled_quotes(self, msgdata_dir: Path) -> None:
        """Test doubled quotes inside a segment become one quote."""
        entries = parse_msgdata((msgdata_dir / "msg1").read_text())

        assert entries[293].short_message == '** "<procedure>" was not found. (293)'

    def test_single_segment_record(self, msgdata_dir: Path) -> None:
        """Test a record with only the short message."""
        entries = parse_msgdata((msgdata_dir / "msg1").read_text())

        assert entries[565].extended_segments == ()

    def test_segment_spanning_lines(self, msgdata_dir: Path) -> None:
        """Test quoted segments may contain real newlines."""
        entries = parse_msgdata((msgdata_dir / "msg2").read_text())

        assert entries[3135].segments[1] == (
            "You referenced a handle that was never set or that\n"
            "points to an object that has already been deleted."
        )

    def test_numbered_line_inside_segment(self) -> None:
        """Test a segment line starting with a number does not open a record."""
        text = (
            '132 "** Record already exists. (132)"\n'
            '"A unique index was violated.\n'
            '2 records share the same key."\n'
            '"Change the key."\n'
        )

        entries = parse_msgdata(text)

        assert list(entries) == [132]
        assert entries[132].segments == (
            "** Record already exists. (132)",
            "A unique index was violated.\n2 records share the same key.",
            "Change the key.",
        )

    def test_number_after_closed_segment_on_same_line(self) -> None:
        """Test only numbers at the start of a line open a record."""
        entries = parse_msgdata('41 "First." 42 "Second."\n')

        assert list(entries) == [41]
        assert entries[41].segments == ("First.", "Second.")

    def test_record_without_segments_skipped(self, msgdata_dir: Path) -> None:
        """Test records with no quoted text are dropped."""
        entries = parse_msgdata((msgdata_dir / "msg2").read_text())

        assert 9999 not in entries
        assert set(entries) == {3135}

    def test_empty_text(self) -> None:
        """Test empty input has no records."""
        assert parse_msgdata("") == {}


class TestMessageCatalogLookup:
    """Tests for catalog lookups."""

    def test_lookup_message(self, catalog: MessageCatalog, metrics: MetricsRegistry) -> None:
        """Test the trailing code selects the entry and counts a hit."""
        entry = catalog.lookup_message("** Customer already exists with CustNum 1. (132)")

        assert entry is not None
        assert entry.code == 132
        assert entry.extended_text() == (
            "A record with the same unique key already exists.\n\n"
            "Check the unique indexes.\n\n"
            "Assign a different key value."
        )
        assert metrics.catalog_hits.get() == 1

    def test_unknown_code(self, catalog: MessageCatalog, metrics: MetricsRegistry) -> None:
        """Test an unknown code counts a miss."""
        assert catalog.lookup_message("Something failed. (4242)") is None
        assert metrics.catalog_misses.get() == 1

    def test_message_without_code(
        self,
        catalog: MessageCatalog,
        metrics: MetricsRegistry,
    ) -> None:
        """Test messages without a code are not looked up."""
        assert catalog.lookup_message("Expected 1 but was 2") is None
        assert metrics.catalog_misses.get() == 0
        assert metrics.catalog_hits.get() == 0

    def test_container_protocol(self, catalog: MessageCatalog) -> None:
        """Test len, membership and iteration."""
        assert len(catalog) == 1
        assert 132 in catalog
        assert 293 not in catalog
        assert [entry.code for entry in catalog] == [132]

    def test_empty_catalog(self, metrics: MetricsRegistry) -> None:
        """Test an empty catalog answers every lookup with None."""
        catalog = MessageCatalog(metrics=metrics)

        assert len(catalog) == 0
        assert catalog.get(132) is None


class TestMessageCatalogLoading:
    """Tests for catalog sources."""

    def test_from_msgdata(self, msgdata_dir: Path, metrics: MetricsRegistry) -> None:
        """Test every msg file in the directory is loaded."""
        catalog = MessageCatalog.from_msgdata(msgdata_dir, metrics)

        assert sorted(entry.code for entry in catalog) == [132, 293, 565, 3135]

    def test_from_msgdata_missing_directory(self, tmp_path: Path) -> None:
        """Test a missing directory raises CatalogError."""
        with pytest.raises(CatalogError, match="not found"):
            MessageCatalog.from_msgdata(tmp_path / "nope", MetricsRegistry())

    def test_json_round_trip(
        self,
        msgdata_dir: Path,
        tmp_path: Path,
        metrics: MetricsRegistry,
    ) -> None:
        """Test a saved catalog loads back with the same entries."""
        original = MessageCatalog.from_msgdata(msgdata_dir, metrics)
        path = tmp_path / "cache" / "promsgs.json"

        original.save_json(path)
        loaded = MessageCatalog.from_json(path, metrics)

        assert {e.code: e.segments for e in loaded} == {e.code: e.segments for e in original}
        assert json.loads(path.read_text())["293"][0] == '** "<procedure>" was not found. (293)'

    def test_from_json_not_an_object(self, tmp_path: Path) -> None:
        """Test a JSON list is rejected."""
        path = tmp_path / "promsgs.json"
        path.write_text("[]")

        with pytest.raises(CatalogError, match="must be a JSON object"):
            MessageCatalog.from_json(path, MetricsRegistry())

    def test_from_json_bad_record(self, tmp_path: Path) -> None:
        """Test non-numeric codes are rejected."""
        path = tmp_path / "promsgs.json"
        path.write_text('{"abc": ["x"]}')

        with pytest.raises(CatalogError, match="Invalid message catalog record"):
            MessageCatalog.from_json(path, MetricsRegistry())

    def test_from_json_invalid(self, tmp_path: Path) -> None:
        """Test malformed JSON raises CatalogError."""
        path = tmp_path / "promsgs.json"
        path.write_text("{not json")

        with pytest.raises(CatalogError):
            MessageCatalog.from_json(path, MetricsRegistry())


class TestLoadDefault:
    """Tests for session catalog loading."""

    def test_prefers_cache(self, tmp_path: Path, dlc: Path) -> None:
        """Test the JSON cache is used when present."""
        cache = tmp_path / "promsgs.json"
        MessageCatalog(
            {1: MessageCatalogEntry(1, ("cached (1)",))}, MetricsRegistry()
        ).save_json(cache)

        catalog = MessageCatalog.load_default(dlc, cache, MetricsRegistry())

        assert [entry.code for entry in catalog] == [1]

    def test_builds_cache_from_msgdata(self, tmp_path: Path, dlc: Path) -> None:
        """Test msgdata is parsed and the cache written when missing."""
        cache = tmp_path / ".ablunit" / "promsgs.json"

        catalog = MessageCatalog.load_default(dlc, cache, MetricsRegistry())

        assert 3135 in catalog
        assert cache.is_file()
        assert "3135" in json.loads(cache.read_text())

    def test_corrupt_cache_falls_back(self, tmp_path: Path, dlc: Path) -> None:
        """Test an unreadable cache falls back to msgdata."""
        cache = tmp_path / "promsgs.json"
        cache.write_text("{broken")

        catalog = MessageCatalog.load_default(dlc, cache, MetricsRegistry())

        assert 132 in catalog

    def test_no_runtime(self) -> None:
        """Test no runtime directory gives an empty catalog."""
        assert len(MessageCatalog.load_default(None, None, MetricsRegistry())) == 0

    def test_runtime_without_msgdata(self, tmp_path: Path) -> None:
        """Test a runtime without msgdata gives an empty catalog."""
        catalog = MessageCatalog.load_default(tmp_path, None, MetricsRegistry())
        assert len(catalog) == 0
