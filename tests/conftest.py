"""Shared test fixtures for ablunit-diagnostics."""

from pathlib import Path

import pytest

from ablunit_diagnostics.core.artifacts import ArtifactResolver
from ablunit_diagnostics.core.message_catalog import MessageCatalog
from ablunit_diagnostics.models.catalog import MessageCatalogEntry
from ablunit_diagnostics.utils.metrics import MetricsRegistry

# Get the fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"
CALLSTACKS_DIR = FIXTURES_DIR / "callstacks"
MSGDATA_DIR = FIXTURES_DIR / "msgdata"


def write_source(path: Path, lines: list[str]) -> Path:
    """Write ABL source lines to a file, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def numbered_lines(name: str, count: int) -> list[str]:
    """Comment lines that identify their file and line number."""
    return [f"/* {name} line {n} */" for n in range(1, count + 1)]


@pytest.fixture
def msgdata_dir() -> Path:
    """Return the path to the sample msgdata directory."""
    return MSGDATA_DIR


@pytest.fixture
def runner_callstack() -> str:
    """Load a call stack that runs through the ABLUnit runner."""
    return (CALLSTACKS_DIR / "runner.txt").read_text()


@pytest.fixture
def crlf_callstack() -> str:
    """Load a call stack with CRLF line endings."""
    return (CALLSTACKS_DIR / "crlf.txt").read_bytes().decode("utf-8")


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a small ABL workspace.

    Layout:
        MyClass.cls     32 lines, then {include.i} on line 33, then 10 lines
        include.i       20 lines
        src/acme/OrderTest.cls  30 lines, {inc/totals.i &mode=1} on line 5
        src/inc/totals.i        4 lines
    Listing line 42 of MyClass.cls is therefore include.i line 10.
    """
    root = tmp_path / "workspace"
    root.mkdir()

    write_source(
        root / "MyClass.cls",
        [
            *numbered_lines("MyClass.cls", 32),
            "{include.i}",
            *numbered_lines("MyClass.cls tail", 10),
        ],
    )
    write_source(root / "include.i", numbered_lines("include.i", 20))

    order_test = numbered_lines("OrderTest.cls", 30)
    order_test[4] = "{inc/totals.i &mode=1}"
    write_source(root / "src" / "acme" / "OrderTest.cls", order_test)
    write_source(root / "src" / "inc" / "totals.i", numbered_lines("totals.i", 4))

    return root


@pytest.fixture
def resolver(workspace: Path) -> ArtifactResolver:
    """Create a resolver for the sample workspace with src on PROPATH."""
    return ArtifactResolver(workspace, propath=[Path("src")])


@pytest.fixture
def metrics() -> MetricsRegistry:
    """Create an isolated metrics registry."""
    return MetricsRegistry()


@pytest.fixture
def catalog(metrics: MetricsRegistry) -> MessageCatalog:
    """Create a catalog with one three-segment entry for message 132."""
    entry = MessageCatalogEntry(
        code=132,
        segments=(
            "** <file-name> already exists with <field> <value>. (132)",
            "A record with the same unique key already exists.\\nCheck the unique indexes.",
            "Assign a different key value.",
        ),
    )
    return MessageCatalog({132: entry}, metrics=metrics)
