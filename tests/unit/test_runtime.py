"""Tests for runtime (DLC) resolution."""

import json
from pathlib import Path

import pytest

from ablunit_diagnostics.config.schema import RuntimeEntry
from ablunit_diagnostics.core.runtime import RuntimeResolver, read_commented_json
from ablunit_diagnostics.utils.async_helpers import RuntimeNotFoundError

RUNTIMES = [
    RuntimeEntry(name="12.2", path=Path("/psc/dlc122"), default=True),
    RuntimeEntry(name="12.8", path=Path("/psc/dlc128")),
]


def write_profile(workspace: Path, oeversion: str) -> None:
    profile = workspace / ".vscode" / "profile.json"
    profile.parent.mkdir(parents=True, exist_ok=True)
    profile.write_text(json.dumps({"oeversion": oeversion}))


class TestReadCommentedJson:
    """Tests for reading project JSON files."""

    def test_line_and_block_comments(self, tmp_path: Path) -> None:
        """Test both comment styles and trailing commas are accepted."""
        path = tmp_path / "profile.json"
        path.write_text('{\n  // version\n  "oeversion": "12.8", /* current */\n}')

        assert read_commented_json(path) == {"oeversion": "12.8"}

    def test_slashes_inside_strings_kept(self, tmp_path: Path) -> None:
        """Test comment markers inside string values survive."""
        path = tmp_path / "profile.json"
        path.write_text('{"url": "http://example.com/*x*/"} // trailing')

        assert read_commented_json(path) == {"url": "http://example.com/*x*/"}

    def test_undecodable_file(self, tmp_path: Path) -> None:
        """Test a file that is not UTF-8 reads as None."""
        path = tmp_path / "profile.json"
        path.write_bytes(b'{"oeversion": "caf\xe9"}')

        assert read_commented_json(path) is None

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test a missing file reads as None."""
        assert read_commented_json(tmp_path / "missing.json") is None

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Test malformed JSON reads as None."""
        path = tmp_path / "openedge-project.json"
        path.write_text("{oeversion: }")

        assert read_commented_json(path) is None

    def test_non_object(self, tmp_path: Path) -> None:
        """Test a JSON array reads as None."""
        path = tmp_path / "openedge-project.json"
        path.write_text("[1, 2]")

        assert read_commented_json(path) is None


class TestRuntimeResolver:
    """Tests for RuntimeResolver."""

    def test_version_from_profile(self, tmp_path: Path) -> None:
        """Test the profile version selects the matching runtime."""
        write_profile(tmp_path, "12.8")
        resolver = RuntimeResolver(RUNTIMES, environ={})

        assert resolver.get_oe_version(tmp_path) == "12.8"
        assert resolver.resolve(tmp_path) == Path("/psc/dlc128")

    def test_version_from_project_file(self, tmp_path: Path) -> None:
        """Test the project file is read when no profile exists."""
        (tmp_path / "openedge-project.json").write_text(
            '{\n  // generated\n  "name": "acme",\n  "oeversion": "12.8"\n}'
        )
        resolver = RuntimeResolver(RUNTIMES, environ={})

        assert resolver.resolve(tmp_path) == Path("/psc/dlc128")

    def test_profile_wins_over_project_file(self, tmp_path: Path) -> None:
        """Test the profile is consulted first."""
        write_profile(tmp_path, "12.2")
        (tmp_path / "openedge-project.json").write_text('{"oeversion": "12.8"}')

        assert RuntimeResolver(RUNTIMES, environ={}).get_oe_version(tmp_path) == "12.2"

    def test_default_runtime(self, tmp_path: Path) -> None:
        """Test the default runtime applies when the version does not match."""
        write_profile(tmp_path, "11.7")
        resolver = RuntimeResolver(RUNTIMES, environ={"DLC": "/env/dlc"})

        assert resolver.resolve(tmp_path) == Path("/psc/dlc122")

    def test_environment_fallback(self, tmp_path: Path) -> None:
        """Test the DLC variable applies without a matching or default runtime."""
        runtimes = [RuntimeEntry(name="12.8", path=Path("/psc/dlc128"))]
        resolver = RuntimeResolver(runtimes, environ={"DLC": "/env/dlc"})

        assert resolver.resolve(tmp_path) == Path("/env/dlc")

    def test_undecodable_profile_falls_back(self, tmp_path: Path) -> None:
        """Test a profile that is not UTF-8 is ignored, not raised."""
        profile = tmp_path / ".vscode" / "profile.json"
        profile.parent.mkdir()
        profile.write_bytes(b'{"oeversion": "12.8", "name": "caf\xe9"}')
        resolver = RuntimeResolver(environ={"DLC": "/opt/dlc"})

        assert resolver.get_oe_version(tmp_path) is None
        assert resolver.resolve(tmp_path) == Path("/opt/dlc")

    def test_not_found(self, tmp_path: Path) -> None:
        """Test resolution fails without any source."""
        with pytest.raises(RuntimeNotFoundError, match="Unable to determine DLC"):
            RuntimeResolver(environ={}).resolve(tmp_path)

    def test_result_cached_per_workspace(self, tmp_path: Path) -> None:
        """Test the result is reused until cleared."""
        write_profile(tmp_path, "12.8")
        resolver = RuntimeResolver(RUNTIMES, environ={})
        assert resolver.resolve(tmp_path) == Path("/psc/dlc128")

        write_profile(tmp_path, "12.2")
        assert resolver.resolve(tmp_path) == Path("/psc/dlc128")

        resolver.clear()
        assert resolver.resolve(tmp_path) == Path("/psc/dlc122")
