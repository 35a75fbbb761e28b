"""Runtime installation (DLC) resolution.

The runtime directory locates the message catalog. It is chosen by matching
the project's OpenEdge version against the configured runtimes, falling back
to the default runtime and then to the ``DLC`` environment variable.
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import json5
import structlog

from ablunit_diagnostics.config.schema import RuntimeEntry
from ablunit_diagnostics.utils.async_helpers import RuntimeNotFoundError
from ablunit_diagnostics.utils.logging import LogEventNames

log = structlog.get_logger()

PROFILE_FILE = Path(".vscode") / "profile.json"
PROJECT_FILE = Path("openedge-project.json")


def read_commented_json(path: Path) -> dict[str, Any] | None:
    """Read a JSON object that may contain comments; None if missing or invalid.

    Project files are JSON5 in practice: ``//`` and ``/* */`` comments and
    trailing commas are accepted.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        log.warning("project_json_invalid", path=str(path), error=str(e))
        return None

    try:
        data = json5.loads(text)
    except ValueError as e:
        log.warning("project_json_invalid", path=str(path), error=str(e))
        return None

    return data if isinstance(data, dict) else None


class RuntimeResolver:
    """Determines the runtime directory for a workspace.

    Results are cached per workspace root for the lifetime of the resolver.

    Example:
        resolver = RuntimeResolver(config.runtime.runtimes)
        dlc = resolver.resolve(workspace_root)
    """

    def __init__(
        self,
        runtimes: Sequence[RuntimeEntry] = (),
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._runtimes = tuple(runtimes)
        self._environ = environ if environ is not None else os.environ
        self._cache: dict[Path, Path] = {}

    def get_oe_version(self, workspace_root: Path) -> str | None:
        """Project OpenEdge version from the profile or project file."""
        for relative in (PROFILE_FILE, PROJECT_FILE):
            data = read_commented_json(workspace_root / relative)
            if data and data.get("oeversion"):
                return str(data["oeversion"])
        return None

    def resolve(self, workspace_root: Path) -> Path:
        """Runtime directory for a workspace.

        Raises:
            RuntimeNotFoundError: If no runtime matches and DLC is unset
        """
        key = workspace_root.resolve()
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        version = self.get_oe_version(key)
        dlc: Path | None = None
        source = ""

        for runtime in self._runtimes:
            if version is not None and runtime.name == version:
                dlc, source = runtime.path, "version"
                break
            if runtime.default:
                dlc, source = runtime.path, "default"

        if dlc is None and self._environ.get("DLC"):
            dlc, source = Path(self._environ["DLC"]), "environment"

        if dlc is None:
            log.warning(LogEventNames.RUNTIME_NOT_FOUND, workspace=str(key), oeversion=version)
            raise RuntimeNotFoundError(f"Unable to determine DLC for {key}")

        log.info(
            LogEventNames.RUNTIME_RESOLVED,
            workspace=str(key),
            oeversion=version,
            dlc=str(dlc),
            source=source,
        )
        self._cache[key] = dlc
        return dlc

    def clear(self) -> None:
        self._cache.clear()
