"""Mapping of call-stack artifact names to workspace files.

Frames name their artifact either as a source file (``ABLUnitCore.p``,
``MyClass.cls``) or as a dotted class name
(``OpenEdge.ABLUnit.Runner.ABLRunner``). The resolver turns both into a
canonical path, searching the workspace root and then the PROPATH.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

import structlog

log = structlog.get_logger()

SOURCE_EXTENSIONS = (".p", ".w", ".cls", ".i")

DEFAULT_FRAMEWORK_PREFIXES = ("OpenEdge.",)
DEFAULT_RESERVED_ARTIFACTS = ("ABLUnitCore.p",)


def is_framework_artifact(
    name: str,
    prefixes: Iterable[str] = DEFAULT_FRAMEWORK_PREFIXES,
    reserved: Iterable[str] = DEFAULT_RESERVED_ARTIFACTS,
) -> bool:
    """Check if an artifact belongs to the test framework itself.

    No user debug listing exists for framework artifacts, so they are never
    imported or resolved.

    Args:
        name: Artifact name as it appears in the call stack
        prefixes: Namespace prefixes owned by the framework
        reserved: Exact artifact names owned by the framework

    Returns:
        True if the artifact is framework-owned
    """
    return name in reserved or any(name.startswith(prefix) for prefix in prefixes)


def artifact_relative_path(name: str) -> Path:
    """Relative source path for an artifact name.

    Source file names are kept as they are; dotted class names become
    directories with a ``.cls`` suffix.
    """
    if name.lower().endswith(SOURCE_EXTENSIONS):
        return Path(name.replace("\\", "/"))
    parts = [part for part in name.split(".") if part]
    if not parts:
        return Path(name)
    return Path(*parts).with_suffix(".cls")


class ArtifactResolver:
    """Resolves artifact names against the workspace and PROPATH.

    Example:
        resolver = ArtifactResolver(Path("/work"), propath=[Path("/work/src")])
        resolver.resolve("acme.Orders")  # /work/src/acme/Orders.cls if it exists
    """

    def __init__(
        self,
        workspace_root: Path,
        propath: Sequence[Path] = (),
        framework_prefixes: Iterable[str] = DEFAULT_FRAMEWORK_PREFIXES,
        reserved_artifacts: Iterable[str] = DEFAULT_RESERVED_ARTIFACTS,
    ) -> None:
        self._root = workspace_root.resolve()
        self._propath = tuple(
            (entry if entry.is_absolute() else self._root / entry).resolve() for entry in propath
        )
        self._framework_prefixes = tuple(framework_prefixes)
        self._reserved_artifacts = frozenset(reserved_artifacts)

    @property
    def workspace_root(self) -> Path:
        return self._root

    @property
    def search_path(self) -> tuple[Path, ...]:
        """Directories searched in order: the workspace root, then PROPATH."""
        return (self._root, *(entry for entry in self._propath if entry != self._root))

    def is_framework(self, name: str) -> bool:
        return is_framework_artifact(name, self._framework_prefixes, self._reserved_artifacts)

    def candidates(self, name: str) -> list[Path]:
        """Every path the artifact could live at, in search order."""
        relative = artifact_relative_path(name)
        if relative.is_absolute():
            return [relative]
        return [directory / relative for directory in self.search_path]

    def find(self, name: str) -> Path | None:
        """First existing candidate for the artifact, or None."""
        for candidate in self.candidates(name):
            if candidate.is_file():
                return candidate.resolve()
        return None

    def resolve(self, name: str) -> Path:
        """Canonical path used as the artifact's identity.

        Falls back to the workspace-root candidate when nothing exists; that
        path simply fails to load later.
        """
        found = self.find(name)
        if found is not None:
            return found
        return self.candidates(name)[0].resolve()

    def resolve_include(self, reference: str, including_file: Path) -> Path | None:
        """Find an include file referenced from ``including_file``.

        The including file's directory is searched first, then the workspace
        search path.
        """
        relative = Path(reference.replace("\\", "/"))
        if relative.is_absolute():
            return relative if relative.is_file() else None

        for directory in (including_file.parent, *self.search_path):
            candidate = directory / relative
            if candidate.is_file():
                return candidate.resolve()

        log.debug("include_not_found", reference=reference, including_file=str(including_file))
        return None

    def display_path(self, path: Path) -> str:
        """Workspace-relative path for display, or the absolute path outside it."""
        try:
            return path.relative_to(self._root).as_posix()
        except ValueError:
            return path.as_posix()
