"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkspaceConfig(BaseModel):
    """Project workspace configuration."""

    root: Path = Path(".")
    propath: list[str] = []

    @field_validator("propath")
    @classmethod
    def validate_propath(cls, v: list[str]) -> list[str]:
        """Reject blank PROPATH entries."""
        for entry in v:
            if not entry.strip():
                raise ValueError("PROPATH entries must not be empty")
        return v

    def propath_dirs(self) -> list[Path]:
        """PROPATH entries as directories, relative ones anchored at the root."""
        dirs: list[Path] = []
        for entry in self.propath:
            path = Path(entry)
            dirs.append(path if path.is_absolute() else self.root / path)
        return dirs


class RuntimeEntry(BaseModel):
    """A named runtime installation."""

    name: str
    path: Path
    default: bool = False


class RuntimeConfig(BaseModel):
    """Runtime (DLC) configuration."""

    runtimes: list[RuntimeEntry] = []
    dlc: Path | None = None  # Explicit override; skips version matching
    catalog_cache: Path | None = None  # JSON copy of the message catalog

    @field_validator("runtimes")
    @classmethod
    def validate_runtimes(cls, v: list[RuntimeEntry]) -> list[RuntimeEntry]:
        """Runtime names must be unique."""
        names = [runtime.name for runtime in v]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate runtime names: {', '.join(duplicates)}")
        return v


class FrameworkConfig(BaseModel):
    """Artifacts owned by the test framework itself."""

    prefixes: list[str] = ["OpenEdge."]
    reserved: list[str] = ["ABLUnitCore.p"]

    @field_validator("prefixes", "reserved")
    @classmethod
    def validate_names(cls, v: list[str]) -> list[str]:
        """Reject blank names, which would match every artifact."""
        for name in v:
            if not name.strip():
                raise ValueError("Framework artifact names must not be empty")
        return v


class ListingConfig(BaseModel):
    """Debug-listing reader configuration."""

    max_include_depth: int = Field(32, ge=1, le=256)
    encoding: str = "utf-8"


class RenderConfig(BaseModel):
    """Diagnostic rendering configuration."""

    innermost_marker: str = "--> "
    indent_marker: str = "    "
    heading: str = "ABL Call Stack"
    open_command: str = "_ablunit.openStackTrace"


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path(".ablunit/diagnostics.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "console"
    file: FileLoggingConfig = FileLoggingConfig()


class DiagnosticsConfig(BaseSettings):
    """Root configuration for ablunit-diagnostics."""

    workspace: WorkspaceConfig = WorkspaceConfig()
    runtime: RuntimeConfig = RuntimeConfig()
    framework: FrameworkConfig = FrameworkConfig()
    listing: ListingConfig = ListingConfig()
    render: RenderConfig = RenderConfig()
    logging: LoggingConfig = LoggingConfig()

    model_config = SettingsConfigDict(
        env_prefix="ABLUNIT_",
        env_nested_delimiter="__",
    )

    @model_validator(mode="after")
    def check_catalog_cache(self) -> "DiagnosticsConfig":
        """Anchor a relative catalog cache path at the workspace root."""
        cache = self.runtime.catalog_cache
        if cache is not None and not cache.is_absolute():
            self.runtime.catalog_cache = self.workspace.root / cache
        return self
