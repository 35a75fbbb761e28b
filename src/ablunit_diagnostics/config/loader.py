"""Load ``ablunit.yaml`` into a validated ``DiagnosticsConfig``.

``${NAME}`` references anywhere in the file are expanded from the
environment before the YAML is parsed.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from .schema import DiagnosticsConfig

_ENV_REFERENCE = re.compile(r"\$\{([^}]+)\}")


def substitute_env_vars(text: str) -> str:
    """Expand ``${NAME}`` references in ``text``.

    Raises:
        ValueError: If a referenced variable is unset
    """

    def expand(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in os.environ:
            raise ValueError(f"Environment variable {name} not found")
        return os.environ[name]

    return _ENV_REFERENCE.sub(expand, text)


def _anchor_workspace_root(raw: dict[str, Any], config_dir: Path) -> None:
    # A relative workspace root is taken from the config file's directory, not the cwd
    workspace = raw.get("workspace")
    if not isinstance(workspace, dict) or "root" not in workspace:
        return
    root = Path(str(workspace["root"]))
    if not root.is_absolute():
        workspace["root"] = str(config_dir / root)


def load_config(path: Path | None = None) -> DiagnosticsConfig:
    """Read, expand and validate the configuration file.

    Without a path only defaults and ``ABLUNIT_*`` environment variables apply.

    Raises:
        FileNotFoundError: If ``path`` does not exist
        ValueError: On missing variables, a non-mapping document, or a schema violation
    """
    if path is None:
        config = DiagnosticsConfig()
    else:
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        raw = yaml.safe_load(substitute_env_vars(path.read_text(encoding="utf-8"))) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Configuration root must be a mapping: {path}")

        _anchor_workspace_root(raw, path.parent)
        config = DiagnosticsConfig.model_validate(raw)

    validate_config(config)
    return config


def validate_config(config: DiagnosticsConfig) -> None:
    """Checks that span more than one field.

    Raises:
        ValueError: If the workspace root is missing or several runtimes claim default
    """
    if not config.workspace.root.is_dir():
        raise ValueError(f"Workspace root is not a directory: {config.workspace.root}")

    defaults = [runtime.name for runtime in config.runtime.runtimes if runtime.default]
    if len(defaults) > 1:
        raise ValueError(f"More than one default runtime: {', '.join(defaults)}")
