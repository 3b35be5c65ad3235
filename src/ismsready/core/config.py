"""3-layer configuration system for ismsready.

Loads and merges configuration from:
1. Default settings (built-in)
2. Workspace config (.isms/config.yaml)
3. CLI parameters (override)
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Optional

import yaml

from .. import __version__

logger = logging.getLogger(__name__)

WORKSPACE_DIR = ".isms"

DEFAULT_CONFIG: dict = {
    "project": {
        "id": "",
        "name": "",
    },
    "user": {
        "id_env": "ISMS_USER_ID",
        "default": "local-user",
    },
    "catalog": {
        "id": "iso27001-2022",
        "path": "",
    },
    "store": {
        "backend": "yaml",
        "timeout_seconds": 10,
        "yaml": {"path": f"{WORKSPACE_DIR}/state.yaml"},
        "rest": {
            "endpoint": "",
            "api_key_env": "ISMS_REST_API_KEY",
            "schema": "public",
        },
    },
    "logging": {
        "level": "WARNING",
    },
}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts. Arrays are replaced, not merged."""
    result = {}
    for key in base:
        result[key] = base[key]
    for key, value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            result[key] = deep_merge(base_value, value)
        else:
            result[key] = value
    return result


def load_workspace_config(workspace: Path) -> dict:
    """Load workspace configuration from .isms/config.yaml."""
    config_path = workspace / WORKSPACE_DIR / "config.yaml"
    if not config_path.exists():
        return {}
    try:
        content = config_path.read_text(encoding="utf-8-sig")  # utf-8-sig strips BOM
        return yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        logger.warning("Ignoring unreadable config %s: %s", config_path, e)
        return {}


def get_effective_config(
    workspace: Path,
    cli_overrides: Optional[dict] = None,
) -> dict:
    """Get the fully resolved configuration for a workspace."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    workspace_config = load_workspace_config(workspace)
    if workspace_config:
        config = deep_merge(config, workspace_config)

    if cli_overrides:
        config = deep_merge(config, cli_overrides)

    # Relative store paths are anchored at the workspace, not the cwd
    yaml_path = Path(config["store"]["yaml"]["path"])
    if not yaml_path.is_absolute():
        config["store"]["yaml"]["path"] = str(workspace / yaml_path)

    config["_workspace"] = str(workspace)
    return config


def resolve_user_id(config: dict) -> str:
    """Resolve the acting principal from the environment or config default."""
    user_config = config.get("user") or {}
    env_var = user_config.get("id_env", "ISMS_USER_ID")
    return os.environ.get(env_var) or user_config.get("default") or "local-user"


def initialize_workspace(workspace: Path, project_name: str = "") -> Path:
    """Create the .isms directory with a starter config.yaml."""
    isms_dir = workspace / WORKSPACE_DIR
    isms_dir.mkdir(parents=True, exist_ok=True)

    config_path = isms_dir / "config.yaml"
    if not config_path.exists():
        config_path.write_text(
            "# ismsready workspace configuration\n"
            "\n"
            f"ismsready_version: \"{__version__}\"\n"
            "\n"
            "project:\n"
            f'  name: "{project_name or workspace.name}"\n'
            "\n"
            "store:\n"
            "  backend: yaml\n",
            encoding="utf-8",
        )
    return config_path


def save_workspace_value(workspace: Path, section: str, key: str, value: str) -> None:
    """Persist a single setting into .isms/config.yaml."""
    config_path = workspace / WORKSPACE_DIR / "config.yaml"
    data = load_workspace_config(workspace)
    data.setdefault(section, {})[key] = value
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )
