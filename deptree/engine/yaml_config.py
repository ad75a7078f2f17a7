"""YAML configuration loader.

Loads a single YAML file that replaces the DEPTREE_* env vars.

Example YAML:
    explorer:
      refresh_delay_ms: 1500
      show_members: true
      show_non_source_resources: false
      sync_with_editor: true
      auto_refresh: true
      exclude_patterns:
        - "**/generated/**"
      log_level: DEBUG

    workspace:
      folders: [".", "../shared-libs"]
      source_extensions: [.java, .kt]

Relative workspace folders resolve against the project directory: the
parent of ``.deptree/`` when the file lives there, else the file's own
directory.
"""
from __future__ import annotations

import logging
from pathlib import Path

import yaml

from .config import ExplorerConfig
from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".deptree"
CONFIG_FILE_NAME = "deptree.yaml"

_EXPLORER_KEYS = (
    "refresh_delay_ms",
    "show_non_source_resources",
    "sync_with_editor",
    "show_members",
    "auto_refresh",
    "exclude_patterns",
    "log_level",
)


def discover_config(cwd: Path) -> Path | None:
    """Find ``.deptree/deptree.yaml`` (preferred) or ``deptree.yaml`` in *cwd*."""
    preferred = cwd / CONFIG_DIR_NAME / CONFIG_FILE_NAME
    legacy = cwd / CONFIG_FILE_NAME
    logger.info(
        "Config auto-discovery candidates: %s (exists=%s), %s (exists=%s)",
        preferred, preferred.exists(), legacy, legacy.exists(),
    )
    if preferred.exists():
        return preferred
    if legacy.exists():
        return legacy
    return None


def _project_dir(path: Path) -> Path:
    parent = path.resolve().parent
    if parent.name == CONFIG_DIR_NAME:
        return parent.parent
    return parent


def _as_list(key: str, value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise ConfigError(key, value, "expected a string or a list of strings")


def load_yaml_config(path: str | Path) -> ExplorerConfig:
    """Load and parse a YAML config file into an ExplorerConfig."""
    path = Path(path)
    logger.info(
        "load_yaml_config: attempting to load config from %s (exists=%s)",
        path, path.exists(),
    )
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error(
            "load_yaml_config: config file not found at %s (absolute path: %s)",
            path, path.absolute(),
        )
        raise
    except yaml.YAMLError as exc:
        logger.error("load_yaml_config: YAML parse error in %s: %s", path, exc)
        raise

    if not isinstance(raw, dict):
        raise ConfigError(str(path), type(raw).__name__, "top level must be a mapping")

    top_sections = sorted(raw.keys())
    logger.info(
        "Parsed YAML config %s, sections: %s",
        path.name, ", ".join(top_sections) if top_sections else "(empty)",
    )

    explorer_raw = raw.get("explorer") or {}
    workspace_raw = raw.get("workspace") or {}

    config = ExplorerConfig()
    for key in _EXPLORER_KEYS:
        if key not in explorer_raw:
            continue
        value = explorer_raw[key]
        if key == "exclude_patterns":
            value = _as_list(key, value)
        elif key == "refresh_delay_ms":
            try:
                value = int(value)
            except (TypeError, ValueError) as exc:
                raise ConfigError(key, value, "expected milliseconds") from exc
        elif key != "log_level" and not isinstance(value, bool):
            raise ConfigError(key, value, "expected true or false")
        setattr(config, key, value)

    unknown = set(explorer_raw) - set(_EXPLORER_KEYS)
    if unknown:
        logger.warning(
            "load_yaml_config: ignoring unknown explorer keys: %s",
            ", ".join(sorted(unknown)),
        )

    base_dir = _project_dir(path)
    folders = _as_list("workspace.folders", workspace_raw.get("folders"))
    config.workspace_folders = [
        str((base_dir / folder).resolve()) for folder in folders
    ]
    if "source_extensions" in workspace_raw:
        config.source_extensions = _as_list(
            "workspace.source_extensions", workspace_raw["source_extensions"]
        )

    config.validate()
    logger.info(
        "load_yaml_config: delay=%dms workspaces=%s",
        config.refresh_delay_ms, config.workspace_folders or "(none)",
    )
    return config
