"""Configuration loaded from environment variables.

All settings have sensible defaults. Override via DEPTREE_* env vars or a
YAML file (see yaml_config.py).
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace

from .errors import ConfigError

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}

# Changing any of these invalidates the whole tree immediately.
REFRESH_ON_CHANGE = frozenset({
    "show_members",
    "show_non_source_resources",
    "exclude_patterns",
    "workspace_folders",
})


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    logger.warning("Ignoring unrecognised boolean %s=%r", name, raw)
    return default


def _env_list(name: str) -> list[str] | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    return [part.strip() for part in raw.split(os.pathsep) if part.strip()]


@dataclass
class ExplorerConfig:
    """Dependency explorer configuration."""

    # Debounce interval for coalesced refreshes.
    refresh_delay_ms: int = 2000
    # Show folders and plain files next to packages and types.
    show_non_source_resources: bool = False
    # Reveal the edited file in the tree when editor focus changes.
    sync_with_editor: bool = True
    # Expand primary types into their members.
    show_members: bool = False
    # Turn filesystem change events into debounced refreshes.
    auto_refresh: bool = True
    # Glob patterns; matching child resources are hidden.
    exclude_patterns: list[str] = field(default_factory=list)

    # Open workspace roots (filesystem paths).
    workspace_folders: list[str] = field(default_factory=list)
    # File suffixes the filesystem backend treats as source.
    source_extensions: list[str] = field(default_factory=lambda: [".java"])

    # Logging
    log_level: str = "INFO"

    def validate(self) -> None:
        """Reject or normalise out-of-range values."""
        if self.refresh_delay_ms < 0:
            raise ConfigError(
                "refresh_delay_ms", self.refresh_delay_ms, "must be >= 0"
            )
        self.log_level = (self.log_level or "INFO").upper()
        if self.log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            logger.warning("Unknown log level %r; using INFO", self.log_level)
            self.log_level = "INFO"
        cleaned: list[str] = []
        for ext in self.source_extensions:
            ext = ext.strip()
            if not ext:
                continue
            if not ext.startswith("."):
                ext = f".{ext}"
            if ext not in cleaned:
                cleaned.append(ext)
        self.source_extensions = cleaned or [".java"]
        self.exclude_patterns = [p for p in self.exclude_patterns if p]

    def with_changes(self, **changes) -> tuple[ExplorerConfig, set[str]]:
        """Return an updated copy plus the names of fields that changed."""
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ConfigError(", ".join(sorted(unknown)), changes, "unknown setting")
        updated = replace(self, **changes)
        updated.validate()
        changed = {
            name for name in changes
            if getattr(updated, name) != getattr(self, name)
        }
        return updated, changed

    @classmethod
    def from_env(cls) -> ExplorerConfig:
        """Load configuration from DEPTREE_* environment variables."""
        env_vars = {
            k: v for k, v in os.environ.items() if k.startswith("DEPTREE_")
        }
        if env_vars:
            logger.info(
                "ExplorerConfig.from_env: DEPTREE_* env overrides: %s",
                ", ".join(f"{k}={v}" for k, v in sorted(env_vars.items())),
            )
        else:
            logger.debug("ExplorerConfig.from_env: no DEPTREE_* env vars set, using defaults")

        try:
            delay = int(os.getenv(
                "DEPTREE_REFRESH_DELAY", str(cls.refresh_delay_ms)
            ))
        except ValueError as exc:
            raise ConfigError(
                "DEPTREE_REFRESH_DELAY", os.getenv("DEPTREE_REFRESH_DELAY"), str(exc)
            ) from exc

        config = cls(
            refresh_delay_ms=delay,
            show_non_source_resources=_env_bool(
                "DEPTREE_SHOW_NON_SOURCE", cls.show_non_source_resources
            ),
            sync_with_editor=_env_bool(
                "DEPTREE_SYNC_WITH_EDITOR", cls.sync_with_editor
            ),
            show_members=_env_bool("DEPTREE_SHOW_MEMBERS", cls.show_members),
            auto_refresh=_env_bool("DEPTREE_AUTO_REFRESH", cls.auto_refresh),
            exclude_patterns=_env_list("DEPTREE_EXCLUDE") or [],
            workspace_folders=_env_list("DEPTREE_WORKSPACE") or [],
            log_level=os.getenv("DEPTREE_LOG_LEVEL", cls.log_level),
        )
        config.validate()
        logger.info(
            "ExplorerConfig.from_env: delay=%dms workspaces=%d log_level=%s",
            config.refresh_delay_ms, len(config.workspace_folders),
            config.log_level,
        )
        return config
