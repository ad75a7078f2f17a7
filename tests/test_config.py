"""Tests for env and YAML configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from deptree.engine.config import ExplorerConfig
from deptree.engine.errors import ConfigError
from deptree.engine.yaml_config import discover_config, load_yaml_config


def test_defaults():
    config = ExplorerConfig()
    assert config.refresh_delay_ms == 2000
    assert config.show_non_source_resources is False
    assert config.sync_with_editor is True
    assert config.source_extensions == [".java"]


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("DEPTREE_REFRESH_DELAY", "750")
    monkeypatch.setenv("DEPTREE_SHOW_NON_SOURCE", "yes")
    monkeypatch.setenv("DEPTREE_SYNC_WITH_EDITOR", "off")
    monkeypatch.setenv("DEPTREE_SHOW_MEMBERS", "bogus")
    monkeypatch.setenv("DEPTREE_WORKSPACE", f"{tmp_path / 'a'}:{tmp_path / 'b'}")
    monkeypatch.setenv("DEPTREE_LOG_LEVEL", "debug")

    config = ExplorerConfig.from_env()

    assert config.refresh_delay_ms == 750
    assert config.show_non_source_resources is True
    assert config.sync_with_editor is False
    assert config.show_members is False  # unrecognised value keeps default
    assert config.workspace_folders == [str(tmp_path / "a"), str(tmp_path / "b")]
    assert config.log_level == "DEBUG"


def test_from_env_rejects_bad_delay(monkeypatch):
    monkeypatch.setenv("DEPTREE_REFRESH_DELAY", "soon")
    with pytest.raises(ConfigError):
        ExplorerConfig.from_env()


def test_validate_rejects_negative_delay():
    with pytest.raises(ConfigError):
        ExplorerConfig(refresh_delay_ms=-1).validate()


def test_validate_normalises_extensions_and_level():
    config = ExplorerConfig(source_extensions=["java", ".kt", "", ".java"], log_level="chatty")
    config.validate()
    assert config.source_extensions == [".java", ".kt"]
    assert config.log_level == "INFO"


def test_with_changes_reports_changed_fields():
    config = ExplorerConfig()
    updated, changed = config.with_changes(show_members=True, refresh_delay_ms=2000)
    assert changed == {"show_members"}
    assert updated.show_members is True
    assert config.show_members is False

    with pytest.raises(ConfigError):
        config.with_changes(colour="blue")


def test_load_yaml_config(tmp_path):
    project = tmp_path / "project"
    config_dir = project / ".deptree"
    config_dir.mkdir(parents=True)
    config_file = config_dir / "deptree.yaml"
    config_file.write_text(
        "explorer:\n"
        "  refresh_delay_ms: 1500\n"
        "  show_members: true\n"
        "  exclude_patterns: '*/generated/*'\n"
        "  surprise: 1\n"
        "workspace:\n"
        "  folders: ['.', 'libs']\n"
        "  source_extensions: [java, .kt]\n"
    )

    config = load_yaml_config(config_file)

    assert config.refresh_delay_ms == 1500
    assert config.show_members is True
    assert config.exclude_patterns == ["*/generated/*"]
    # Relative folders resolve against the directory holding .deptree/.
    assert config.workspace_folders == [
        str(project.resolve()),
        str((project / "libs").resolve()),
    ]
    assert config.source_extensions == [".java", ".kt"]


def test_load_yaml_config_type_errors(tmp_path):
    bad = tmp_path / "deptree.yaml"
    bad.write_text("explorer:\n  show_members: maybe\n")
    with pytest.raises(ConfigError):
        load_yaml_config(bad)

    bad.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        load_yaml_config(bad)


def test_load_yaml_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_yaml_config(tmp_path / "nope.yaml")


def test_empty_yaml_gives_defaults(tmp_path):
    empty = tmp_path / "deptree.yaml"
    empty.write_text("")
    config = load_yaml_config(empty)
    assert config == ExplorerConfig()


def test_discover_prefers_dot_directory(tmp_path):
    assert discover_config(tmp_path) is None

    legacy = tmp_path / "deptree.yaml"
    legacy.write_text("")
    assert discover_config(tmp_path) == legacy

    preferred = tmp_path / ".deptree" / "deptree.yaml"
    preferred.parent.mkdir()
    preferred.write_text("")
    assert discover_config(Path(tmp_path)) == preferred
