"""
Tests for config loading — macsetup.yml parsing and validation.
"""

from pathlib import Path

import pytest

from macsetup.core.config.loader import (
    ConfigError,
    find_config_file,
    load_desired_state,
    parse_desired_state,
)
from macsetup.core.models.desired import ActionKind


class TestLoadDesiredState:
    """Tests for loading a full config."""

    def test_full_config(self, full_config: Path):
        state = load_desired_state(full_config)
        assert state.request_count == 13
        assert len(state.packages) == 6
        assert state.identity is not None
        assert state.identity.email == "ada@example.com"
        assert state.oh_my_zsh is True

    def test_formula_version_split(self, full_config: Path):
        state = load_desired_state(full_config)
        node = state.packages_of(ActionKind.FORMULA)[1]
        assert node.name == "node"
        assert node.version == "20"
        assert node.install_target == "node@20"

    def test_app_store_id_as_string(self, full_config: Path):
        state = load_desired_state(full_config)
        (xcode,) = state.packages_of(ActionKind.APP_STORE)
        assert xcode.app_id == "497799835"
        assert xcode.name == "Xcode"

    def test_dock_order(self, full_config: Path):
        state = load_desired_state(full_config)
        assert [d.op for d in state.dock] == ["replace", "add", "remove"]

    def test_shell_exports(self, full_config: Path):
        state = load_desired_state(full_config)
        assert [e.line for e in state.shell_exports] == ['export JAVA_HOME="/Library/Java/Home"']

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_desired_state(tmp_path / "nope.yml")

    def test_auto_detect(self, full_config: Path, tmp_path: Path, monkeypatch):
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)
        state = load_desired_state()
        assert state.request_count == 13

    def test_auto_detect_none(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ConfigError, match="No macsetup.yml"):
            load_desired_state()


class TestParseDesiredState:
    """Tests for YAML edge cases and validation errors."""

    def test_empty_document(self):
        assert parse_desired_state("").request_count == 0

    def test_absent_sections_are_empty(self):
        state = parse_desired_state("formulae:\n  - git\n")
        assert state.settings == []
        assert state.dock == []
        assert state.identity is None

    def test_null_section_is_empty(self):
        state = parse_desired_state("formulae:\ncasks:\n  - iterm2\n")
        assert [p.name for p in state.packages] == ["iterm2"]

    def test_invalid_yaml(self):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            parse_desired_state("formulae: [git")

    def test_not_a_mapping(self):
        with pytest.raises(ConfigError, match="mapping"):
            parse_desired_state("- git\n- curl\n")

    def test_unknown_section(self):
        with pytest.raises(ConfigError, match="brewfile"):
            parse_desired_state("brewfile: ./Brewfile\n")

    def test_duplicate_formula(self):
        with pytest.raises(ConfigError, match="duplicate"):
            parse_desired_state("formulae: [git, curl, git]\n")

    def test_empty_entry(self):
        with pytest.raises(ConfigError, match="empty"):
            parse_desired_state("casks: ['  ']\n")

    def test_duplicate_app_id(self):
        with pytest.raises(ConfigError, match="497799835"):
            parse_desired_state(
                "appStoreApps:\n"
                "  - {id: 497799835, name: Xcode}\n"
                "  - {id: 497799835, name: Xcode again}\n"
            )

    def test_duplicate_setting(self):
        with pytest.raises(ConfigError, match="duplicate setting"):
            parse_desired_state(
                "settings:\n"
                "  - {domain: com.apple.dock, key: autohide, value: true, type: bool}\n"
                "  - {domain: com.apple.dock, key: autohide, value: false, type: bool}\n"
            )

    def test_setting_type_mismatch(self):
        with pytest.raises(ConfigError, match="expected a bool"):
            parse_desired_state(
                "settings:\n"
                "  - {domain: com.apple.dock, key: autohide, value: sometimes, type: bool}\n"
            )

    def test_setting_unknown_type(self):
        with pytest.raises(ConfigError):
            parse_desired_state(
                "settings:\n"
                "  - {domain: com.apple.dock, key: autohide, value: 1, type: date}\n"
            )

    def test_dock_replace_missing_side(self):
        with pytest.raises(ConfigError, match="replace"):
            parse_desired_state("dockReplace:\n  - {add: /Applications/Firefox.app}\n")

    def test_identity_blank_email(self):
        with pytest.raises(ConfigError, match="identity"):
            parse_desired_state("identity: {name: Ada, email: ''}\n")

    def test_export_values_coerced(self):
        state = parse_desired_state("shellExports:\n  HISTSIZE: 10000\n")
        assert state.shell_exports[0].value == "10000"

    def test_error_names_source(self):
        with pytest.raises(ConfigError, match="machine.yml"):
            parse_desired_state("nonsense: 1\n", source="machine.yml")

    def test_versions_of_one_formula(self):
        state = parse_desired_state("formulae: [node, node@18]\n")
        assert [p.key for p in state.packages] == ["node", "node@18"]

    def test_dock_add_trailing_slash_duplicate(self):
        with pytest.raises(ConfigError, match="duplicate"):
            parse_desired_state(
                "dockAdd:\n"
                "  - /Applications/Safari.app\n"
                "  - /Applications/Safari.app/\n"
            )

    def test_dock_add_and_replace_of_same_app_allowed(self):
        state = parse_desired_state(
            "dockAdd: [/Applications/Firefox.app]\n"
            "dockReplace:\n"
            "  - {add: /Applications/Firefox.app, replace: Safari}\n"
        )
        assert len(state.dock) == 2

    def test_export_invalid_name(self):
        with pytest.raises(ConfigError, match="MY VAR"):
            parse_desired_state("shellExports:\n  MY VAR: x\n")

    def test_export_value_with_spaces(self):
        state = parse_desired_state("shellExports:\n  JAVA_HOME: /Library/Java Home\n")
        assert state.shell_exports[0].line == 'export JAVA_HOME="/Library/Java Home"'

    def test_install_homebrew(self):
        state = parse_desired_state("installHomebrew: true\nformulae: [git]\n")
        assert state.install_homebrew is True
        assert state.request_count == 2

    def test_install_homebrew_default_off(self):
        assert parse_desired_state("formulae: [git]\n").install_homebrew is False


class TestFindConfigFile:
    def test_found_in_parent(self, tmp_path: Path):
        (tmp_path / "macsetup.yml").write_text("formulae: []\n")
        child = tmp_path / "deep" / "child"
        child.mkdir(parents=True)
        assert find_config_file(child) == (tmp_path / "macsetup.yml").resolve()

    def test_not_found(self, tmp_path: Path):
        assert find_config_file(tmp_path) is None
