"""Tests for aisync.config_loader -- discovery, includes, loading."""

import json
import textwrap

import pytest
import yaml

from aisync.config_loader import (
    _interpolate_recursive,
    _load_yaml_with_includes,
    discover_config_files,
    ensure_config,
    interpolate_env_vars,
    load_config,
    load_raw_config,
)
from aisync.config_schema import SyncMode
from aisync.errors import ConfigError

# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    """Tests for ${VAR} and ${VAR:-default} substitution."""

    def test_replaces_set_var(self, monkeypatch):
        """A set variable is substituted."""
        monkeypatch.setenv("RULES_DIR", "/home/me/rules")
        assert interpolate_env_vars("${RULES_DIR}") == "/home/me/rules"

    def test_unset_var_replaced_with_empty(self, monkeypatch):
        """An unset variable without default becomes an empty string."""
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ}") == ""

    def test_default_used_when_unset(self, monkeypatch):
        """The :- default is used when the variable is unset."""
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert (
            interpolate_env_vars("${UNSET_VAR_XYZ:-fallback}")
            == "fallback"
        )

    def test_default_ignored_when_set(self, monkeypatch):
        """The :- default is ignored when the variable is set."""
        monkeypatch.setenv("MY_MODE", "full")
        assert interpolate_env_vars("${MY_MODE:-incremental}") == "full"

    def test_empty_env_var_uses_default(self, monkeypatch):
        """An empty variable falls back to the default."""
        monkeypatch.setenv("EMPTY_VAR", "")
        assert (
            interpolate_env_vars("${EMPTY_VAR:-fallback}") == "fallback"
        )

    def test_literal_dollar_brace_no_closing(self):
        """An unterminated ${ is left as written."""
        assert interpolate_env_vars("${NO_CLOSE") == "${NO_CLOSE"

    def test_nested_structures(self, monkeypatch):
        """Strings in nested lists and dicts are interpolated."""
        monkeypatch.setenv("HOME_DIR", "/home/me")
        data = {
            "sources": ["${HOME_DIR}/rules.md", 3],
            "targets": [{"path": "${HOME_DIR}/proj", "enabled": True}],
        }
        assert _interpolate_recursive(data) == {
            "sources": ["/home/me/rules.md", 3],
            "targets": [{"path": "/home/me/proj", "enabled": True}],
        }


# -------------------------------------------------------------------------
# YAML !include support
# -------------------------------------------------------------------------


class TestIncludeDirective:
    """Tests for !include YAML loading via ConfigLoader subclass."""

    def test_include_relative_file(self, tmp_path):
        """Relative includes resolve against the including file."""
        (tmp_path / "targets.yml").write_text(
            "- name: kiro\n  type: kiro\n"
        )
        main = tmp_path / "config.yml"
        main.write_text("targets: !include targets.yml\n")

        result = _load_yaml_with_includes(main)
        assert result == {"targets": [{"name": "kiro", "type": "kiro"}]}

    def test_include_absolute_path(self, tmp_path):
        """Absolute include paths are used as is."""
        shared = tmp_path / "shared.yml"
        shared.write_text("level: DEBUG\n")
        main = tmp_path / "config.yml"
        main.write_text(f"logging: !include {shared}\n")

        assert _load_yaml_with_includes(main) == {
            "logging": {"level": "DEBUG"}
        }

    def test_include_nonexistent_raises(self, tmp_path):
        """Including a missing file raises ConfigError."""
        main = tmp_path / "config.yml"
        main.write_text("data: !include missing.yml\n")

        with pytest.raises(ConfigError, match="missing.yml"):
            _load_yaml_with_includes(main)

    def test_circular_include_raises(self, tmp_path):
        """Two files including each other are rejected."""
        (tmp_path / "a.yml").write_text("x: !include b.yml\n")
        (tmp_path / "b.yml").write_text("y: !include a.yml\n")

        with pytest.raises(ConfigError, match="Circular include"):
            _load_yaml_with_includes(tmp_path / "a.yml")

    def test_self_include_raises(self, tmp_path):
        """A file including itself is rejected."""
        a = tmp_path / "a.yml"
        a.write_text("x: !include a.yml\n")

        with pytest.raises(ConfigError, match="Circular include"):
            _load_yaml_with_includes(a)

    def test_nested_includes(self, tmp_path):
        """Includes inside included files are followed."""
        (tmp_path / "c.yml").write_text("val: deep\n")
        (tmp_path / "b.yml").write_text("inner: !include c.yml\n")
        a = tmp_path / "a.yml"
        a.write_text("outer: !include b.yml\n")

        result = _load_yaml_with_includes(a)
        assert result == {"outer": {"inner": {"val": "deep"}}}

    def test_global_safe_loader_not_polluted(self, tmp_path):
        """Verify that !include is NOT registered on yaml.SafeLoader."""
        cfg = tmp_path / "test.yml"
        cfg.write_text("x: !include other.yml\n")

        with pytest.raises(yaml.constructor.ConstructorError):
            with open(cfg) as fh:
                yaml.safe_load(fh)


# -------------------------------------------------------------------------
# Convention-based file discovery
# -------------------------------------------------------------------------


class TestDiscoverConfigFiles:
    """Tests for discover_config_files() precedence and filtering."""

    @pytest.fixture(autouse=True)
    def _fake_home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        monkeypatch.chdir(tmp_path)

    def test_env_var_takes_highest_precedence(self, tmp_path, monkeypatch):
        """AISYNC_CONFIG comes before every default location."""
        (tmp_path / "aisync.config.json").write_text("{}")
        custom = tmp_path / "custom.yml"
        custom.write_text("mode: full\n")
        monkeypatch.setenv("AISYNC_CONFIG", str(custom))

        result = discover_config_files()
        assert result[0] == custom.resolve()

    def test_precedence_order(self, tmp_path):
        """Default locations are returned in discovery order."""
        paths = [
            tmp_path / "aisync.config.json",
            tmp_path / "aisync.config.yml",
            tmp_path / ".aisync" / "config.yml",
            tmp_path / "home" / ".config" / "aisync" / "config.yml",
        ]
        for path in reversed(paths):
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("{}\n")

        assert discover_config_files() == paths

    def test_missing_files_excluded(self, tmp_path):
        """Only existing files are returned."""
        (tmp_path / "aisync.config.yml").write_text("{}\n")
        assert discover_config_files() == [tmp_path / "aisync.config.yml"]

    def test_empty_filesystem_returns_empty(self):
        """Nothing to discover gives an empty list."""
        assert discover_config_files() == []


# -------------------------------------------------------------------------
# Loading
# -------------------------------------------------------------------------


_YAML_CONFIG = textwrap.dedent(
    """\
    sources:
      - ${RULES_DIR:-.}/rules.md
    mode: full
    targets:
      - name: cursor
        type: cursor
        path: proj
        mapping:
          - source: rules.md
            destination: .cursor/rules/rules.md
            transform:
              - type: replace
                pattern: Kiro
                replacement: Cursor
    """
)


class TestLoadConfig:
    """Tests for load_raw_config() and load_config()."""

    def test_yaml_config(self, tmp_path, monkeypatch):
        """A YAML config is parsed and interpolated."""
        monkeypatch.setenv("RULES_DIR", "/rules")
        path = tmp_path / "aisync.config.yml"
        path.write_text(_YAML_CONFIG)

        config = load_config(path)

        assert config.sources == ["/rules/rules.md"]
        assert config.mode is SyncMode.FULL
        assert config.targets[0].mapping[0].transform[0].replacement == (
            "Cursor"
        )

    def test_json_config(self, tmp_path):
        """A JSON config is parsed by extension."""
        path = tmp_path / "aisync.config.json"
        path.write_text(
            json.dumps(
                {
                    "sources": ["a.md"],
                    "targets": [
                        {
                            "name": "t",
                            "type": "custom",
                            "mapping": [
                                {"source": "a.md", "destination": "out/a.md"}
                            ],
                        }
                    ],
                }
            )
        )

        config = load_config(path)

        assert config.mode is SyncMode.INCREMENTAL
        assert config.targets[0].path is None

    def test_discovered_config_used(self, tmp_path, monkeypatch):
        """load_config() without a path uses the first discovered file."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        (tmp_path / "aisync.config.yml").write_text(_YAML_CONFIG)

        assert load_config().targets[0].name == "cursor"

    def test_no_config_found(self, tmp_path, monkeypatch):
        """load_config() fails when nothing is discovered."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        with pytest.raises(ConfigError, match="No configuration file found"):
            load_config()

    def test_missing_explicit_file(self, tmp_path):
        """An explicit path that does not exist raises ConfigError."""
        with pytest.raises(ConfigError, match="Configuration file not found"):
            load_config(tmp_path / "nope.yml")

    def test_invalid_json(self, tmp_path):
        """Malformed JSON surfaces as ConfigError."""
        path = tmp_path / "aisync.config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError, match="Failed to parse"):
            load_raw_config(path)

    def test_invalid_yaml(self, tmp_path):
        """Malformed YAML surfaces as ConfigError."""
        path = tmp_path / "aisync.config.yml"
        path.write_text("targets: [unclosed\n")
        with pytest.raises(ConfigError, match="Failed to parse"):
            load_raw_config(path)

    def test_empty_yaml_is_empty_dict(self, tmp_path):
        """An empty YAML file loads as an empty dict."""
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_raw_config(path) == {}

    def test_non_dict_root(self, tmp_path):
        """A config whose root is not a mapping is rejected."""
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="non-dict root"):
            load_raw_config(path)

    def test_schema_errors_surface_as_config_error(self, tmp_path):
        """Schema violations are reported as ConfigError."""
        path = tmp_path / "bad.yml"
        path.write_text("targets: []\nmode: sideways\n")
        with pytest.raises(ConfigError, match="validation failed"):
            load_config(path)


# -------------------------------------------------------------------------
# Config bootstrapping
# -------------------------------------------------------------------------


class TestEnsureConfig:
    """Tests for ensure_config() starter-file creation."""

    @pytest.fixture(autouse=True)
    def _fake_home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        monkeypatch.chdir(tmp_path)

    def test_creates_default_file(self, tmp_path):
        """Without any config a starter file is written to the cwd."""
        path = ensure_config()

        assert path == tmp_path / "aisync.config.yml"
        config = load_config(path)
        assert [t.name for t in config.targets] == ["kiro", "cursor"]
        assert config.targets[1].enabled is False

    def test_noop_when_discovered(self, tmp_path):
        """An already discovered config is returned untouched."""
        existing = tmp_path / ".aisync" / "config.yml"
        existing.parent.mkdir()
        existing.write_text("mode: full\n")

        assert ensure_config() == existing
        assert existing.read_text() == "mode: full\n"

    def test_explicit_target_created_with_parents(self, tmp_path):
        """Missing parent directories of an explicit path are created."""
        target = tmp_path / "nested" / "dir" / "aisync.config.yml"
        assert ensure_config(target) == target
        assert target.exists()

    def test_explicit_existing_target_untouched(self, tmp_path):
        """An existing explicit file is not overwritten."""
        target = tmp_path / "mine.yml"
        target.write_text("mode: full\n")
        ensure_config(target)
        assert target.read_text() == "mode: full\n"

    def test_json_target_gets_json(self, tmp_path):
        """A .json path receives the starter config as JSON."""
        target = tmp_path / "aisync.config.json"
        ensure_config(target)

        data = json.loads(target.read_text())
        assert data["mode"] == "incremental"
        assert load_config(target).targets[0].type == "kiro"
