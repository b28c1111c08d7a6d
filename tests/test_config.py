# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for configuration loading and validation."""

import tempfile
from pathlib import Path

import yaml

from buildorch.config import Config


def test_default_config_when_file_missing():
    """Test that defaults are used when config file is missing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "nonexistent.yml"
        config = Config(config_path=config_path)

        # Check all defaults
        assert config.tsconfig_path == "tsconfig.base.json"
        assert config.main_branch == "main"
        assert config.unit_test_paths == [
            "src/components/**/test/*.js",
            "src/components/**/test/unit/*.js",
        ]
        assert config.integration_test_paths == ["test/integration/**/*.js"]
        assert config.large_refactor_threshold == 50
        assert config.test_file_count_threshold == 20
        assert config.css_build_dir == "build"
        assert config.compile_command == ["amp", "build", "--extensions={name}"]
        assert config.components == []
        assert config.js_bundles == []
        assert config.watch_ignore_patterns == []


def test_component_without_version_rejected():
    """Component entries need a version to locate their sources."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "components": [
                {"name": "amp-foo", "version": 0.1},
                {"name": "amp-bar"},
            ],
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.components == []


def test_numeric_component_version_accepted():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        with open(config_path, "w") as f:
            f.write("components:\n  - name: amp-foo\n    version: 0.1\n")

        config = Config(config_path=config_path)

        assert config.components == [{"name": "amp-foo", "version": 0.1}]


def test_defaults_are_not_shared():
    """Mutating one config's lists must not leak into DEFAULTS."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config = Config(config_path=Path(tmpdir) / "nonexistent.yml")
        config.unit_test_paths.append("extra/*.js")

        assert "extra/*.js" not in Config.DEFAULTS["unit_test_paths"]


def test_valid_config_loading():
    """Test loading a valid configuration file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "main_branch": "trunk",
            "large_refactor_threshold": 80,
            "compile_command": ["npx", "amp", "build", "--extensions={name}"],
            "components": [
                {"name": "amp-foo", "version": "0.1", "minified_name": "amp-foo-0.1"},
                {"name": "amp-bar", "version": "0.1", "has_css": True},
            ],
            "js_bundles": [{"name": "amp-shadow.js", "src_dir": "src/shadow"}],
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.main_branch == "trunk"
        assert config.large_refactor_threshold == 80
        assert config.compile_command[0] == "npx"
        assert [c["name"] for c in config.components] == ["amp-foo", "amp-bar"]
        assert config.js_bundles[0]["src_dir"] == "src/shadow"
        # Defaults for unspecified values
        assert config.test_file_count_threshold == 20


def test_invalid_parameter_values():
    """Test that invalid parameter values are rejected and defaults used."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "large_refactor_threshold": 0,  # Invalid: must be > 0
            "test_file_count_threshold": -1,  # Invalid: must be > 0
            "main_branch": "  ",  # Invalid: blank
            "compile_command": [],  # Invalid: empty
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.large_refactor_threshold == 50
        assert config.test_file_count_threshold == 20
        assert config.main_branch == "main"
        assert config.compile_command == ["amp", "build", "--extensions={name}"]


def test_invalid_parameter_types():
    """Test that invalid parameter types are rejected and defaults used."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "large_refactor_threshold": "fifty",
            "test_file_count_threshold": True,  # bool is not an int here
            "unit_test_paths": "src/**/*.js",  # Must be a list
            "watch_ignore_patterns": [1, 2],  # Must be strings
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.large_refactor_threshold == 50
        assert config.test_file_count_threshold == 20
        assert config.unit_test_paths == Config.DEFAULTS["unit_test_paths"]
        assert config.watch_ignore_patterns == []


def test_invalid_manifests():
    """Manifest entries need a string name; js bundles also need src_dir."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "components": [{"version": "0.1"}],
            "js_bundles": [{"name": "amp-shadow.js"}],
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.components == []
        assert config.js_bundles == []


def test_unknown_parameters_ignored():
    """Test that unknown parameters are ignored with warning."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "unknown_param": "value",
            "css_build_dir": "out",
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.css_build_dir == "out"


def test_empty_config_file():
    """Test handling of empty configuration file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_path.write_text("")

        config = Config(config_path=config_path)

        assert config.large_refactor_threshold == 50


def test_non_mapping_config_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_path.write_text("- just\n- a list\n")

        config = Config(config_path=config_path)

        assert config.main_branch == "main"


def test_invalid_yaml_syntax():
    """Test handling of invalid YAML syntax."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_path.write_text("invalid: yaml: syntax: here:")

        config = Config(config_path=config_path)

        assert config.large_refactor_threshold == 50
        assert config.tsconfig_path == "tsconfig.base.json"


def test_log_levels():
    """Per-logger levels are accepted by name; unknown names keep the default."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        with open(config_path, "w") as f:
            yaml.dump({"log_levels": {"buildorch.selector": "debug"}}, f)

        assert Config(config_path=config_path).log_levels == {"buildorch.selector": "debug"}

        with open(config_path, "w") as f:
            yaml.dump({"log_levels": {"buildorch.selector": "loud"}}, f)

        assert Config(config_path=config_path).log_levels == {}
