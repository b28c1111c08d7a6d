# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for the build orchestrator."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigurationError
from .logging_setup import LEVEL_NAMES

logger = logging.getLogger(__name__)

__all__ = ["Config", "ConfigurationError"]


def _is_version(value: Any) -> bool:
    """Component versions are written as strings or bare YAML numbers."""
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return isinstance(value, (int, float))


class Config:
    """Configuration for the build orchestrator.

    Loads configuration from .buildorch.yml with validation and defaults.
    Invalid values are logged and replaced by their defaults; only missing
    alias configuration is fatal, and that is detected when the dependency
    graph is created.
    """

    DEFAULTS = {
        "tsconfig_path": "tsconfig.base.json",
        "main_branch": "main",
        "unit_test_paths": [
            "src/components/**/test/*.js",
            "src/components/**/test/unit/*.js",
        ],
        "integration_test_paths": ["test/integration/**/*.js"],
        "large_refactor_threshold": 50,
        "test_file_count_threshold": 20,
        "css_build_dir": "build",
        "compile_command": ["amp", "build", "--extensions={name}"],
        "components": [],
        "js_bundles": [],
        "watch_ignore_patterns": [],
        "log_levels": {},
    }

    _STRING_LISTS = (
        "unit_test_paths",
        "integration_test_paths",
        "compile_command",
        "watch_ignore_patterns",
    )

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
        """
        if config_path is None:
            config_path = Path.cwd() / ".buildorch.yml"

        self.config_path = config_path
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            self._config = self._defaults()
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)

            if loaded_config is None:
                logger.warning("Configuration file is empty, using defaults")
                self._config = self._defaults()
                return

            if not isinstance(loaded_config, dict):
                logger.warning(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(loaded_config)}, using defaults"
                )
                self._config = self._defaults()
                return

            self._config = self._defaults()
            self._validate_and_merge(loaded_config)

        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()
        except OSError as e:
            logger.warning(
                f"Could not read configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()

    def _defaults(self) -> Dict[str, Any]:
        defaults: Dict[str, Any] = {}
        for key, value in self.DEFAULTS.items():
            if isinstance(value, (list, dict)):
                value = type(value)(value)
            defaults[key] = value
        return defaults

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        expected_type = type(self.DEFAULTS[key])
        # bool is a subclass of int
        if isinstance(value, bool) and expected_type is not bool:
            return False
        if not isinstance(value, expected_type):
            return False

        if key in ("large_refactor_threshold", "test_file_count_threshold"):
            return value > 0
        elif key in ("tsconfig_path", "main_branch", "css_build_dir"):
            return bool(value.strip())
        elif key in self._STRING_LISTS:
            if not all(isinstance(item, str) for item in value):
                return False
            if key == "compile_command":
                return len(value) > 0
            return True
        elif key in ("components", "js_bundles"):
            # Each entry must be a mapping with a string name
            for entry in value:
                if not isinstance(entry, dict):
                    return False
                if not isinstance(entry.get("name"), str):
                    return False
            if key == "js_bundles":
                return all(isinstance(entry.get("src_dir"), str) for entry in value)
            return all(_is_version(entry.get("version")) for entry in value)
        elif key == "log_levels":
            return all(
                isinstance(name, str) and isinstance(level, str) and level.upper() in LEVEL_NAMES
                for name, level in value.items()
            )

        return True

    @property
    def tsconfig_path(self) -> str:
        """Path of the tsconfig file holding the import alias table."""
        value = self._config["tsconfig_path"]
        assert isinstance(value, str)
        return value

    @property
    def main_branch(self) -> str:
        """Name of the main branch used as the diff baseline."""
        value = self._config["main_branch"]
        assert isinstance(value, str)
        return value

    @property
    def unit_test_paths(self) -> List[str]:
        """Glob patterns of unit test files."""
        value = self._config["unit_test_paths"]
        assert isinstance(value, list)
        return value

    @property
    def integration_test_paths(self) -> List[str]:
        """Glob patterns of integration test files."""
        value = self._config["integration_test_paths"]
        assert isinstance(value, list)
        return value

    @property
    def large_refactor_threshold(self) -> int:
        """Changed-file count at which test selection falls back to the full suite."""
        value = self._config["large_refactor_threshold"]
        assert isinstance(value, int)
        return value

    @property
    def test_file_count_threshold(self) -> int:
        """Maximum number of selected tests in CI before running the full suite."""
        value = self._config["test_file_count_threshold"]
        assert isinstance(value, int)
        return value

    @property
    def css_build_dir(self) -> str:
        """Directory of the script modules generated from stylesheets."""
        value = self._config["css_build_dir"]
        assert isinstance(value, str)
        return value

    @property
    def compile_command(self) -> List[str]:
        """Command template of the external compiler."""
        value = self._config["compile_command"]
        assert isinstance(value, list)
        return value

    @property
    def components(self) -> List[Dict[str, Any]]:
        """Component bundle manifest entries."""
        value = self._config["components"]
        assert isinstance(value, list)
        return value

    @property
    def js_bundles(self) -> List[Dict[str, Any]]:
        """Non-component JS bundle manifest entries."""
        value = self._config["js_bundles"]
        assert isinstance(value, list)
        return value

    @property
    def watch_ignore_patterns(self) -> List[str]:
        """Additional file patterns the file watcher ignores beyond .gitignore."""
        value = self._config["watch_ignore_patterns"]
        assert isinstance(value, list)
        return value

    @property
    def log_levels(self) -> Dict[str, str]:
        """Per-logger level overrides, logger name -> level name."""
        value = self._config["log_levels"]
        assert isinstance(value, dict)
        return value
