# ldeaths_forecaster_src/config_utils.py

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "model.yaml"

# Initialize the global configuration manager
config_manager = None


class ConfigurationManager:
    """
    Thin wrapper around a nested YAML mapping with dot-path access.

    Keys are addressed as ``"model.search_space.max_p"``; missing segments
    resolve to the supplied default.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None, source: Optional[Path] = None):
        self.data = data or {}
        self.source = source

    @classmethod
    def from_yaml(cls, path: Path) -> "ConfigurationManager":
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Top-level YAML in {path} must be a mapping, got {type(data).__name__}")
        return cls(data, source=path)

    def get(self, key_path: str, default=None):
        node: Any = self.data
        for part in key_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def validate_configuration(self) -> Dict[str, list]:
        """Return a mapping of section -> list of problems (empty when valid)."""
        errors: Dict[str, list] = {}

        fixed = self.get("model.fixed_parameters", {}) or {}
        for key in ("d", "D", "s"):
            val = fixed.get(key)
            if val is not None and (not isinstance(val, int) or val < 0):
                errors.setdefault("model.fixed_parameters", []).append(
                    f"'{key}' must be a non-negative integer, got {val!r}"
                )

        space = self.get("model.search_space", {}) or {}
        for key, val in space.items():
            if not isinstance(val, int) or val < 0:
                errors.setdefault("model.search_space", []).append(
                    f"'{key}' must be a non-negative integer, got {val!r}"
                )

        criterion = self.get("model.criterion")
        if criterion is not None and str(criterion).lower() not in {"aic", "aicc", "bic"}:
            errors.setdefault("model", []).append(f"unknown criterion {criterion!r}")

        return errors


def initialize_config(path: Optional[Path] = None) -> Optional[ConfigurationManager]:
    """
    Initializes the global configuration manager.

    Loads the project's YAML configuration file. If the file is missing or fails
    to parse, the error is logged and the pipeline proceeds with default settings.
    """
    global config_manager
    cfg_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH

    if not cfg_path.is_file():
        logger.warning("Configuration file not found at %s - using defaults", cfg_path)
        config_manager = None
        return None

    try:
        config_manager = ConfigurationManager.from_yaml(cfg_path)
        logger.info("Loaded configuration from %s", cfg_path)
        validation_errors = config_manager.validate_configuration()
        if validation_errors:
            logger.warning("Configuration validation warnings: %s", validation_errors)
    except (OSError, yaml.YAMLError, ValueError) as e:
        logger.error("Failed to initialize configuration: %s. Using defaults.", e)
        config_manager = None
    return config_manager


def reset_config() -> None:
    """Drop the loaded configuration so lookups fall back to defaults."""
    global config_manager
    config_manager = None


def get_config_value(key_path: str, default=None, args=None, cli_param=None):
    """
    Retrieves a configuration value, providing support for command-line overrides.
    The function prioritizes values in the following order:
    1. CLI argument (if provided)
    2. Configuration file
    3. Default value
    """
    # First priority: CLI argument
    if args is not None and cli_param and hasattr(args, cli_param):
        cli_value = getattr(args, cli_param)
        if cli_value is not None:
            return cli_value

    # Second priority: Configuration file
    if config_manager is not None:
        config_value = config_manager.get(key_path, None)
        if config_value is not None:
            return config_value

    # Third priority: Default value
    return default
