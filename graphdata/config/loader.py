"""
Configuration loader for graph-data-core.

Handles loading from multiple sources with proper priority:
Explicit overrides > Environment Variables > Config File > Defaults
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from ..exceptions import ConfigError
from .models import GraphDataSettings


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources.

    Priority order (highest to lowest):
    1. Overrides (passed directly to ``load``)
    2. Environment variables (GRAPHDATA_*)
    3. Configuration file (YAML)
    4. Default values

    Nothing is read until ``load`` is called.
    """

    DEFAULT_CONFIG_FILE = Path("graphdata.yaml")
    ENV_PREFIX = "GRAPHDATA_"
    PATH_ENV_VAR = "GRAPHDATA_CONFIG_PATH"

    def __init__(
        self,
        config_path: Optional[Path] = None,
        env_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize configuration loader.

        Args:
            config_path: Path to the YAML file. If None, uses
                $GRAPHDATA_CONFIG_PATH or ./graphdata.yaml when present.
            env_file: Optional .env file loaded into the environment first
            environ: Environment mapping to read instead of ``os.environ``
        """
        self._explicit_path = config_path
        self.env_file = env_file
        self._environ = environ

    @property
    def environ(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    @property
    def config_path(self) -> Path:
        if self._explicit_path is not None:
            return Path(self._explicit_path).expanduser()
        env_path = self.environ.get(self.PATH_ENV_VAR)
        if env_path:
            return Path(env_path).expanduser()
        return self.DEFAULT_CONFIG_FILE

    def load(self, overrides: Optional[Dict[str, Any]] = None) -> GraphDataSettings:
        """
        Load configuration from all sources and merge.

        Args:
            overrides: Nested values with the highest priority; None values
                are ignored

        Returns:
            Validated GraphDataSettings object

        Raises:
            ConfigError: If configuration is invalid
        """
        if self.env_file is not None:
            if not Path(self.env_file).exists():
                raise ConfigError(f"Env file not found: {self.env_file}", source=str(self.env_file))
            load_dotenv(self.env_file, override=False)

        config_dict: Dict[str, Any] = {}

        path = self.config_path
        if path.exists():
            config_dict = self._deep_merge(config_dict, self._load_file(path))
        elif self._explicit_path is not None:
            raise ConfigError(f"Config file not found: {path}", source=str(path))

        config_dict = self._deep_merge(config_dict, self._load_from_env())
        config_dict = self._deep_merge(config_dict, self._filter_none_values(overrides or {}))

        try:
            return GraphDataSettings.model_validate(config_dict)
        except ValidationError as e:
            raise ConfigError(
                f"Configuration validation failed: {e}", source=str(path), cause=e
            ) from e

    def _load_file(self, path: Path) -> Dict[str, Any]:
        """
        Load configuration from YAML file.

        Raises:
            ConfigError: If file cannot be read or parsed
        """
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}", source=str(path), cause=e) from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}", source=str(path), cause=e) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping", source=str(path))
        return data

    def _load_from_env(self) -> Dict[str, Any]:
        """
        Load configuration from environment variables.

        Environment variable format:
        - GRAPHDATA_NEO4J__URI
        - GRAPHDATA_NEO4J__PASSWORD
        - GRAPHDATA_POOL__MAX_POOL_SIZE
        - GRAPHDATA_RETRY__MAX_ATTEMPTS

        Double underscore (__) separates nested keys. Values stay strings;
        pydantic converts them to the declared field types.
        """
        config: Dict[str, Any] = {}

        for key, value in self.environ.items():
            if not key.startswith(self.ENV_PREFIX) or key == self.PATH_ENV_VAR:
                continue

            parts = key[len(self.ENV_PREFIX) :].lower().split("__")

            current = config
            for part in parts[:-1]:
                existing = current.get(part)
                if not isinstance(existing, dict):
                    existing = current[part] = {}
                current = existing

            current[parts[-1]] = value

        return config

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries; ``base`` is not modified."""
        result = base.copy()

        for key, value in update.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _filter_none_values(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively drop None values and empty nested dictionaries."""
        result = {}
        for key, value in data.items():
            if value is None:
                continue
            elif isinstance(value, dict):
                filtered = self._filter_none_values(value)
                if filtered:
                    result[key] = filtered
            else:
                result[key] = value
        return result


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
    env_file: Optional[Path] = None,
) -> GraphDataSettings:
    """
    Convenience function to load configuration.

    Raises:
        ConfigError: If configuration is invalid
    """
    return ConfigLoader(config_path, env_file=env_file).load(overrides)


__all__ = ["ConfigLoader", "load_config"]
