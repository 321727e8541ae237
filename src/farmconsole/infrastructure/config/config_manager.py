"""Configuration manager for loading and validating .farmconsole.yml"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from farmconsole.domain.config import AppConfig, AuthConfig, ClientConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".farmconsole.yml"
DEFAULT_TOKEN_DIR = Path("~/.farmconsole")


class ConfigurationError(Exception):
    """Configuration validation error."""

    pass


class ConfigManager:
    """Manages configuration from .farmconsole.yml and environment variables

    Configuration priority:
    1. Default values (defined in Pydantic models)
    2. .farmconsole.yml file (searched from current directory upwards)
    3. Environment variables (FARMCONSOLE_*)
    4. CLI arguments (handled by CLI layer)
    """

    DEFAULT_CONFIG = {
        "client": {
            "base_url": "http://localhost:3000",
            "max_retries": 3,
            "retry_delay_ms": 1000,
            "max_delay_ms": None,
        },
        "auth": {
            "portal": "admin",
            "token_file": None,
            "token_ttl_days": 1,
        },
    }

    # env var -> (section, key)
    ENV_OVERRIDES = {
        "FARMCONSOLE_API_URL": ("client", "base_url"),
        "FARMCONSOLE_MAX_RETRIES": ("client", "max_retries"),
        "FARMCONSOLE_RETRY_DELAY_MS": ("client", "retry_delay_ms"),
        "FARMCONSOLE_PORTAL": ("auth", "portal"),
        "FARMCONSOLE_TOKEN_FILE": ("auth", "token_file"),
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize config manager

        Args:
            config_path: Path to .farmconsole.yml (searches from current dir if None)

        Raises:
            ConfigurationError: If configuration validation fails
        """
        if isinstance(config_path, str):
            config_path = Path(config_path)
        self.config_path = config_path or self._find_config_file()
        try:
            self.config: AppConfig = self._load_config()
        except ValidationError as e:
            errors = []
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"])
                errors.append(f"  - {field}: {error['msg']}")
            raise ConfigurationError("Configuration validation failed:\n" + "\n".join(errors)) from e

    def _find_config_file(self) -> Optional[Path]:
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            config_file = parent / CONFIG_FILENAME
            if config_file.exists():
                logger.info(f"Found config file: {config_file}")
                return config_file
        logger.debug(f"No {CONFIG_FILENAME} found, using defaults")
        return None

    def _load_config(self) -> AppConfig:
        """Load configuration from file and validate with Pydantic

        Raises:
            ConfigurationError: If the file is not valid YAML
            ValidationError: If configuration values are invalid
        """
        config_dict = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e
            if not isinstance(file_config, dict):
                raise ConfigurationError(f"Expected a mapping at the top of {self.config_path}")
            config_dict = self._merge_config(config_dict, file_config)
            logger.info(f"Loaded configuration from {self.config_path}")

        config_dict = self._apply_env_overrides(config_dict)
        return AppConfig(**config_dict)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries"""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply FARMCONSOLE_* environment variable overrides

        Values are passed through as strings; pydantic coerces them.
        """
        for env_name, (section, key) in self.ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                config.setdefault(section, {})[key] = value
        return config

    def get_client_config(self) -> ClientConfig:
        return self.config.client

    def get_auth_config(self) -> AuthConfig:
        return self.config.auth

    def get_token_path(self) -> Path:
        """Resolve where the session token is persisted

        Returns:
            Configured token file, or ~/.farmconsole/<portal>-token.json
        """
        auth = self.config.auth
        if auth.token_file:
            return Path(auth.token_file).expanduser()
        return (DEFAULT_TOKEN_DIR / f"{auth.portal}-token.json").expanduser()
