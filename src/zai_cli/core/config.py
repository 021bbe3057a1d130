"""
Core configuration management for Zai CLI.

This module assembles the effective settings from every source and is the
single place the CLI goes through to read or change the model and API key.

Precedence (later wins):
1. Default values
2. The persisted config file (~/.config/zai/config.json)
3. .env files and environment variables (ZAI_*)
4. Command-line overrides
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional
import logging

from pydantic import ValidationError

from ..config.env_loader import EnvFileLoader
from ..config.settings import ZaiSettings
from ..config.store import ConfigStore
from .client import ZaiClient, ZaiClientConfig, ConfigurationError, normalize_model_name

logger = logging.getLogger(__name__)

API_KEY_SETTING = "api_key"
MODEL_SETTING = "model"
API_KEY_ENV_VAR = "ZAI_API_KEY"
REQUEST_LOG_FILE_NAME = "requests.jsonl"


def mask_api_key(key: Optional[str]) -> Optional[str]:
    """
    Mask an API key for display.

    Keys longer than 8 characters keep characters 3..8 behind an ``sk-``
    prefix, shorter ones are fully hidden.
    """
    if not key:
        return None
    if len(key) > 8:
        return f"sk-{key[3:8]}***"
    return "sk-***"


class ZaiConfig:
    """
    Main configuration class for Zai CLI.

    Owns the config file store and the merged ZaiSettings, and builds API
    clients from them.
    """

    def __init__(
        self,
        working_directory: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None,
        config_dir: Optional[Path] = None,
        load_env_file: bool = True,
    ):
        """Initialize the configuration.

        Args:
            working_directory: Directory .env discovery starts from
            overrides: Command-line values, applied last (None values ignored)
            config_dir: Config directory override (tests, portable installs)
            load_env_file: Whether to search for and load a .env file
        """
        self.working_directory = Path(working_directory or Path.cwd()).resolve()
        self._overrides = {key: value for key, value in (overrides or {}).items() if value is not None}
        self._config_dir = Path(config_dir) if config_dir else None
        self._env_loader = EnvFileLoader(self.working_directory) if load_env_file else None
        self._store: Optional[ConfigStore] = None
        self._settings: Optional[ZaiSettings] = None
        self.invalid_settings: Dict[str, str] = {}

        self.reload()

    @property
    def settings(self) -> ZaiSettings:
        return self._settings

    @property
    def store(self) -> ConfigStore:
        return self._store

    @property
    def env_loader(self) -> Optional[EnvFileLoader]:
        return self._env_loader

    def reload(self) -> ZaiSettings:
        """Reload configuration from all sources.

        Returns:
            The new effective settings

        Raises:
            ConfigurationError: If environment or command-line values are invalid
        """
        if self._env_loader:
            self._env_loader.load_env_file()

        base_kwargs: Dict[str, Any] = {}
        if self._config_dir:
            base_kwargs["config_dir"] = self._config_dir

        try:
            base = ZaiSettings(**base_kwargs)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in environment: {e}") from e

        self._store = ConfigStore(base.config_file_path)
        self._store.load()

        file_values = {
            key: value
            for key, value in self._store.as_dict().items()
            if key in ZaiSettings.model_fields
            and key not in ("config_dir", "cache_dir")
            and not _is_set_in_environment(key)
        }

        self._settings = self._build_settings(base_kwargs, file_values)
        return self._settings

    def _build_settings(self, base_kwargs: Dict[str, Any], file_values: Dict[str, Any]) -> ZaiSettings:
        """Merge sources, dropping config-file values that fail validation."""
        self.invalid_settings = {}

        while True:
            values = {**file_values, **base_kwargs, **self._overrides}
            try:
                return ZaiSettings(**values)
            except ValidationError as e:
                bad_keys = {str(err["loc"][0]) for err in e.errors() if err.get("loc")}
                from_file = bad_keys & (set(file_values) - set(self._overrides))
                if not from_file:
                    raise ConfigurationError(f"Invalid configuration: {e}") from e

                for key in from_file:
                    logger.warning(f"Ignoring invalid value for '{key}' in {self._store.path}")
                    self.invalid_settings[key] = str(file_values.pop(key))

    def get_api_key(self) -> Optional[str]:
        return self._settings.api_key

    def api_key_source(self) -> Optional[str]:
        """Describe where the effective API key comes from."""
        if API_KEY_SETTING in self._overrides:
            return "command line"
        if _is_set_in_environment(API_KEY_SETTING):
            return "environment"
        if self._store.get_secret(API_KEY_SETTING):
            return "config file"
        return None

    def masked_api_key(self) -> Optional[str]:
        return mask_api_key(self.get_api_key())

    def set_api_key(self, key: str) -> None:
        """Persist a new API key.

        Raises:
            ValueError: If the key is empty
        """
        key = key.strip()
        if not key:
            raise ValueError("API key cannot be empty")

        self._store.set_secret(API_KEY_SETTING, key)
        self.reload()

    def set_model(self, model: str) -> str:
        """Persist a new default model.

        Returns:
            The normalized model name

        Raises:
            ValueError: If the model is not a known model
        """
        model_name = normalize_model_name(model)
        self._store.set_param(MODEL_SETTING, model_name)
        self._overrides.pop(MODEL_SETTING, None)
        self.reload()
        return model_name

    def is_model_persisted(self) -> bool:
        return self._store.get_param(MODEL_SETTING) is not None

    def create_client(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        **kwargs: Any,
    ) -> ZaiClient:
        """Create an API client from the effective settings."""
        settings = self._settings
        request_log_path = settings.log_dir / REQUEST_LOG_FILE_NAME if settings.request_log else None

        config = ZaiClientConfig(
            api_key=api_key or settings.api_key,
            model=normalize_model_name(model) if model else settings.model,
            host=settings.host,
            timeout_seconds=float(settings.timeout),
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            request_log_path=request_log_path,
        )
        return ZaiClient(config, **kwargs)

    def get_config_summary(self) -> Dict[str, Any]:
        """Get a summary of the current configuration."""
        settings = self._settings
        summary = {
            "api_key": self.masked_api_key(),
            "api_key_source": self.api_key_source(),
            "model": settings.model,
            "model_is_default": not self.is_model_persisted() and not _is_set_in_environment(MODEL_SETTING),
            "host": settings.host,
            "timeout": settings.timeout,
            "config_file": self._store.get_summary(),
            "is_configured": settings.is_configured,
        }

        if self._env_loader and self._env_loader.get_loaded_file():
            summary["env_file"] = str(self._env_loader.get_loaded_file())

        if self.invalid_settings:
            summary["invalid_settings"] = dict(self.invalid_settings)

        return summary


def _is_set_in_environment(key: str) -> bool:
    env_name = f"ZAI_{key}".upper()
    return any(name.upper() == env_name and value.strip() for name, value in os.environ.items())
