"""
Configuration settings for Zai CLI.

This module provides configuration management using Pydantic settings
with support for environment variables and values merged in from the
persisted config file.
"""

import os
from typing import Optional, Dict, Any
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.client.models import DEFAULT_MODEL, normalize_model_name


def _default_config_dir() -> Path:
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home) / "zai"
    return Path.home() / ".config" / "zai"


def _default_cache_dir() -> Path:
    xdg_cache_home = os.environ.get("XDG_CACHE_HOME")
    if xdg_cache_home:
        return Path(xdg_cache_home) / "zai"
    return Path.home() / ".cache" / "zai"


class ZaiSettings(BaseSettings):
    """
    Main configuration settings for Zai CLI.

    Settings are loaded from multiple sources in order of preference:
    1. Explicit keyword arguments (command line, config file merge)
    2. Environment variables (prefixed with ZAI_)
    3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="ZAI_",
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True,
    )

    # API Configuration
    api_key: Optional[str] = Field(
        default=None,
        description="Z.ai API key"
    )

    host: str = Field(
        default="https://api.z.ai",
        description="Z.ai API base URL"
    )

    # Model Configuration
    model: str = Field(
        default=DEFAULT_MODEL,
        description="Model to use (glm-4.6, glm-4.5, glm-4.5-air)"
    )

    max_tokens: int = Field(
        default=8192,
        description="Maximum tokens for responses",
        gt=0,
        le=131072
    )

    temperature: float = Field(
        default=0.7,
        description="Temperature for response generation",
        ge=0.0,
        le=1.0
    )

    timeout: int = Field(
        default=600,
        description="Request timeout in seconds",
        gt=0
    )

    stream: bool = Field(
        default=True,
        description="Stream responses as they are generated"
    )

    # Directory Configuration
    config_dir: Path = Field(
        default_factory=_default_config_dir,
        description="Configuration directory path"
    )

    cache_dir: Path = Field(
        default_factory=_default_cache_dir,
        description="Cache and log directory path"
    )

    # Logging Configuration
    log_level: str = Field(
        default="WARNING",
        description="Logging level"
    )

    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    request_log: bool = Field(
        default=False,
        description="Write every API request and response to a JSONL log"
    )

    @field_validator("model")
    @classmethod
    def validate_model(cls, v: str) -> str:
        """Validate and normalize the model name."""
        return normalize_model_name(v)

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank keys as unset."""
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Validate the API host URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid host '{v}'. Host must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level '{v}'. Valid levels: {', '.join(sorted(valid_levels))}")
        return v_upper

    @property
    def config_file_path(self) -> Path:
        """Path to the persisted configuration file."""
        return self.config_dir / "config.json"

    @property
    def log_dir(self) -> Path:
        """Directory holding the application and request logs."""
        return self.cache_dir / "logs"

    @property
    def is_configured(self) -> bool:
        """Check if the CLI is properly configured."""
        return self.api_key is not None

    @property
    def effective_log_level(self) -> str:
        """Log level after applying debug mode."""
        return "DEBUG" if self.debug else self.log_level

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary, excluding sensitive data."""
        data = self.model_dump()
        # Mask sensitive data
        if data.get("api_key"):
            data["api_key"] = "***masked***"
        return data
