"""
Configuration management for dmind-fc.

Provides a configuration file at ~/.dmind/config.json for default settings
of the chat client and the function-calling engine.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from dmind_fc.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


# Default values - single source of truth
DEFAULTS = {
    "protocol_mode": "official",
    "max_tool_hops": 3,
    "function_response_role": "user",
    "timeout": 60.0,
}


class Config(BaseModel):
    """Configuration settings for dmind-fc.

    All settings are optional. Use DEFAULTS for default values.
    """

    model_config = {"extra": "ignore"}  # Ignore unknown fields like _comment

    # Transport settings
    api_key: Optional[str] = Field(
        default=None,
        description="API key sent as a Bearer token"
    )
    base_url: Optional[str] = Field(
        default=None,
        description="Base URL of the chat-completions API"
    )
    default_model: Optional[str] = Field(
        default=None,
        description="Model used when a request names none"
    )
    timeout: Optional[float] = Field(
        default=None,
        description="HTTP timeout in seconds"
    )

    # Engine settings
    protocol_mode: Optional[Literal["official", "dual", "legacy"]] = Field(
        default=None,
        description="Which tool-call encodings the parser accepts"
    )
    max_tool_hops: Optional[int] = Field(
        default=None,
        description="Maximum tools executed per run loop"
    )
    function_response_role: Optional[Literal["user", "tool", "system", "developer", "assistant"]] = Field(
        default=None,
        description="Role of injected function-response turns"
    )
    profile_path: Optional[str] = Field(
        default=None,
        description="YAML profile file to load instead of the built-in profile"
    )

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value with fallback to DEFAULTS, then to provided default."""
        value = getattr(self, key, None)
        if value is not None:
            return value
        return DEFAULTS.get(key, default)


class ConfigManager:
    """Manages loading and saving configuration."""

    CONFIG_DIR = Path.home() / ".dmind"
    CONFIG_FILE = CONFIG_DIR / "config.json"

    def __init__(self):
        self._config: Optional[Config] = None

    def _ensure_dir(self) -> None:
        self.CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    @property
    def config(self) -> Config:
        """Get the current config, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self, create_if_missing: bool = True) -> Config:
        """Load configuration from file.

        Args:
            create_if_missing: If True, create default config file if it doesn't exist.

        Returns:
            Config object with loaded settings, or defaults if file doesn't exist.
        """
        if not self.CONFIG_FILE.exists():
            if create_if_missing:
                self._create_default_config()
            return Config()

        try:
            data = json.loads(self.CONFIG_FILE.read_text())
            return Config.model_validate(data)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Invalid config file %s (%s), using defaults", self.CONFIG_FILE, e)
            return Config()

    def _create_default_config(self) -> None:
        """Create default config file with actual default values."""
        self._ensure_dir()

        default_config = {
            "_comment": "dmind-fc configuration file",
            "api_key": None,
            "base_url": None,
            "default_model": None,
            **DEFAULTS,
            "profile_path": None,
        }
        self.CONFIG_FILE.write_text(json.dumps(default_config, indent=2) + "\n")

    def save(self, config: Optional[Config] = None) -> Path:
        """Save configuration to file, preserving existing structure.

        Args:
            config: Config to save. If None, saves current config.

        Returns:
            Path to saved config file.
        """
        self._ensure_dir()
        if config is not None:
            self._config = config

        if self._config is None:
            self._config = Config()

        # Keep comments and keys we don't manage
        existing_data = self._read_raw()

        for key, value in self._config.model_dump().items():
            if value is not None:
                existing_data[key] = value

        self.CONFIG_FILE.write_text(json.dumps(existing_data, indent=2) + "\n")
        return self.CONFIG_FILE

    def _read_raw(self) -> dict[str, Any]:
        if not self.CONFIG_FILE.exists():
            return {}
        try:
            data = json.loads(self.CONFIG_FILE.read_text())
        except json.JSONDecodeError:
            return {}
        return data if isinstance(data, dict) else {}

    def set(self, key: str, value: Any) -> None:
        """Set a config value and save.

        Raises:
            ConfigError: If *key* is not a config setting.
        """
        self._config = self.load(create_if_missing=True)

        if key not in Config.model_fields:
            raise ConfigError(f"Unknown config key: {key}")

        setattr(self._config, key, value)
        self.save()

    def unset(self, key: str) -> None:
        """Remove a config value (reset to default).

        Raises:
            ConfigError: If *key* is not a config setting.
        """
        self._config = self.load(create_if_missing=True)

        if key not in Config.model_fields:
            raise ConfigError(f"Unknown config key: {key}")

        setattr(self._config, key, None)

        existing_data = self._read_raw()
        if key in existing_data:
            existing_data[key] = None

        self.CONFIG_FILE.write_text(json.dumps(existing_data, indent=2) + "\n")

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    def list_settings(self) -> dict[str, Any]:
        """List user-customized settings (values that differ from defaults)."""
        result = {}
        for k, v in self.config.model_dump().items():
            if v is None:
                continue
            if k not in DEFAULTS or v != DEFAULTS[k]:
                result[k] = v
        return result

    def reset(self) -> None:
        """Reset configuration to defaults."""
        self._config = Config()
        if self.CONFIG_FILE.exists():
            self.CONFIG_FILE.unlink()


# Singleton instance
_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the singleton ConfigManager instance."""
    global _manager
    if _manager is None:
        _manager = ConfigManager()
    return _manager


def get_config() -> Config:
    """Get the current configuration."""
    return get_config_manager().config
