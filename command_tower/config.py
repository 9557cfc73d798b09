"""Configuration management for Command Tower."""

import json
import os
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, asdict


@dataclass
class TowerConfig:
    """Configuration settings for the commander browser."""

    # Endpoints
    scryfall_base_url: str = "https://api.scryfall.com"
    placeholder_image_url: str = (
        "https://static.wikia.nocookie.net/mtgsalvation_gamepedia/images/f/f8/"
        "Magic_card_back.jpg/revision/latest?cb=20140813141013"
    )

    # Card data
    image_size: str = "border_crop"
    price_currency: str = "eur"
    price_concurrency: int = 2

    # API settings
    request_timeout_seconds: int = 15
    api_retry_attempts: int = 3
    retry_base_delay: float = 1.0
    user_agent: str = "CommandTower/0.1.0"

    # Session preferences
    copy_decklist_on_load: bool = False
    verbose_output: bool = False


class ConfigManager:
    """Manages application configuration with file persistence."""

    DEFAULT_CONFIG_DIR = Path.home() / ".command_tower"
    DEFAULT_CONFIG_FILE = "config.json"

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_dir: Custom configuration directory (defaults to ~/.command_tower)
        """
        self.config_dir = Path(config_dir) if config_dir else self.DEFAULT_CONFIG_DIR
        self.config_file = self.config_dir / self.DEFAULT_CONFIG_FILE
        self._config = TowerConfig()

        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.load_config()

    def load_config(self) -> TowerConfig:
        """
        Load configuration from file.

        Returns:
            Loaded configuration object
        """
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    config_data = json.load(f)

                for key, value in config_data.items():
                    if hasattr(self._config, key):
                        setattr(self._config, key, value)

                if not _is_positive_int(self._config.price_concurrency):
                    self._config.price_concurrency = TowerConfig.price_concurrency

            except (json.JSONDecodeError, OSError):
                # Corrupted file: keep a backup and start over with defaults
                if self.config_file.exists():
                    backup_file = self.config_file.with_suffix('.json.backup')
                    self.config_file.replace(backup_file)

                self._config = TowerConfig()
                self.save_config()
        else:
            self.save_config()

        return self._config

    def save_config(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(asdict(self._config), f, indent=2, sort_keys=True)
        except OSError as e:
            raise RuntimeError(f"Failed to save configuration: {e}")

    def get_config(self) -> TowerConfig:
        """Get current configuration."""
        return self._config

    def update_config(self, **kwargs) -> None:
        """
        Update configuration values.

        Args:
            **kwargs: Configuration values to update
        """
        for key, value in kwargs.items():
            if hasattr(self._config, key):
                setattr(self._config, key, value)
            else:
                raise ValueError(f"Unknown configuration option: {key}")

        self.save_config()

    def reset_to_defaults(self) -> None:
        """Reset configuration to default values."""
        self._config = TowerConfig()
        self.save_config()

    def get_logs_dir(self) -> Path:
        """Get logs directory path."""
        logs_dir = self.config_dir / "logs"
        logs_dir.mkdir(exist_ok=True)
        return logs_dir


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise ValueError(f"Expected a positive integer, got {value}")
    return number


def get_default_config() -> TowerConfig:
    """Get default configuration without file persistence."""
    return TowerConfig()


def apply_env_overrides(config: TowerConfig) -> TowerConfig:
    """
    Apply environment variable overrides to configuration.

    Args:
        config: Base configuration to override

    Returns:
        Configuration with environment overrides applied
    """
    env_mappings = {
        'COMMAND_TOWER_SCRYFALL_URL': ('scryfall_base_url', str),
        'COMMAND_TOWER_PLACEHOLDER_IMAGE': ('placeholder_image_url', str),
        'COMMAND_TOWER_IMAGE_SIZE': ('image_size', str),
        'COMMAND_TOWER_CURRENCY': ('price_currency', lambda x: x.lower()),
        'COMMAND_TOWER_CONCURRENCY': ('price_concurrency', _positive_int),
        'COMMAND_TOWER_TIMEOUT': ('request_timeout_seconds', int),
        'COMMAND_TOWER_COPY_DECKLIST': ('copy_decklist_on_load', lambda x: x.lower() == 'true'),
        'COMMAND_TOWER_VERBOSE': ('verbose_output', lambda x: x.lower() == 'true'),
    }

    for env_var, (attr_name, converter) in env_mappings.items():
        env_value = os.getenv(env_var)
        if env_value is not None:
            try:
                setattr(config, attr_name, converter(env_value))
            except (ValueError, TypeError):
                # Ignore invalid environment values
                pass

    return config
