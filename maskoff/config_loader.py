"""
Game configuration loading with Pydantic validation.

Loads the YAML game configuration (packaged default or a user file),
validates it with the GameConfig model and turns every failure into a
ConfigurationError so a round never starts on undefined settings.

Usage:
    config = load_default_config()
    config.difficulties['normal'].max_active_characters   # 3

    custom = ConfigLoader().load('my_tuning.yaml')
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from maskoff.errors import ConfigurationError
from maskoff.logging import get_logger
from maskoff.models import GameConfig

log = get_logger('config')

DEFAULT_CONFIG_PATH = Path(__file__).parent / 'data' / 'default_config.yaml'


class ConfigLoader:
    """Loads and validates game configuration files.

    Attributes:
        base_dir: Directory relative paths are resolved against

    Examples:
        >>> loader = ConfigLoader()
        >>> config = loader.load()             # packaged default
        >>> config.round_duration
        10
    """

    def __init__(self, base_dir: Optional[Path] = None):
        """Initialize the loader.

        Args:
            base_dir: Optional directory for relative paths.
                      Defaults to the current working directory.
        """
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()

    def resolve(self, path: Optional[Union[str, Path]]) -> Path:
        """Resolve a config path; None means the packaged default."""
        if path is None:
            return DEFAULT_CONFIG_PATH
        path = Path(path).expanduser()
        if not path.is_absolute():
            path = self.base_dir / path
        return path

    def load(self, path: Optional[Union[str, Path]] = None) -> GameConfig:
        """Load and validate a configuration file.

        Args:
            path: YAML file to load, or None for the packaged default

        Returns:
            Validated, frozen GameConfig

        Raises:
            ConfigurationError: If the file is missing, is not valid YAML,
                or fails validation
        """
        yaml_path = self.resolve(path)

        if not yaml_path.exists():
            raise ConfigurationError(f"Game configuration not found: {yaml_path}")

        try:
            with open(yaml_path, 'r', encoding='utf-8') as f:
                config_dict = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML file '{yaml_path}': {e}") from e

        config = self.load_dict(config_dict, source=str(yaml_path))
        log.debug("Loaded configuration from %s", yaml_path)
        return config

    def load_dict(self, config_dict: Any, source: str = '<dict>') -> GameConfig:
        """Validate an already-parsed configuration mapping.

        Raises:
            ConfigurationError: If the mapping is not a dict or fails validation
        """
        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                f"Game configuration in '{source}' must be a mapping, "
                f"got {type(config_dict).__name__}"
            )
        try:
            return GameConfig.model_validate(config_dict)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid game configuration in '{source}':\n{e}") from e


def load_config(path: Optional[Union[str, Path]] = None) -> GameConfig:
    """Load a configuration file (None for the packaged default)."""
    return ConfigLoader().load(path)


@lru_cache(maxsize=1)
def load_default_config() -> GameConfig:
    """Load the packaged default configuration once."""
    return ConfigLoader().load()


def default_config_dict() -> Dict[str, Any]:
    """Raw mapping of the packaged default, for building variants in tests and tools."""
    with open(DEFAULT_CONFIG_PATH, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f)
