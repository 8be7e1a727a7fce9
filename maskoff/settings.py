"""
Mask Off - Runtime settings.

Long-lived settings that outlive a single round (player name, sound toggles,
high-score locations). Loaded from environment variables, optionally from a
.env file, with sensible defaults. Game balance lives in the YAML
configuration instead (see config_loader).
"""
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _get_bool(key: str, default: bool) -> bool:
    """Get boolean from environment."""
    val = os.getenv(key, str(default)).lower()
    return val in ('true', '1', 'yes')


def _get_float(key: str, default: float) -> float:
    """Get float from environment."""
    return float(os.getenv(key, str(default)))


def _get_str(key: str, default: Optional[str]) -> Optional[str]:
    """Get string from environment; empty strings count as unset."""
    val = os.getenv(key)
    return val if val else default


def default_highscore_file() -> Path:
    """Platform user-data location of the personal high score file."""
    xdg_data = os.environ.get('XDG_DATA_HOME', str(Path.home() / '.local' / 'share'))
    return Path(xdg_data) / 'maskoff' / 'highscore.json'


@dataclass(frozen=True)
class Settings:
    """Persistent settings injected at startup.

    Attributes:
        config_path: Game configuration YAML (None = packaged default)
        difficulty: Difficulty key used when none is given
        player_name: Name submitted with a new global record
        highscore_url: Base URL of the remote high-score endpoints (None = offline)
        highscore_file: JSON file holding the personal high score
        highscore_timeout: Seconds before a remote call is abandoned
        sound_enabled: Sound effects toggle for presentation layers
        music_enabled: Music toggle for presentation layers
    """
    config_path: Optional[str] = None
    difficulty: Optional[str] = None
    player_name: str = 'Anonymous'
    highscore_url: Optional[str] = None
    highscore_file: Path = Path('highscore.json')
    highscore_timeout: float = 5.0
    sound_enabled: bool = True
    music_enabled: bool = True

    def with_overrides(self, **changes) -> 'Settings':
        """Copy with the given non-None fields replaced."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Read settings from the environment.

    Args:
        env_file: Optional .env file loaded first (existing variables win)
    """
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()

    return Settings(
        config_path=_get_str('MASKOFF_CONFIG_PATH', None),
        difficulty=_get_str('MASKOFF_DIFFICULTY', None),
        player_name=_get_str('MASKOFF_PLAYER_NAME', 'Anonymous'),
        highscore_url=_get_str('MASKOFF_HIGHSCORE_URL', None),
        highscore_file=Path(_get_str('MASKOFF_HIGHSCORE_FILE', str(default_highscore_file()))),
        highscore_timeout=_get_float('MASKOFF_HIGHSCORE_TIMEOUT', 5.0),
        sound_enabled=_get_bool('MASKOFF_SOUND_ENABLED', True),
        music_enabled=_get_bool('MASKOFF_MUSIC_ENABLED', True),
    )
