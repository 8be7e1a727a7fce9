"""Tests for environment-driven runtime settings."""

from pathlib import Path

import pytest

from maskoff.settings import Settings, default_highscore_file, load_settings

KEYS = [
    'MASKOFF_CONFIG_PATH',
    'MASKOFF_DIFFICULTY',
    'MASKOFF_PLAYER_NAME',
    'MASKOFF_HIGHSCORE_URL',
    'MASKOFF_HIGHSCORE_FILE',
    'MASKOFF_HIGHSCORE_TIMEOUT',
    'MASKOFF_SOUND_ENABLED',
    'MASKOFF_MUSIC_ENABLED',
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Unset every settings variable; teardown restores the originals."""
    for key in KEYS:
        # setenv first so monkeypatch records the original value
        monkeypatch.setenv(key, 'x')
        monkeypatch.delenv(key)
    monkeypatch.setenv('XDG_DATA_HOME', str(tmp_path / 'data'))
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestLoadSettings:

    def test_defaults(self, clean_env, tmp_path):
        """Test sensible defaults without any configuration."""
        settings = load_settings(env_file=tmp_path / 'absent.env')

        assert settings.config_path is None
        assert settings.difficulty is None
        assert settings.player_name == 'Anonymous'
        assert settings.highscore_url is None
        assert settings.highscore_timeout == 5.0
        assert settings.sound_enabled is True
        assert settings.music_enabled is True
        assert settings.highscore_file == tmp_path / 'data' / 'maskoff' / 'highscore.json'

    def test_environment_values(self, clean_env, tmp_path):
        """Test each variable is read and converted."""
        clean_env.setenv('MASKOFF_DIFFICULTY', 'hard')
        clean_env.setenv('MASKOFF_PLAYER_NAME', 'Tamar')
        clean_env.setenv('MASKOFF_HIGHSCORE_URL', 'https://scores.example')
        clean_env.setenv('MASKOFF_HIGHSCORE_FILE', str(tmp_path / 'mine.json'))
        clean_env.setenv('MASKOFF_HIGHSCORE_TIMEOUT', '2.5')
        clean_env.setenv('MASKOFF_SOUND_ENABLED', 'false')
        clean_env.setenv('MASKOFF_MUSIC_ENABLED', '0')

        settings = load_settings(env_file=tmp_path / 'absent.env')

        assert settings.difficulty == 'hard'
        assert settings.player_name == 'Tamar'
        assert settings.highscore_url == 'https://scores.example'
        assert settings.highscore_file == tmp_path / 'mine.json'
        assert settings.highscore_timeout == 2.5
        assert settings.sound_enabled is False
        assert settings.music_enabled is False

    def test_empty_value_counts_as_unset(self, clean_env, tmp_path):
        """Test an empty URL keeps the service offline."""
        clean_env.setenv('MASKOFF_HIGHSCORE_URL', '')
        assert load_settings(env_file=tmp_path / 'absent.env').highscore_url is None

    def test_env_file(self, clean_env, tmp_path):
        """Test values are picked up from a .env file."""
        env_file = tmp_path / '.env'
        env_file.write_text("MASKOFF_PLAYER_NAME=FromFile\nMASKOFF_DIFFICULTY=easy\n")

        settings = load_settings(env_file=env_file)

        assert settings.player_name == 'FromFile'
        assert settings.difficulty == 'easy'

    def test_environment_beats_env_file(self, clean_env, tmp_path):
        """Test real environment variables win over the file."""
        clean_env.setenv('MASKOFF_PLAYER_NAME', 'FromEnv')
        env_file = tmp_path / '.env'
        env_file.write_text("MASKOFF_PLAYER_NAME=FromFile\n")

        assert load_settings(env_file=env_file).player_name == 'FromEnv'


class TestSettings:

    def test_with_overrides_skips_none(self):
        """Test only provided values replace settings."""
        base = Settings(player_name='Ori', difficulty='easy')

        updated = base.with_overrides(difficulty='hard', player_name=None, config_path=None)

        assert updated.difficulty == 'hard'
        assert updated.player_name == 'Ori'
        assert base.difficulty == 'easy'

    def test_frozen(self):
        """Test settings cannot be mutated."""
        with pytest.raises(AttributeError):
            Settings().player_name = 'x'

    def test_default_highscore_file(self, monkeypatch, tmp_path):
        """Test the personal best lives under the XDG data dir."""
        monkeypatch.setenv('XDG_DATA_HOME', str(tmp_path))
        assert default_highscore_file() == Path(tmp_path) / 'maskoff' / 'highscore.json'
