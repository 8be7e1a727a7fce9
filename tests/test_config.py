"""
Tests for configuration models and the YAML loader.

Covers the packaged default, validation rules of each section, and the
loader's conversion of every failure into ConfigurationError.
"""

import pytest
import yaml
from pydantic import ValidationError

from maskoff.config_loader import ConfigLoader, default_config_dict, load_config
from maskoff.errors import ConfigurationError
from maskoff.models import (
    CharacterKind,
    ComboConfig,
    DifficultyProfile,
    DurationRange,
    ScoringConfig,
)


# ============================================================================
# Packaged default
# ============================================================================


class TestDefaultConfig:
    """The shipped configuration."""

    def test_loads(self, config):
        """Test the packaged default validates."""
        assert config.round_duration == 10
        assert config.default_difficulty == 'normal'
        assert set(config.difficulties) == {'easy', 'normal', 'hard'}

    def test_normal_profile(self, config):
        """Test the normal profile values."""
        normal = config.difficulties['normal']
        assert normal.slip_chance == 0.6
        assert normal.slip_duration == 400
        assert normal.max_active_characters == 3
        assert normal.boss_hits_required == 1

    def test_hard_boss_needs_two_hits(self, config):
        """Test hard bosses take two hits."""
        assert config.difficulties['hard'].boss_hits_required == 2

    def test_character_kinds(self, config):
        """Test the boss and trigger types are identified."""
        assert config.boss_type.id == 'boss'
        assert [c.id for c in config.trigger_types] == ['puppet']
        assert {c.id for c in config.regular_types} == {'preacher', 'smiler', 'shouter', 'vanisher'}
        assert config.character('puppet').kind == CharacterKind.TRIGGER
        assert config.character('puppet').requires_trigger

    def test_unknown_character_raises_keyerror(self, config):
        """Test looking up an unknown type id."""
        with pytest.raises(KeyError):
            config.character('nobody')

    def test_rating_tiers(self, config):
        """Test the four rating tiers are present."""
        assert [t.id for t in config.ratings] == [
            'blind_believer', 'curious', 'critical_thinker', 'hypocrisy_hunter',
        ]

    def test_config_is_frozen(self, config):
        """Test configuration models are immutable."""
        with pytest.raises(ValidationError):
            config.round_duration = 30


# ============================================================================
# Model validation
# ============================================================================


class TestComboConfig:
    """Combo curve lookup and validation."""

    @pytest.mark.parametrize('combo,expected', [
        (0, 1.0), (1, 1.0), (2, 1.2), (3, 1.2), (4, 1.5),
        (6, 2.0), (8, 2.5), (10, 3.0), (50, 3.0),
    ])
    def test_multiplier_for(self, combo, expected):
        """Test the greatest threshold not above the combo wins."""
        assert ComboConfig().multiplier_for(combo) == expected

    def test_multiplier_monotonic(self):
        """Test the multiplier never decreases as the combo grows."""
        combo = ComboConfig()
        values = [combo.multiplier_for(n) for n in range(30)]
        assert values == sorted(values)

    def test_length_mismatch(self):
        """Test thresholds and multipliers must pair up."""
        with pytest.raises(ValidationError) as exc_info:
            ComboConfig(thresholds=[0, 2], multipliers=[1.0])
        assert 'same length' in str(exc_info.value)

    def test_thresholds_start_at_zero(self):
        """Test the curve must cover combo 0."""
        with pytest.raises(ValidationError):
            ComboConfig(thresholds=[1, 2], multipliers=[1.0, 1.5])

    def test_thresholds_strictly_increasing(self):
        """Test duplicate thresholds are rejected."""
        with pytest.raises(ValidationError):
            ComboConfig(thresholds=[0, 2, 2], multipliers=[1.0, 1.2, 1.5])

    def test_multipliers_non_decreasing(self):
        """Test a falling multiplier is rejected."""
        with pytest.raises(ValidationError):
            ComboConfig(thresholds=[0, 2], multipliers=[1.5, 1.0])


class TestSectionValidation:
    """Field-level rules."""

    def test_duration_range_bounds(self):
        """Test min may not exceed max."""
        with pytest.raises(ValidationError):
            DurationRange(min=500, max=100)

    def test_wrong_hit_must_be_penalty(self):
        """Test a positive wrong-hit value is rejected."""
        with pytest.raises(ValidationError):
            ScoringConfig(wrong_hit=5)

    def test_slip_chance_range(self):
        """Test slip_chance must be a probability."""
        with pytest.raises(ValidationError):
            DifficultyProfile(
                name='Broken',
                slip_chance=1.5,
                slip_duration=400,
                mask_duration={'min': 800, 'max': 1000},
                popup_interval={'min': 800, 'max': 1300},
                max_active_characters=3,
                boss_interval=12000,
            )

    def test_popup_interval_must_be_positive(self):
        """Test a zero popup interval is rejected."""
        with pytest.raises(ValidationError):
            DifficultyProfile(
                name='Broken',
                slip_chance=0.5,
                slip_duration=400,
                mask_duration={'min': 800, 'max': 1000},
                popup_interval={'min': 0, 'max': 1300},
                max_active_characters=3,
                boss_interval=12000,
            )


# ============================================================================
# Loader
# ============================================================================


class TestConfigLoader:
    """YAML loading and error wrapping."""

    def test_missing_file(self, tmp_path):
        """Test a missing file raises ConfigurationError."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(tmp_path / 'missing.yaml')
        assert 'not found' in str(exc_info.value)

    def test_invalid_yaml(self, tmp_path):
        """Test unparsable YAML raises ConfigurationError."""
        path = tmp_path / 'broken.yaml'
        path.write_text("round_duration: [unclosed\n")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)
        assert 'Failed to parse' in str(exc_info.value)

    def test_non_mapping(self, tmp_path):
        """Test a YAML list is rejected."""
        path = tmp_path / 'list.yaml'
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_validation_error_is_wrapped(self):
        """Test pydantic errors surface as ConfigurationError."""
        data = default_config_dict()
        data['round_duration'] = 0
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader().load_dict(data)
        assert isinstance(exc_info.value.__cause__, ValidationError)

    def test_two_bosses_rejected(self):
        """Test exactly one boss type is required."""
        data = default_config_dict()
        data['characters'].append({'id': 'boss2', 'name': 'Second Boss', 'kind': 'boss'})
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader().load_dict(data)
        assert 'boss' in str(exc_info.value)

    def test_duplicate_character_ids_rejected(self):
        """Test character ids must be unique."""
        data = default_config_dict()
        data['characters'].append(dict(data['characters'][0]))
        with pytest.raises(ConfigurationError):
            ConfigLoader().load_dict(data)

    def test_ratings_need_floor_tier(self):
        """Test a configuration without a zero-minimum tier is rejected."""
        data = default_config_dict()
        data['ratings'] = [t for t in data['ratings'] if t['id'] != 'blind_believer']
        with pytest.raises(ConfigurationError):
            ConfigLoader().load_dict(data)

    def test_unknown_default_difficulty(self):
        """Test default_difficulty must name a profile."""
        data = default_config_dict()
        data['default_difficulty'] = 'nightmare'
        with pytest.raises(ConfigurationError):
            ConfigLoader().load_dict(data)

    def test_relative_path_resolution(self, tmp_path):
        """Test relative paths resolve against base_dir."""
        loader = ConfigLoader(base_dir=tmp_path)
        assert loader.resolve('tuning.yaml') == tmp_path / 'tuning.yaml'

    def test_load_custom_file(self, tmp_path):
        """Test a user file round-trips through the loader."""
        data = default_config_dict()
        data['round_duration'] = 30
        path = tmp_path / 'long.yaml'
        path.write_text(yaml.safe_dump(data))

        config = ConfigLoader(base_dir=tmp_path).load('long.yaml')

        assert config.round_duration == 30

    def test_config_factory_overrides(self, config_factory):
        """Test nested overrides merge into the default."""
        config = config_factory(anti_spam={'wrong_hits_to_trigger': 5})
        assert config.anti_spam.wrong_hits_to_trigger == 5
        assert config.anti_spam.penalty_duration == 3000
