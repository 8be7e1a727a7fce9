"""
Pydantic v2 models for the game configuration YAML.

These models validate and parse the configuration file that defines round
timing, the grid, scoring, the combo curve, anti-spam thresholds, spawn
behavior, difficulty presets, character types and rating tiers.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .enums import BossDamagePolicy, CharacterKind


class DurationRange(BaseModel):
    """Inclusive range of milliseconds, sampled uniformly."""
    model_config = {"frozen": True}

    min: float = Field(description="Lower bound in milliseconds", ge=0.0)
    max: float = Field(description="Upper bound in milliseconds", ge=0.0)

    @model_validator(mode='after')
    def validate_bounds(self) -> 'DurationRange':
        """Ensure min <= max."""
        if self.min > self.max:
            raise ValueError(f"Range min ({self.min}) must not exceed max ({self.max})")
        return self


class GridConfig(BaseModel):
    """Hole layout. Slots are indexed row-major."""
    model_config = {"frozen": True}

    rows: int = Field(default=3, ge=1)
    cols: int = Field(default=3, ge=1)

    @property
    def slot_count(self) -> int:
        return self.rows * self.cols

    @property
    def center_index(self) -> int:
        """Index of the designated center slot."""
        return (self.rows // 2) * self.cols + self.cols // 2


class ScoringConfig(BaseModel):
    """
    Scoring constants.

    Correct-hit points are scaled by the character's points modifier and
    the combo multiplier; the wrong-hit penalty is added as-is.
    """
    model_config = {"frozen": True}

    correct_hit: int = Field(default=10, description="Base points for a correct hit", ge=1)
    wrong_hit: int = Field(default=-5, description="Penalty added on a wrong hit", le=0)
    boss_hit: int = Field(default=25, description="Base points for defeating a boss", ge=1)
    missed_slip: int = Field(default=0, description="Penalty added when a reveal is missed", le=0)


class ComboConfig(BaseModel):
    """
    Combo multiplier curve.

    The multiplier applied is the one paired with the largest threshold
    that does not exceed the current combo count.
    """
    model_config = {"frozen": True}

    thresholds: List[int] = Field(default=[0, 2, 4, 6, 8, 10], min_length=1)
    multipliers: List[float] = Field(default=[1.0, 1.2, 1.5, 2.0, 2.5, 3.0], min_length=1)

    @model_validator(mode='after')
    def validate_curve(self) -> 'ComboConfig':
        """Equal lengths, thresholds strictly increasing from 0, multipliers non-decreasing."""
        if len(self.thresholds) != len(self.multipliers):
            raise ValueError(
                f"Combo thresholds ({len(self.thresholds)}) and multipliers "
                f"({len(self.multipliers)}) must have the same length"
            )
        if self.thresholds[0] != 0:
            raise ValueError("Combo thresholds must start at 0")
        for prev, cur in zip(self.thresholds, self.thresholds[1:]):
            if cur <= prev:
                raise ValueError("Combo thresholds must be strictly increasing")
        for prev, cur in zip(self.multipliers, self.multipliers[1:]):
            if cur < prev:
                raise ValueError("Combo multipliers must be non-decreasing")
        if self.multipliers[0] <= 0:
            raise ValueError("Combo multipliers must be positive")
        return self

    def multiplier_for(self, combo: int) -> float:
        """Multiplier for the greatest threshold <= combo.

        Examples:
            >>> ComboConfig().multiplier_for(0)
            1.0
            >>> ComboConfig().multiplier_for(5)
            1.5
        """
        for threshold, multiplier in zip(reversed(self.thresholds), reversed(self.multipliers)):
            if combo >= threshold:
                return multiplier
        return self.multipliers[0]


class AntiSpamConfig(BaseModel):
    """Penalty mode entered after repeated consecutive wrong hits."""
    model_config = {"frozen": True}

    wrong_hits_to_trigger: int = Field(default=3, ge=1)
    penalty_duration: float = Field(default=3000.0, description="Milliseconds the mode stays active", gt=0.0)
    slip_reduction: float = Field(default=0.5, description="Fraction removed from reveal chance", ge=0.0, le=1.0)
    mask_duration_increase: float = Field(default=1.5, description="Mask duration factor", ge=1.0)
    spawn_interval_increase: float = Field(default=1.5, description="Spawn interval factor", ge=1.0)


class SpawnConfig(BaseModel):
    """Spawn scheduler and character timing constants."""
    model_config = {"frozen": True}

    unmasked_spawn_chance: float = Field(
        default=0.4,
        description="Fraction of regular spawns that start already revealed",
        ge=0.0, le=1.0,
    )
    center_slot_chance: float = Field(default=0.3, ge=0.0, le=1.0)
    trigger_type_chance: float = Field(
        default=0.2,
        description="Chance the trigger type joins the candidate pool on an attempt",
        ge=0.0, le=1.0,
    )
    crack_duration: float = Field(default=150.0, description="Milliseconds spent cracking", ge=0.0)
    boss_check_interval: float = Field(default=1000.0, gt=0.0)
    hit_exit_delay: float = Field(
        default=500.0,
        description="Milliseconds a hit character keeps its slot before leaving",
        ge=0.0,
    )
    leave_duration: float = Field(
        default=200.0,
        description="Milliseconds an unhit character keeps its slot while leaving",
        ge=0.0,
    )
    boss_damage_policy: BossDamagePolicy = Field(default=BossDamagePolicy.KEEP)


class DifficultyProfile(BaseModel):
    """
    Tunables for one difficulty preset.

    Durations are milliseconds of logical (unpaused) time.
    """
    model_config = {"frozen": True}

    name: str
    slip_chance: float = Field(description="Base probability a spawn will reveal", ge=0.0, le=1.0)
    slip_duration: float = Field(description="Base reveal duration", gt=0.0)
    mask_duration: DurationRange
    popup_interval: DurationRange
    max_active_characters: int = Field(ge=1)
    boss_interval: float = Field(description="Played time between forced boss spawns", gt=0.0)
    boss_hits_required: int = Field(default=1, ge=1)

    @field_validator('popup_interval')
    @classmethod
    def validate_popup_interval(cls, v: DurationRange) -> DurationRange:
        """A zero spawn interval would reschedule forever at the same instant."""
        if v.min <= 0.0:
            raise ValueError("popup_interval.min must be positive")
        return v


class CharacterTypeDefinition(BaseModel):
    """
    One character type and its modifiers.

    The kind tag replaces separate boss/trigger flags; `is_boss` and
    `requires_trigger` are derived from it.
    """
    model_config = {"frozen": True}

    id: str = Field(min_length=1)
    name: str
    description: str = ""
    sprite_key: Optional[str] = None
    kind: CharacterKind = CharacterKind.REGULAR
    mask_duration_modifier: float = Field(default=1.0, gt=0.0)
    slip_duration_modifier: float = Field(default=1.0, gt=0.0)
    slip_chance_modifier: float = Field(default=1.0, ge=0.0, le=1.0)
    points_modifier: float = Field(default=1.0, gt=0.0)
    has_audio_bait: bool = False

    @property
    def is_boss(self) -> bool:
        return self.kind == CharacterKind.BOSS

    @property
    def requires_trigger(self) -> bool:
        return self.kind == CharacterKind.TRIGGER


class RatingTier(BaseModel):
    """End-of-round classification; both minimums must be met."""
    model_config = {"frozen": True}

    id: str = Field(min_length=1)
    name: str
    emoji: str = ""
    color: str = "#ffffff"
    min_accuracy: float = Field(ge=0.0, le=1.0)
    min_score_percent: float = Field(ge=0.0, le=1.0)


class GameConfig(BaseModel):
    """
    Complete game configuration from YAML.

    Top-level model validated once at load time; an instance is never
    mutated afterwards.
    """
    model_config = {"frozen": True}

    round_duration: int = Field(default=10, description="Round length in seconds", ge=1)
    default_difficulty: str = "normal"
    grid: GridConfig = Field(default_factory=GridConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    combo: ComboConfig = Field(default_factory=ComboConfig)
    anti_spam: AntiSpamConfig = Field(default_factory=AntiSpamConfig)
    spawn: SpawnConfig = Field(default_factory=SpawnConfig)
    difficulties: Dict[str, DifficultyProfile] = Field(min_length=1)
    characters: List[CharacterTypeDefinition] = Field(min_length=1)
    ratings: List[RatingTier] = Field(min_length=1)

    @field_validator('characters')
    @classmethod
    def validate_characters(cls, v: List[CharacterTypeDefinition]) -> List[CharacterTypeDefinition]:
        """Unique ids, exactly one boss, at least one regular type."""
        ids = [c.id for c in v]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Character ids must be unique, got {ids}")
        bosses = [c for c in v if c.kind == CharacterKind.BOSS]
        if len(bosses) != 1:
            raise ValueError(f"Exactly one boss character type is required, got {len(bosses)}")
        if not any(c.kind == CharacterKind.REGULAR for c in v):
            raise ValueError("At least one regular character type is required")
        return v

    @field_validator('ratings')
    @classmethod
    def validate_ratings(cls, v: List[RatingTier]) -> List[RatingTier]:
        """The list must contain a tier that every summary matches."""
        if not any(t.min_accuracy == 0 and t.min_score_percent == 0 for t in v):
            raise ValueError("Ratings need a lowest tier with min_accuracy 0 and min_score_percent 0")
        ids = [t.id for t in v]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Rating ids must be unique, got {ids}")
        return v

    @model_validator(mode='after')
    def validate_default_difficulty(self) -> 'GameConfig':
        """Ensure the default difficulty names an existing profile."""
        if self.default_difficulty not in self.difficulties:
            raise ValueError(
                f"default_difficulty '{self.default_difficulty}' is not one of "
                f"{sorted(self.difficulties)}"
            )
        return self

    @property
    def boss_type(self) -> CharacterTypeDefinition:
        return next(c for c in self.characters if c.is_boss)

    @property
    def regular_types(self) -> List[CharacterTypeDefinition]:
        return [c for c in self.characters if c.kind == CharacterKind.REGULAR]

    @property
    def trigger_types(self) -> List[CharacterTypeDefinition]:
        return [c for c in self.characters if c.requires_trigger]

    def character(self, type_id: str) -> CharacterTypeDefinition:
        """Look up a character type by id.

        Raises:
            KeyError: If no type has this id
        """
        for c in self.characters:
            if c.id == type_id:
                return c
        raise KeyError(type_id)
