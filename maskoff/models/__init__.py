"""
Data models for the Mask Off engine.

Usage:
    >>> from maskoff.models import GameConfig, RoundSummary, CharacterState
"""

from .enums import (
    GameState,
    CharacterKind,
    CharacterState,
    Outcome,
    TapOutcome,
    BossDamagePolicy,
)

from .config import (
    DurationRange,
    GridConfig,
    ScoringConfig,
    ComboConfig,
    AntiSpamConfig,
    SpawnConfig,
    DifficultyProfile,
    CharacterTypeDefinition,
    RatingTier,
    GameConfig,
)

from .round import (
    RoundState,
    RoundSummary,
    TapResult,
    RemoteHighScoreRecord,
)

__all__ = [
    # Enums
    "GameState",
    "CharacterKind",
    "CharacterState",
    "Outcome",
    "TapOutcome",
    "BossDamagePolicy",
    # Configuration models
    "DurationRange",
    "GridConfig",
    "ScoringConfig",
    "ComboConfig",
    "AntiSpamConfig",
    "SpawnConfig",
    "DifficultyProfile",
    "CharacterTypeDefinition",
    "RatingTier",
    "GameConfig",
    # Round models
    "RoundState",
    "RoundSummary",
    "TapResult",
    "RemoteHighScoreRecord",
]
