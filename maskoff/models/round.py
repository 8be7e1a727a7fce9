"""
Round data models.

RoundState is the mutable per-round context owned by the round controller.
RoundSummary, TapResult and RemoteHighScoreRecord are immutable values
handed to collaborators.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .enums import TapOutcome


@dataclass
class RoundState:
    """Mutable state of one round.

    Created fresh by RoundController.start() and passed to the spawner, so
    nothing leaks between rounds.

    Attributes:
        difficulty: Key of the difficulty profile in use
        time_remaining: Whole seconds left on the countdown
        started_at: Logical clock time (ms) when the round started
        anti_spam_until: Logical time (ms) the active anti-spam window ends
        last_boss_time: Played time (ms) of the last forced boss spawn
        trigger_pending: A correct hit armed the next trigger-type spawn
    """
    difficulty: str
    time_remaining: int
    started_at: float = 0.0
    score: int = 0
    combo: int = 0
    max_combo: int = 0
    correct_hits: int = 0
    wrong_hits: int = 0
    consecutive_wrong_hits: int = 0
    missed_reveals: int = 0
    bosses_defeated: int = 0
    anti_spam_active: bool = False
    anti_spam_until: Optional[float] = None
    last_boss_time: float = 0.0
    trigger_pending: bool = False

    @property
    def attempts(self) -> int:
        return self.correct_hits + self.wrong_hits

    @property
    def accuracy(self) -> float:
        """Correct / attempts, or 0.0 with no attempts."""
        if self.attempts == 0:
            return 0.0
        return self.correct_hits / self.attempts

    def add_score(self, delta: int) -> int:
        """Apply a score delta, clamping at zero. Returns the new score."""
        self.score = max(0, self.score + delta)
        return self.score


class RoundSummary(BaseModel):
    """Immutable end-of-round statistics.

    Examples:
        >>> summary = RoundSummary(score=90, correct_hits=8, wrong_hits=2)
        >>> summary.accuracy
        0.8
        >>> RoundSummary().accuracy
        0.0
    """
    model_config = ConfigDict(frozen=True)

    score: int = 0
    correct_hits: int = 0
    wrong_hits: int = 0
    max_combo: int = 0
    missed_reveals: int = 0
    bosses_defeated: int = 0
    difficulty: str = "normal"
    is_new_personal_record: bool = False
    is_new_global_record: bool = False

    @field_validator('score', 'correct_hits', 'wrong_hits', 'max_combo', 'missed_reveals', 'bosses_defeated')
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        """Validate counters are non-negative.

        Raises:
            ValueError: If value is negative
        """
        if v < 0:
            raise ValueError(f'Summary values must be non-negative, got {v}')
        return v

    @computed_field
    @property
    def attempts(self) -> int:
        return self.correct_hits + self.wrong_hits

    @computed_field
    @property
    def accuracy(self) -> float:
        """Ratio of correct hits to attempts (0.0 to 1.0), 0.0 with no attempts."""
        if self.attempts == 0:
            return 0.0
        return self.correct_hits / self.attempts

    def __str__(self) -> str:
        return (
            f"RoundSummary(score={self.score}, correct={self.correct_hits}, "
            f"wrong={self.wrong_hits}, max_combo={self.max_combo}, acc={self.accuracy:.1%})"
        )


class TapResult(BaseModel):
    """Result of routing one tap through the round controller."""
    model_config = ConfigDict(frozen=True)

    outcome: TapOutcome
    points: int = 0
    score: int = 0
    combo: int = 0
    character_id: Optional[int] = None
    boss_defeated: bool = False
    anti_spam_triggered: bool = False

    @property
    def counted(self) -> bool:
        """Whether the tap affected the round at all."""
        return self.outcome != TapOutcome.IGNORED


class RemoteHighScoreRecord(BaseModel):
    """Global high score as exchanged with the remote service.

    The wire format uses camelCase `achievedBy`/`achievedAt`.

    Examples:
        >>> RemoteHighScoreRecord.model_validate({'score': 42, 'achievedBy': 'Rafi'}).achieved_by
        'Rafi'
        >>> RemoteHighScoreRecord(score=0).achieved_by
        'Anonymous'
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    score: int = Field(default=0, ge=0)
    achieved_by: str = Field(default="Anonymous", alias="achievedBy")
    achieved_at: Optional[datetime] = Field(default=None, alias="achievedAt")

    @field_validator('achieved_by', mode='before')
    @classmethod
    def default_anonymous(cls, v):
        """Blank or missing names become 'Anonymous'."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return "Anonymous"
        return v

    def to_wire(self) -> dict:
        """Request body for the update endpoint."""
        return {"score": self.score, "achievedBy": self.achieved_by}
