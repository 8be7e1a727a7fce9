"""
Character state machine.

One Character is one pop-up in one slot:

    HIDDEN -> MASKED -> CRACKING -> REVEALED -> RESOLVED -> GONE
    HIDDEN -> REVEALED (started revealed)

All timing runs on the round's EventScheduler. Timer callbacks check the
current state before acting, so a timer that fires after a tap already
resolved the character is a no-op, and a tap that arrives after a timer
resolved it is ignored.
"""

import random
from dataclasses import dataclass
from typing import Any, Dict, Optional

from maskoff.logging import get_logger
from maskoff.models import (
    BossDamagePolicy,
    CharacterKind,
    CharacterState,
    CharacterTypeDefinition,
    DifficultyProfile,
    GameConfig,
    Outcome,
    RoundState,
    TapOutcome,
)
from maskoff.scheduler import EventScheduler, TimerHandle

log = get_logger('character')


@dataclass(frozen=True)
class KindBehavior:
    """Rules that differ per character kind.

    Attributes:
        reveal_by_trigger: Reveal decision is the pending-trigger flag
            instead of a random draw
        may_start_revealed: Eligible to skip the masked phase at spawn
        multi_hit: Needs the difficulty's boss_hits_required correct hits
    """
    reveal_by_trigger: bool
    may_start_revealed: bool
    multi_hit: bool


KIND_BEHAVIOR: Dict[CharacterKind, KindBehavior] = {
    CharacterKind.REGULAR: KindBehavior(reveal_by_trigger=False, may_start_revealed=True, multi_hit=False),
    CharacterKind.TRIGGER: KindBehavior(reveal_by_trigger=True, may_start_revealed=False, multi_hit=False),
    CharacterKind.BOSS: KindBehavior(reveal_by_trigger=False, may_start_revealed=False, multi_hit=True),
}


@dataclass(frozen=True)
class SpawnPlan:
    """Spawn-time decisions for one character."""
    will_reveal: bool
    start_revealed: bool


def reveal_probability(
    char_type: CharacterTypeDefinition,
    difficulty: DifficultyProfile,
    config: GameConfig,
    anti_spam_active: bool,
) -> float:
    """Chance a chance-revealing character will slip.

    Examples:
        >>> from maskoff.config_loader import load_default_config
        >>> cfg = load_default_config()
        >>> reveal_probability(cfg.character('preacher'), cfg.difficulties['normal'], cfg, False)
        0.6
    """
    probability = difficulty.slip_chance * char_type.slip_chance_modifier
    if anti_spam_active:
        probability *= 1.0 - config.anti_spam.slip_reduction
    return probability


def plan_spawn(
    char_type: CharacterTypeDefinition,
    difficulty: DifficultyProfile,
    config: GameConfig,
    state: RoundState,
    rng: random.Random,
) -> SpawnPlan:
    """Decide whether a new character will reveal and how it starts.

    Trigger types take the round's pending-trigger flag and consume it.
    Everything else draws against reveal_probability(). Regular types may
    additionally start already revealed.
    """
    behavior = KIND_BEHAVIOR[char_type.kind]

    if behavior.reveal_by_trigger:
        will_reveal = state.trigger_pending
        state.trigger_pending = False
    else:
        probability = reveal_probability(char_type, difficulty, config, state.anti_spam_active)
        will_reveal = rng.random() < probability

    start_revealed = (
        behavior.may_start_revealed
        and rng.random() < config.spawn.unmasked_spawn_chance
    )
    return SpawnPlan(will_reveal=will_reveal, start_revealed=start_revealed)


class CharacterListener:
    """Receives a character's lifecycle notifications.

    The round controller implements this; the defaults do nothing.
    """

    def on_character_resolved(self, character: 'Character', outcome: Outcome) -> None:
        """Called once when the character reaches its terminal outcome."""

    def on_character_departed(self, character: 'Character') -> None:
        """Called once when the character has left its slot."""


class Character:
    """Lifecycle of one spawned character instance.

    Attributes:
        id: Round-unique id
        slot_index: Index of the slot it occupies
        char_type: Character type definition
        difficulty: Difficulty profile in force at spawn
        state: Current CharacterState
        will_reveal: Whether the masked phase ends in a reveal
        started_revealed: Spawned directly into REVEALED
        boss_hits: Correct hits absorbed so far (bosses)
        scored: A correct hit has already been counted for this instance
        outcome: Terminal outcome once resolved
    """

    def __init__(
        self,
        id: int,
        slot_index: int,
        char_type: CharacterTypeDefinition,
        difficulty: DifficultyProfile,
        config: GameConfig,
        scheduler: EventScheduler,
        rng: random.Random,
        listener: Optional[CharacterListener] = None,
    ):
        self.id = id
        self.slot_index = slot_index
        self.char_type = char_type
        self.difficulty = difficulty
        self._config = config
        self._scheduler = scheduler
        self._rng = rng
        self._listener = listener or CharacterListener()

        self.state = CharacterState.HIDDEN
        self.will_reveal = False
        self.started_revealed = False
        self.boss_hits = 0
        self.scored = False
        self.outcome: Optional[Outcome] = None

        self.spawned_at: Optional[float] = None
        self.revealed_at: Optional[float] = None
        self.resolved_at: Optional[float] = None
        self.mask_duration: Optional[float] = None

        self._timer: Optional[TimerHandle] = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def behavior(self) -> KindBehavior:
        return KIND_BEHAVIOR[self.char_type.kind]

    @property
    def is_boss(self) -> bool:
        return self.char_type.is_boss

    @property
    def hits_required(self) -> int:
        """Correct hits needed to resolve this character."""
        if self.behavior.multi_hit:
            return self.difficulty.boss_hits_required
        return 1

    @property
    def is_resolved(self) -> bool:
        return self.state in (CharacterState.RESOLVED, CharacterState.GONE)

    @property
    def is_revealed(self) -> bool:
        return self.state == CharacterState.REVEALED

    @property
    def reveal_duration(self) -> float:
        return self.difficulty.slip_duration * self.char_type.slip_duration_modifier

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def spawn(self, plan: SpawnPlan, anti_spam_active: bool = False) -> None:
        """Pop up into the slot and start the first timer.

        Raises:
            RuntimeError: If the character was already spawned
        """
        if self.state != CharacterState.HIDDEN:
            raise RuntimeError(f"Character {self.id} already spawned")

        self.will_reveal = plan.will_reveal
        self.started_revealed = plan.start_revealed
        self.spawned_at = self._scheduler.now

        if plan.start_revealed:
            self._reveal()
            return

        duration = self._rng.uniform(
            self.difficulty.mask_duration.min, self.difficulty.mask_duration.max
        ) * self.char_type.mask_duration_modifier
        if anti_spam_active:
            duration *= self._config.anti_spam.mask_duration_increase

        self.mask_duration = duration
        self.state = CharacterState.MASKED
        self._timer = self._scheduler.call_later(duration, self._on_mask_expired, owner=self)

    def _on_mask_expired(self) -> None:
        if self.state != CharacterState.MASKED:
            return
        if self.will_reveal:
            self.state = CharacterState.CRACKING
            self._timer = self._scheduler.call_later(
                self._config.spawn.crack_duration, self._on_crack_done, owner=self
            )
        else:
            self._resolve(Outcome.EXPIRED_UNREVEALED)

    def _on_crack_done(self) -> None:
        if self.state != CharacterState.CRACKING:
            return
        self._reveal()

    def _reveal(self) -> None:
        self.state = CharacterState.REVEALED
        self.revealed_at = self._scheduler.now
        self._timer = self._scheduler.call_later(
            self.reveal_duration, self._on_reveal_expired, owner=self
        )

    def _on_reveal_expired(self) -> None:
        if self.state != CharacterState.REVEALED:
            return
        self._resolve(Outcome.MISSED_REVEAL)

    def handle_tap(self) -> TapOutcome:
        """Apply one tap to this character.

        Returns:
            CORRECT if the tap resolved a revealed character, BOSS_DAMAGED
            for a non-final boss hit, WRONG for a masked or cracking
            character, IGNORED otherwise
        """
        if self.scored or not self.state.is_tappable:
            return TapOutcome.IGNORED

        if self.state != CharacterState.REVEALED:
            return TapOutcome.WRONG

        if self.behavior.multi_hit:
            self.boss_hits += 1
            if self.boss_hits < self.hits_required:
                if self._config.spawn.boss_damage_policy == BossDamagePolicy.RESET:
                    self._scheduler.cancel(self._timer)
                    self._reveal()
                return TapOutcome.BOSS_DAMAGED

        self.scored = True
        self._resolve(Outcome.HIT)
        return TapOutcome.CORRECT

    def _resolve(self, outcome: Outcome) -> None:
        if self.is_resolved:
            return
        self._scheduler.cancel_owner(self)
        self.state = CharacterState.RESOLVED
        self.outcome = outcome
        self.resolved_at = self._scheduler.now

        if outcome == Outcome.HIT:
            delay = self._config.spawn.hit_exit_delay
        else:
            delay = self._config.spawn.leave_duration
        # depart timer is armed before the listener runs
        self._timer = self._scheduler.call_later(delay, self._depart, owner=self)

        log.debug("character %d (%s) resolved: %s", self.id, self.char_type.id, outcome.value)
        self._listener.on_character_resolved(self, outcome)

    def _depart(self) -> None:
        if self.state != CharacterState.RESOLVED:
            return
        self.state = CharacterState.GONE
        self._timer = None
        self._listener.on_character_departed(self)

    def force_resolve(self) -> None:
        """End the character immediately without notifications.

        Used when the round ends; cancels every pending timer it owns.
        """
        self._scheduler.cancel_owner(self)
        self._timer = None
        if not self.is_resolved:
            self.outcome = Outcome.ABORTED
            self.resolved_at = self._scheduler.now
        self.state = CharacterState.GONE

    def to_record(self) -> Dict[str, Any]:
        """Structured snapshot for round logs."""
        return {
            'id': self.id,
            'slot': self.slot_index,
            'type': self.char_type.id,
            'state': self.state.value,
            'will_reveal': self.will_reveal,
            'started_revealed': self.started_revealed,
            'boss_hits': self.boss_hits,
            'outcome': self.outcome.value if self.outcome else None,
        }

    def __repr__(self) -> str:
        return (
            f"Character(id={self.id}, slot={self.slot_index}, type={self.char_type.id}, "
            f"state={self.state.value})"
        )
