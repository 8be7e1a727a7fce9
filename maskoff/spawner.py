"""
Spawn scheduler.

Decides when and where new characters appear: a self-rescheduling spawn
attempt at a random popup interval, plus a fixed-cadence boss check that
forces a boss in once enough played time has passed. Attempts that find
no free slot or no capacity simply wait for the next cycle.
"""

import random
from typing import Callable, Optional

from maskoff.grid import Grid, Slot
from maskoff.logging import get_logger
from maskoff.models import CharacterTypeDefinition, DifficultyProfile, GameConfig, RoundState
from maskoff.scheduler import EventScheduler, TimerHandle

log = get_logger('spawner')

# (slot, character type, forced boss) -> spawned object or None
SpawnCallback = Callable[[Slot, CharacterTypeDefinition, bool], object]


class SpawnScheduler:
    """Creates characters on the round's logical clock.

    The scheduler only chooses timing, slot and type; building the
    character is delegated to the spawn callback supplied by the round
    controller.
    """

    def __init__(
        self,
        config: GameConfig,
        difficulty: DifficultyProfile,
        grid: Grid,
        scheduler: EventScheduler,
        rng: random.Random,
        spawn_callback: SpawnCallback,
    ):
        """Initialize the spawner.

        Args:
            config: Game configuration
            difficulty: Difficulty profile of the round
            grid: Slots to spawn into
            scheduler: Round clock
            rng: Random source shared with the round
            spawn_callback: Builds and spawns a character in a slot
        """
        self.config = config
        self.difficulty = difficulty
        self.grid = grid
        self._scheduler = scheduler
        self._rng = rng
        self._spawn_callback = spawn_callback

        self._state: Optional[RoundState] = None
        self._next_attempt: Optional[TimerHandle] = None
        self._boss_check: Optional[TimerHandle] = None
        self.running = False

        self.attempts = 0
        self.spawned = 0
        self.skipped = 0

    @property
    def played_time(self) -> float:
        """Logical ms since the round started (pauses excluded)."""
        if self._state is None:
            return 0.0
        return self._scheduler.now - self._state.started_at

    def start(self, state: RoundState) -> None:
        """Begin spawning for a round.

        Args:
            state: The round's state; read for anti-spam and boss timing
        """
        self.stop()
        self._state = state
        self.running = True
        self._schedule_next()
        self._boss_check = self._scheduler.call_every(
            self.config.spawn.boss_check_interval, self.check_boss, owner=self
        )

    def stop(self) -> None:
        """Cancel all pending attempts and the boss check."""
        self.running = False
        self._scheduler.cancel_owner(self)
        self._next_attempt = None
        self._boss_check = None

    def next_interval(self) -> float:
        """Delay before the next spawn attempt."""
        popup = self.difficulty.popup_interval
        delay = self._rng.uniform(popup.min, popup.max)
        if self._state is not None and self._state.anti_spam_active:
            delay *= self.config.anti_spam.spawn_interval_increase
        return delay

    def _schedule_next(self) -> None:
        if not self.running:
            return
        self._next_attempt = self._scheduler.call_later(
            self.next_interval(), self._on_attempt_due, owner=self
        )

    def _on_attempt_due(self) -> None:
        # Next attempt is queued before this one runs
        self._schedule_next()
        self.attempt_spawn()

    def check_boss(self) -> None:
        """Force a boss in if boss_interval of played time has passed."""
        if not self.running or self._state is None:
            return
        played = self.played_time
        if played - self._state.last_boss_time >= self.difficulty.boss_interval:
            log.debug("boss due at played=%.0fms", played)
            self.attempt_spawn(force_boss=True)
            self._state.last_boss_time = played

    def attempt_spawn(self, force_boss: bool = False) -> Optional[object]:
        """Try to create one character.

        Returns:
            Whatever the spawn callback returned, or None if no slot or no
            capacity was available
        """
        self.attempts += 1
        free = self.grid.free_slots()
        if not free:
            self.skipped += 1
            return None

        if not force_boss and self.grid.active_count() >= self.difficulty.max_active_characters:
            self.skipped += 1
            return None

        slot = self.choose_slot(free, force_boss)
        char_type = self.config.boss_type if force_boss else self.choose_type()

        spawned = self._spawn_callback(slot, char_type, force_boss)
        if spawned is not None:
            self.spawned += 1
        return spawned

    def choose_slot(self, free: list, force_boss: bool = False) -> Slot:
        """Pick a free slot.

        Forced bosses take the center if free, else the first free slot.
        Other spawns take the center with center_slot_chance when it is
        free, otherwise a uniformly random free slot.
        """
        center = self.grid.center
        center_free = not center.is_occupied

        if force_boss:
            return center if center_free else free[0]

        if center_free and self._rng.random() < self.config.spawn.center_slot_chance:
            return center
        return self._rng.choice(free)

    def choose_type(self) -> CharacterTypeDefinition:
        """Uniform pick among regular types, with trigger types sometimes added."""
        candidates = list(self.config.regular_types)
        if self.config.trigger_types and self._rng.random() < self.config.spawn.trigger_type_chance:
            candidates.extend(self.config.trigger_types)
        return self._rng.choice(candidates)
