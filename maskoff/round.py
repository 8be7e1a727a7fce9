"""
Round controller - owns one round from start to summary.

The controller holds the RoundState, the grid and the spawn scheduler, and
is the listener every Character reports back to. All timing runs on one
EventScheduler; a frame loop (or a test) drives it through advance().

Lifecycle:
    READY --start()--> PLAYING <--pause()/resume()--> PAUSED
    PLAYING --countdown reaches 0--> GAME_OVER --start()--> PLAYING
    PLAYING/PAUSED --abort()--> READY

Usage:
    controller = RoundController(load_default_config(), seed=7)
    controller.add_observer(hud)
    controller.start('normal')
    while controller.is_running:
        controller.advance(16)
        for index in taps_this_frame:
            controller.tap_slot(index)
    print(controller.summary, controller.rating.name)
"""

import itertools
import math
import random
from typing import Dict, List, Optional

from maskoff.character import Character, CharacterListener, plan_spawn
from maskoff.errors import ConfigurationError, RoundStateError
from maskoff.grid import Grid, Slot
from maskoff.highscores import HighScoreService
from maskoff.logging import emit_record, get_logger
from maskoff.models import (
    CharacterTypeDefinition,
    DifficultyProfile,
    GameConfig,
    GameState,
    Outcome,
    RatingTier,
    RoundState,
    RoundSummary,
    TapOutcome,
    TapResult,
)
from maskoff.rating import rate, reference_high_score
from maskoff.scheduler import EventScheduler, TimerHandle
from maskoff.spawner import SpawnScheduler

log = get_logger('round')

COUNTDOWN_INTERVAL_MS = 1000.0


class RoundObserver:
    """Presentation hooks for a round. Override what you need."""

    def on_round_start(self, difficulty: str) -> None:
        pass

    def on_score_changed(self, score: int, delta: int) -> None:
        pass

    def on_combo_changed(self, combo: int) -> None:
        pass

    def on_time_changed(self, time_remaining: int) -> None:
        pass

    def on_anti_spam_changed(self, active: bool) -> None:
        pass

    def on_character_spawned(self, character: Character) -> None:
        pass

    def on_tap(self, character: Optional[Character], result: TapResult) -> None:
        pass

    def on_boss_damaged(self, character: Character, hits: int, required: int) -> None:
        pass

    def on_round_end(self, summary: RoundSummary, rating: RatingTier) -> None:
        pass

    def on_remote_confirmed(self, success: bool) -> None:
        pass


class RoundController(CharacterListener):
    """Runs rounds of the game on a logical clock.

    Attributes:
        config: Validated game configuration
        scheduler: The round clock
        high_scores: Personal/global high score service
        player_name: Name submitted with a new global record
        round_state: State of the current or last round
        grid: Slots of the current or last round
    """

    def __init__(
        self,
        config: GameConfig,
        high_scores: Optional[HighScoreService] = None,
        scheduler: Optional[EventScheduler] = None,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
        player_name: str = 'Anonymous',
        observers: Optional[List[RoundObserver]] = None,
    ):
        """Initialize the controller.

        Args:
            config: Game configuration
            high_scores: High score service (an offline in-memory one if None)
            scheduler: Clock to run on (a fresh one if None)
            rng: Random source (seeded from `seed` if None)
            seed: Seed used when no rng is given
            player_name: Name for global record submissions
            observers: Initial observers
        """
        self.config = config
        self.high_scores = high_scores or HighScoreService()
        self.scheduler = scheduler or EventScheduler()
        self._rng = rng or random.Random(seed)
        self.player_name = player_name
        self._observers: List[RoundObserver] = list(observers or [])

        self._game_state = GameState.READY
        self.round_state: Optional[RoundState] = None
        self.grid: Optional[Grid] = None
        self.spawner: Optional[SpawnScheduler] = None
        self._difficulty: Optional[DifficultyProfile] = None
        self._characters: Dict[int, Character] = {}
        self._ids = itertools.count(1)

        self._countdown: Optional[TimerHandle] = None
        self._anti_spam_timer: Optional[TimerHandle] = None
        self._summary: Optional[RoundSummary] = None
        self._rating: Optional[RatingTier] = None

    # ------------------------------------------------------------------
    # Observers and properties
    # ------------------------------------------------------------------

    def add_observer(self, observer: RoundObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: RoundObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, hook: str, *args) -> None:
        for observer in list(self._observers):
            getattr(observer, hook)(*args)

    @property
    def state(self) -> GameState:
        return self._game_state

    @property
    def is_running(self) -> bool:
        """A round is in progress (playing or paused)."""
        return self._game_state in (GameState.PLAYING, GameState.PAUSED)

    @property
    def difficulty(self) -> Optional[DifficultyProfile]:
        return self._difficulty

    @property
    def summary(self) -> Optional[RoundSummary]:
        """Summary of the last finished round."""
        return self._summary

    @property
    def rating(self) -> Optional[RatingTier]:
        """Rating of the last finished round."""
        return self._rating

    @property
    def characters(self) -> List[Character]:
        """Characters currently holding a slot."""
        return self.grid.characters() if self.grid is not None else []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, difficulty_key: Optional[str] = None) -> RoundState:
        """Start a new round.

        Args:
            difficulty_key: Difficulty profile key (config default if None)

        Returns:
            The fresh RoundState

        Raises:
            ConfigurationError: If the difficulty key is unknown
            RoundStateError: If a round is already in progress
        """
        if self.is_running:
            raise RoundStateError("A round is already in progress")

        key = difficulty_key or self.config.default_difficulty
        profile = self.config.difficulties.get(key)
        if profile is None:
            available = ', '.join(sorted(self.config.difficulties))
            raise ConfigurationError(f"Unknown difficulty '{key}'. Available: {available}")

        self.scheduler.resume()
        self._difficulty = profile
        self._summary = None
        self._rating = None
        self._characters.clear()

        self.round_state = RoundState(
            difficulty=key,
            time_remaining=self.config.round_duration,
            started_at=self.scheduler.now,
        )
        self.grid = Grid(self.config.grid)
        self.spawner = SpawnScheduler(
            self.config, profile, self.grid, self.scheduler, self._rng, self._spawn_character
        )

        self.high_scores.load_personal()
        self.high_scores.refresh_in_background(force=True)

        self._game_state = GameState.PLAYING
        self._countdown = self.scheduler.call_every(COUNTDOWN_INTERVAL_MS, self.tick, owner=self)
        self.spawner.start(self.round_state)

        log.info("Round started: difficulty=%s duration=%ds", key, self.config.round_duration)
        emit_record('round', {
            'event': 'round_start',
            't': self.scheduler.now,
            'difficulty': key,
            'duration': self.config.round_duration,
        })
        self._notify('on_round_start', key)
        self._notify('on_time_changed', self.round_state.time_remaining)
        self._notify('on_score_changed', 0, 0)
        self._notify('on_combo_changed', 0)
        return self.round_state

    def tick(self) -> None:
        """One countdown second. Ends the round at zero."""
        if self._game_state != GameState.PLAYING:
            return
        state = self.round_state
        state.time_remaining = max(0, state.time_remaining - 1)
        self._notify('on_time_changed', state.time_remaining)
        if state.time_remaining <= 0:
            self.finish()

    def pause(self) -> None:
        """Freeze the round clock.

        Raises:
            RoundStateError: If no round is playing
        """
        if self._game_state != GameState.PLAYING:
            raise RoundStateError(f"Cannot pause in state {self._game_state.value}")
        self.scheduler.pause()
        self._game_state = GameState.PAUSED
        log.debug("Round paused at t=%.0f", self.scheduler.now)

    def resume(self) -> None:
        """Unfreeze the round clock.

        Raises:
            RoundStateError: If the round is not paused
        """
        if self._game_state != GameState.PAUSED:
            raise RoundStateError(f"Cannot resume in state {self._game_state.value}")
        self.scheduler.resume()
        self._game_state = GameState.PLAYING
        log.debug("Round resumed at t=%.0f", self.scheduler.now)

    def advance(self, ms: float) -> int:
        """Advance the round clock by ms. Returns the number of events fired."""
        return self.scheduler.advance(ms)

    def finish(self) -> RoundSummary:
        """End the round and produce its summary.

        Stops spawning and the countdown, force-resolves every character,
        rates the round, notifies observers and hands the result to the
        high score service without waiting on remote I/O.

        Raises:
            RoundStateError: If no round is in progress
        """
        if not self.is_running:
            raise RoundStateError("No round in progress")

        self._teardown()
        state = self.round_state
        hs = self.high_scores

        summary = RoundSummary(
            score=state.score,
            correct_hits=state.correct_hits,
            wrong_hits=state.wrong_hits,
            max_combo=state.max_combo,
            missed_reveals=state.missed_reveals,
            bosses_defeated=state.bosses_defeated,
            difficulty=state.difficulty,
            is_new_personal_record=hs.is_new_personal_record(state.score),
            is_new_global_record=hs.is_new_global_record(state.score),
        )
        reference = reference_high_score(hs.personal_best, hs.global_high_score)
        rating = rate(summary, reference, self.config.ratings)

        self._summary = summary
        self._rating = rating
        self._game_state = GameState.GAME_OVER

        log.info("Round over: %s rating=%s", summary, rating.id)
        emit_record('round', {
            'event': 'round_end',
            't': self.scheduler.now,
            **summary.model_dump(),
            'rating': rating.id,
            'reference_score': reference,
        })
        self._notify('on_round_end', summary, rating)

        hs.record_round(summary, self.player_name, on_confirmed=self._on_remote_confirmed)
        return summary

    def abort(self) -> None:
        """End the round without a summary. No-op if none is running."""
        if not self.is_running:
            return
        self._teardown()
        self._game_state = GameState.READY
        log.info("Round aborted at t=%.0f", self.scheduler.now)
        emit_record('round', {'event': 'round_abort', 't': self.scheduler.now})

    def _teardown(self) -> None:
        self.scheduler.resume()
        if self.spawner is not None:
            self.spawner.stop()
        self.scheduler.cancel_owner(self)
        self._countdown = None
        self._anti_spam_timer = None

        for character in self.grid.characters():
            character.force_resolve()
        self.grid.clear()
        self._characters.clear()

        state = self.round_state
        state.anti_spam_active = False
        state.anti_spam_until = None

    def _on_remote_confirmed(self, success: bool) -> None:
        self._notify('on_remote_confirmed', success)

    # ------------------------------------------------------------------
    # Spawning
    # ------------------------------------------------------------------

    def spawn(self, type_id: str, slot_index: Optional[int] = None) -> Character:
        """Spawn a specific character type now, bypassing the spawn timing.

        Used by scripted rounds and tools. The reveal decision is drawn
        exactly as for scheduled spawns.

        Args:
            type_id: Character type id
            slot_index: Slot to use (the first free slot if None)

        Raises:
            RoundStateError: If no round is playing
            KeyError: If the type id is unknown
            ValueError: If the slot is occupied or no slot is free
        """
        if self._game_state != GameState.PLAYING:
            raise RoundStateError("Characters can only spawn while playing")
        char_type = self.config.character(type_id)
        if slot_index is None:
            free = self.grid.free_slots()
            if not free:
                raise ValueError("No free slot")
            slot = free[0]
        else:
            slot = self.grid[slot_index]
        return self._spawn_character(slot, char_type, forced_boss=False)

    def _spawn_character(
        self, slot: Slot, char_type: CharacterTypeDefinition, forced_boss: bool
    ) -> Character:
        state = self.round_state
        character = Character(
            id=next(self._ids),
            slot_index=slot.index,
            char_type=char_type,
            difficulty=self._difficulty,
            config=self.config,
            scheduler=self.scheduler,
            rng=self._rng,
            listener=self,
        )
        self.grid.occupy(slot, character)
        plan = plan_spawn(char_type, self._difficulty, self.config, state, self._rng)
        self._characters[character.id] = character
        character.spawn(plan, anti_spam_active=state.anti_spam_active)

        log.trace("spawned %r", character)
        emit_record('round', {
            'event': 'spawn',
            't': self.scheduler.now,
            'forced': forced_boss,
            **character.to_record(),
        })
        self._notify('on_character_spawned', character)
        return character

    # ------------------------------------------------------------------
    # Taps
    # ------------------------------------------------------------------

    def _ignored(self, character: Optional[Character] = None) -> TapResult:
        state = self.round_state
        return TapResult(
            outcome=TapOutcome.IGNORED,
            score=state.score if state else 0,
            combo=state.combo if state else 0,
            character_id=character.id if character is not None else None,
        )

    def tap_slot(self, index: int) -> TapResult:
        """Tap the slot at index. Empty or out-of-range slots are ignored."""
        if self._game_state != GameState.PLAYING or not 0 <= index < len(self.grid):
            return self._ignored()
        character = self.grid[index].character
        if character is None:
            return self._ignored()
        return self.on_tap(character)

    def on_tap(self, character: Character) -> TapResult:
        """Route a tap to a character and apply its effect on the round.

        Returns:
            TapResult describing what the tap did
        """
        if self._game_state != GameState.PLAYING:
            return self._ignored(character)
        if self._characters.get(character.id) is not character:
            return self._ignored(character)

        outcome = character.handle_tap()
        if outcome == TapOutcome.CORRECT:
            result = self._apply_correct_hit(character)
        elif outcome == TapOutcome.BOSS_DAMAGED:
            result = self._apply_boss_damage(character)
        elif outcome == TapOutcome.WRONG:
            result = self._apply_wrong_hit(character)
        else:
            return self._ignored(character)

        emit_record('round', {
            'event': 'tap',
            't': self.scheduler.now,
            'character': character.id,
            'type': character.char_type.id,
            'outcome': result.outcome.value,
            'points': result.points,
            'score': result.score,
            'combo': result.combo,
        })
        self._notify('on_tap', character, result)
        return result

    def points_for(self, character: Character) -> int:
        """Points a correct hit on character is worth at the current combo."""
        scoring = self.config.scoring
        base = scoring.boss_hit if character.is_boss else scoring.correct_hit
        multiplier = self.config.combo.multiplier_for(self.round_state.combo)
        return math.floor(base * character.char_type.points_modifier * multiplier)

    def _apply_correct_hit(self, character: Character) -> TapResult:
        state = self.round_state
        points = self.points_for(character)
        state.add_score(points)
        state.correct_hits += 1
        state.combo += 1
        state.max_combo = max(state.max_combo, state.combo)
        state.consecutive_wrong_hits = 0
        state.trigger_pending = True
        if character.is_boss:
            state.bosses_defeated += 1
            log.debug("boss %d defeated", character.id)

        self._notify('on_score_changed', state.score, points)
        self._notify('on_combo_changed', state.combo)
        return TapResult(
            outcome=TapOutcome.CORRECT,
            points=points,
            score=state.score,
            combo=state.combo,
            character_id=character.id,
            boss_defeated=character.is_boss,
        )

    def _apply_boss_damage(self, character: Character) -> TapResult:
        state = self.round_state
        state.correct_hits += 1
        state.consecutive_wrong_hits = 0
        state.trigger_pending = True
        self._notify('on_boss_damaged', character, character.boss_hits, character.hits_required)
        return TapResult(
            outcome=TapOutcome.BOSS_DAMAGED,
            score=state.score,
            combo=state.combo,
            character_id=character.id,
        )

    def _apply_wrong_hit(self, character: Character) -> TapResult:
        state = self.round_state
        before = state.score
        state.add_score(self.config.scoring.wrong_hit)
        state.wrong_hits += 1
        state.combo = 0
        state.consecutive_wrong_hits += 1

        triggered = False
        if (
            state.consecutive_wrong_hits >= self.config.anti_spam.wrong_hits_to_trigger
            and not state.anti_spam_active
        ):
            self._activate_anti_spam()
            triggered = True

        self._notify('on_score_changed', state.score, state.score - before)
        self._notify('on_combo_changed', 0)
        return TapResult(
            outcome=TapOutcome.WRONG,
            points=state.score - before,
            score=state.score,
            combo=0,
            character_id=character.id,
            anti_spam_triggered=triggered,
        )

    # ------------------------------------------------------------------
    # Anti-spam
    # ------------------------------------------------------------------

    def _activate_anti_spam(self) -> None:
        state = self.round_state
        duration = self.config.anti_spam.penalty_duration
        state.anti_spam_active = True
        state.anti_spam_until = self.scheduler.now + duration
        self._anti_spam_timer = self.scheduler.call_later(duration, self._end_anti_spam, owner=self)
        log.info("Anti-spam active for %.0fms", duration)
        emit_record('round', {'event': 'anti_spam', 't': self.scheduler.now, 'active': True})
        self._notify('on_anti_spam_changed', True)

    def _end_anti_spam(self) -> None:
        state = self.round_state
        state.anti_spam_active = False
        state.anti_spam_until = None
        state.consecutive_wrong_hits = 0
        self._anti_spam_timer = None
        log.debug("Anti-spam ended")
        emit_record('round', {'event': 'anti_spam', 't': self.scheduler.now, 'active': False})
        self._notify('on_anti_spam_changed', False)

    # ------------------------------------------------------------------
    # Character notifications
    # ------------------------------------------------------------------

    def on_character_resolved(self, character: Character, outcome: Outcome) -> None:
        """Count a missed reveal when a reveal-eligible character times out."""
        if outcome == Outcome.MISSED_REVEAL and character.will_reveal:
            state = self.round_state
            state.missed_reveals += 1
            if self.config.scoring.missed_slip:
                before = state.score
                state.add_score(self.config.scoring.missed_slip)
                self._notify('on_score_changed', state.score, state.score - before)

        if outcome != Outcome.HIT:
            emit_record('round', {
                'event': 'terminal',
                't': self.scheduler.now,
                'character': character.id,
                'type': character.char_type.id,
                'outcome': outcome.value,
            })

    on_terminal = on_character_resolved

    def on_character_departed(self, character: Character) -> None:
        """Free the slot once the character has left."""
        if self.grid is not None:
            self.grid.release(character)
        self._characters.pop(character.id, None)
