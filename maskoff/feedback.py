"""
Audio feedback for a round.

FeedbackObserver maps round events to named sound and music cues and hands
them to a player callable, so a front end only has to map cue names to
assets. Sound effects and music are switched independently by the runtime
settings (MASKOFF_SOUND_ENABLED, MASKOFF_MUSIC_ENABLED).

Cues:
    sound: spawn, boss_spawn, hit, miss, boss_damage, boss_defeated,
           combo, anti_spam, round_end, new_record
    music: start, stop
"""

from typing import Callable, Iterable, List, Optional, Tuple

from maskoff.character import Character
from maskoff.logging import emit_record, get_logger
from maskoff.models import GameConfig, RatingTier, RoundSummary, TapOutcome, TapResult
from maskoff.round import RoundObserver
from maskoff.settings import Settings

log = get_logger('feedback')

CuePlayer = Callable[[str, str], None]


class FeedbackObserver(RoundObserver):
    """Plays sound and music cues for round events.

    Attributes:
        sound_enabled: Whether sound effects are played
        music_enabled: Whether background music is played
        combo_milestones: Combo values that play the combo cue
        music_playing: Background music is currently on
        played: (channel, cue) pairs dispatched so far, in order
    """

    def __init__(
        self,
        sound_enabled: bool = True,
        music_enabled: bool = True,
        combo_milestones: Iterable[int] = (),
        player: Optional[CuePlayer] = None,
    ):
        """Initialize the observer.

        Args:
            sound_enabled: Play sound effects
            music_enabled: Play background music
            combo_milestones: Combo values worth a combo cue
            player: Called with (channel, cue) for every cue played
        """
        self.sound_enabled = sound_enabled
        self.music_enabled = music_enabled
        self.combo_milestones = frozenset(combo_milestones)
        self.music_playing = False
        self.played: List[Tuple[str, str]] = []
        self._player = player

    @classmethod
    def from_settings(
        cls, settings: Settings, config: GameConfig, player: Optional[CuePlayer] = None
    ) -> 'FeedbackObserver':
        """Build from runtime settings; combo milestones are the multiplier steps."""
        milestones = [t for t in config.combo.thresholds if t > 0]
        return cls(settings.sound_enabled, settings.music_enabled, milestones, player)

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def play_sound(self, cue: str) -> None:
        if self.sound_enabled:
            self._dispatch('sound', cue)

    def start_music(self) -> None:
        if self.music_enabled and not self.music_playing:
            self.music_playing = True
            self._dispatch('music', 'start')

    def stop_music(self) -> None:
        if self.music_playing:
            self.music_playing = False
            self._dispatch('music', 'stop')

    def _dispatch(self, channel: str, cue: str) -> None:
        self.played.append((channel, cue))
        log.trace("%s cue: %s", channel, cue)
        emit_record('feedback', {'channel': channel, 'cue': cue})
        if self._player is not None:
            self._player(channel, cue)

    # ------------------------------------------------------------------
    # Round hooks
    # ------------------------------------------------------------------

    def on_round_start(self, difficulty: str) -> None:
        self.start_music()

    def on_character_spawned(self, character: Character) -> None:
        self.play_sound('boss_spawn' if character.is_boss else 'spawn')

    def on_tap(self, character: Optional[Character], result: TapResult) -> None:
        if result.outcome == TapOutcome.CORRECT:
            self.play_sound('boss_defeated' if result.boss_defeated else 'hit')
        elif result.outcome == TapOutcome.BOSS_DAMAGED:
            self.play_sound('boss_damage')
        elif result.outcome == TapOutcome.WRONG:
            self.play_sound('miss')

    def on_combo_changed(self, combo: int) -> None:
        if combo in self.combo_milestones:
            self.play_sound('combo')

    def on_anti_spam_changed(self, active: bool) -> None:
        if active:
            self.play_sound('anti_spam')

    def on_round_end(self, summary: RoundSummary, rating: RatingTier) -> None:
        self.stop_music()
        if summary.is_new_personal_record or summary.is_new_global_record:
            self.play_sound('new_record')
        else:
            self.play_sound('round_end')
