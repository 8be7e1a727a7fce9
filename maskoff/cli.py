#!/usr/bin/env python3
"""
Mask Off round simulator.

Plays rounds headlessly with an automated player so balance changes can be
tried without a renderer. Runtime settings come from the environment (or a
.env file); command-line flags override them.

Usage:
    # List difficulties and character types
    maskoff-sim --list

    # One normal round with a sharp player
    maskoff-sim --difficulty normal --seed 7 --accuracy 0.9

    # Five sloppy rounds with tap spamming, no remote high score
    maskoff-sim --rounds 5 --accuracy 0.5 --spam-rate 2 --offline

    # Keep JSONL round and feedback records, silently
    maskoff-sim --seed 7 --record-dir ./records --no-sound --no-music
"""

import argparse
import asyncio
import random
import sys
from pathlib import Path
from typing import Dict, List, Optional

from maskoff.config_loader import load_config
from maskoff.errors import MaskOffError
from maskoff.feedback import FeedbackObserver
from maskoff.highscores import HighScoreService
from maskoff.logging import (
    close_all_sinks,
    configure_logging,
    create_sink_for_module,
    get_logger,
    register_sink,
)
from maskoff.models import CharacterState, GameConfig, RatingTier, RoundSummary, TapOutcome
from maskoff.round import RoundController
from maskoff.settings import load_settings

log = get_logger('cli')

FRAME_MS = 16.0
RECORD_MODULES = ('round', 'feedback')


class AutoPlayer:
    """Scripted player driving a RoundController frame by frame.

    Attributes:
        accuracy: Probability a revealed character gets tapped at all
        reaction_ms: Delay between a reveal and the tap
        spam_rate: Expected taps per second on masked characters
    """

    def __init__(
        self,
        controller: RoundController,
        rng: random.Random,
        accuracy: float = 0.8,
        reaction_ms: float = 250.0,
        spam_rate: float = 0.0,
    ):
        self.controller = controller
        self._rng = rng
        self.accuracy = accuracy
        self.reaction_ms = reaction_ms
        self.spam_rate = spam_rate
        # character id -> logical time of the planned tap (None = let it go)
        self._plans: Dict[int, Optional[float]] = {}

    def step(self, frame_ms: float) -> None:
        """Tap whatever this frame calls for."""
        controller = self.controller
        now = controller.scheduler.now

        for character in controller.characters:
            if character.state != CharacterState.REVEALED:
                continue
            if character.id not in self._plans:
                will_tap = self._rng.random() < self.accuracy
                self._plans[character.id] = now + self.reaction_ms if will_tap else None
            due = self._plans[character.id]
            if due is not None and now >= due:
                result = controller.tap_slot(character.slot_index)
                # Bosses needing several hits get another tap after a reaction delay
                self._plans[character.id] = now + self.reaction_ms if result.outcome == TapOutcome.BOSS_DAMAGED else None

        if self.spam_rate > 0 and self._rng.random() < self.spam_rate * frame_ms / 1000.0:
            masked = [
                c for c in controller.characters
                if c.state in (CharacterState.MASKED, CharacterState.CRACKING)
            ]
            if masked:
                controller.tap_slot(self._rng.choice(masked).slot_index)

    def reset(self) -> None:
        self._plans.clear()


async def play_round(controller: RoundController, player: AutoPlayer, difficulty: str) -> RoundSummary:
    """Play one round to the end, yielding to the event loop every frame."""
    player.reset()
    controller.start(difficulty)
    while controller.is_running:
        controller.advance(FRAME_MS)
        if controller.is_running:
            player.step(FRAME_MS)
        await asyncio.sleep(0)
    return controller.summary


def print_config(config: GameConfig) -> None:
    """Print difficulties and character types."""
    print("\nDifficulties")
    print("=" * 50)
    for key, profile in config.difficulties.items():
        marker = " (default)" if key == config.default_difficulty else ""
        print(f"\n  {key}{marker}")
        print(f"    Name: {profile.name}")
        print(f"    Slip chance: {profile.slip_chance:.0%}, slip duration: {profile.slip_duration:.0f}ms")
        print(f"    Max active: {profile.max_active_characters}, boss every {profile.boss_interval / 1000:.0f}s")

    print("\nCharacters")
    print("=" * 50)
    for char_type in config.characters:
        print(f"  {char_type.id:<10} {char_type.kind.value:<8} {char_type.description}")
    print()


def print_round(index: int, summary: RoundSummary, rating: RatingTier) -> None:
    print(f"\nRound {index}")
    print("-" * 40)
    print(f"  Score:           {summary.score}")
    print(f"  Accuracy:        {summary.accuracy:.0%} ({summary.correct_hits}/{summary.attempts})")
    print(f"  Max combo:       {summary.max_combo}")
    print(f"  Missed reveals:  {summary.missed_reveals}")
    print(f"  Bosses defeated: {summary.bosses_defeated}")
    print(f"  Rating:          {rating.emoji} {rating.name}")
    if summary.is_new_personal_record:
        print("  New personal best!")
    if summary.is_new_global_record:
        print("  New global record!")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='maskoff-sim',
        description='Mask Off round simulator - play rounds with an automated player',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  maskoff-sim --list                          # Difficulties and characters
  maskoff-sim --difficulty hard --seed 3      # One reproducible hard round
  maskoff-sim --rounds 10 --accuracy 0.6      # Ten rounds, sloppier player
        """
    )
    parser.add_argument('--difficulty', '-d', type=str, default=None,
                        help='Difficulty key (default: MASKOFF_DIFFICULTY or the config default)')
    parser.add_argument('--seed', '-s', type=int, default=None,
                        help='Random seed for reproducible rounds')
    parser.add_argument('--rounds', '-n', type=int, default=1,
                        help='Number of rounds to play (default: 1)')
    parser.add_argument('--accuracy', type=float, default=0.8,
                        help='Chance the player taps a revealed character (default: 0.8)')
    parser.add_argument('--reaction-ms', type=float, default=250.0,
                        help='Reaction time in milliseconds (default: 250)')
    parser.add_argument('--spam-rate', type=float, default=0.0,
                        help='Taps per second on masked characters (default: 0)')
    parser.add_argument('--config', '-c', type=str, default=None,
                        help='Game configuration YAML (default: MASKOFF_CONFIG_PATH or packaged)')
    parser.add_argument('--player-name', type=str, default=None,
                        help='Name submitted with a new global record')
    parser.add_argument('--offline', action='store_true',
                        help='Do not contact the remote high score service')
    parser.add_argument('--no-sound', action='store_true',
                        help='Disable sound cues (default: MASKOFF_SOUND_ENABLED)')
    parser.add_argument('--no-music', action='store_true',
                        help='Disable music cues (default: MASKOFF_MUSIC_ENABLED)')
    parser.add_argument('--record-dir', type=str, default=None,
                        help='Write round and feedback records as JSONL to this directory')
    parser.add_argument('--list', '-l', action='store_true',
                        help='List difficulties and character types and exit')
    return parser


async def run(args: argparse.Namespace) -> int:
    settings = load_settings().with_overrides(
        config_path=args.config,
        difficulty=args.difficulty,
        player_name=args.player_name,
        sound_enabled=False if args.no_sound else None,
        music_enabled=False if args.no_music else None,
    )
    config = load_config(Path(settings.config_path) if settings.config_path else None)

    if args.list:
        print_config(config)
        return 0

    rng = random.Random(args.seed)
    high_scores = HighScoreService.from_settings(settings, offline=args.offline)
    feedback = FeedbackObserver.from_settings(settings, config)
    controller = RoundController(
        config,
        high_scores=high_scores,
        rng=rng,
        player_name=settings.player_name,
        observers=[feedback],
    )
    player = AutoPlayer(
        controller,
        rng,
        accuracy=args.accuracy,
        reaction_ms=args.reaction_ms,
        spam_rate=args.spam_rate,
    )

    difficulty = settings.difficulty or config.default_difficulty
    print("=" * 60)
    print(f"Mask Off simulator: difficulty={difficulty} rounds={args.rounds}")
    print("=" * 60)

    if args.record_dir:
        configure_logging(log_dir=args.record_dir, records={module: True for module in RECORD_MODULES})
    for module in RECORD_MODULES:
        register_sink(module, create_sink_for_module(module))
    summaries: List[RoundSummary] = []
    try:
        for index in range(1, args.rounds + 1):
            summary = await play_round(controller, player, difficulty)
            summaries.append(summary)
            print_round(index, summary, controller.rating)

        if high_scores.pending:
            print("\nWaiting for high score update...")
        await high_scores.wait_pending()
    finally:
        close_all_sinks()

    if len(summaries) > 1:
        best = max(s.score for s in summaries)
        mean = sum(s.score for s in summaries) / len(summaries)
        print(f"\nBest score: {best}  Mean score: {mean:.1f}")
    print(f"Personal best: {high_scores.personal_best}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for maskoff-sim."""
    args = build_parser().parse_args(argv)
    if args.rounds < 1:
        print("--rounds must be at least 1", file=sys.stderr)
        return 1
    if not 0.0 <= args.accuracy <= 1.0:
        print("--accuracy must be between 0 and 1", file=sys.stderr)
        return 1

    try:
        return asyncio.run(run(args))
    except MaskOffError as e:
        log.error("%s", e)
        return 1


if __name__ == '__main__':
    sys.exit(main())
