"""
Mask Off enumerations.

These enums define the lifecycle states, outcomes and character kinds used
by the round engine.
"""

from enum import Enum


class GameState(str, Enum):
    """States a round can be in.

    Attributes:
        READY: Controller created, no round running yet
        PLAYING: Active gameplay, clock advancing
        PAUSED: Round frozen; countdown and all timers suspended
        GAME_OVER: Round finished (countdown expired or aborted)
    """
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    GAME_OVER = "game_over"


class CharacterKind(str, Enum):
    """Behavior variant of a character type.

    Attributes:
        REGULAR: Reveals by chance, resolves on one correct hit
        TRIGGER: Reveals only when a previous correct hit armed it
        BOSS: Reveals by chance, needs several correct hits to resolve
    """
    REGULAR = "regular"
    TRIGGER = "trigger"
    BOSS = "boss"


class CharacterState(str, Enum):
    """States a character can be in during its lifecycle.

    Attributes:
        HIDDEN: Created but not yet spawned into its slot
        MASKED: Disguised; tapping is a wrong hit
        CRACKING: Mask breaking, brief transition to REVEALED
        REVEALED: True nature exposed; the only state where a tap scores
        RESOLVED: Terminal outcome decided, leaving the slot
        GONE: Left the slot; slot released
    """
    HIDDEN = "hidden"
    MASKED = "masked"
    CRACKING = "cracking"
    REVEALED = "revealed"
    RESOLVED = "resolved"
    GONE = "gone"

    @property
    def is_tappable(self) -> bool:
        """Whether a tap in this state is accepted at all."""
        return self in (CharacterState.MASKED, CharacterState.CRACKING, CharacterState.REVEALED)


class Outcome(str, Enum):
    """Terminal outcome of a character.

    Attributes:
        HIT: Resolved by a correct hit (or the final boss hit)
        MISSED_REVEAL: Revealed and left without being tapped
        EXPIRED_UNREVEALED: Mask timer ran out and it never revealed
        ABORTED: Force-resolved because the round ended
    """
    HIT = "hit"
    MISSED_REVEAL = "missed_reveal"
    EXPIRED_UNREVEALED = "expired_unrevealed"
    ABORTED = "aborted"


class TapOutcome(str, Enum):
    """What a single tap did.

    Attributes:
        CORRECT: Tapped a revealed character and resolved it
        BOSS_DAMAGED: Tapped a revealed boss that still needs more hits
        WRONG: Tapped a masked or cracking character
        IGNORED: Tap had no effect (resolved, hidden, empty slot, paused)
    """
    CORRECT = "correct"
    BOSS_DAMAGED = "boss_damaged"
    WRONG = "wrong"
    IGNORED = "ignored"


class BossDamagePolicy(str, Enum):
    """How a non-final boss hit affects the boss's reveal timer.

    Attributes:
        KEEP: Reveal timer keeps running unchanged
        RESET: Reveal timer restarts with the full reveal duration
    """
    KEEP = "keep"
    RESET = "reset"
