"""
Hole grid and slot ownership.

A slot holds at most one character at a time. It is occupied from the
moment a character spawns into it until the character has fully left.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, List, Optional

from maskoff.models import GridConfig

if TYPE_CHECKING:
    from maskoff.character import Character


@dataclass
class Slot:
    """One hole in the grid."""
    index: int
    character: Optional['Character'] = None

    @property
    def is_occupied(self) -> bool:
        return self.character is not None


class Grid:
    """Fixed set of slots with a designated center slot."""

    def __init__(self, config: GridConfig):
        self.config = config
        self.slots: List[Slot] = [Slot(index=i) for i in range(config.slot_count)]

    def __len__(self) -> int:
        return len(self.slots)

    def __iter__(self) -> Iterator[Slot]:
        return iter(self.slots)

    def __getitem__(self, index: int) -> Slot:
        return self.slots[index]

    @property
    def center(self) -> Slot:
        return self.slots[self.config.center_index]

    def free_slots(self) -> List[Slot]:
        return [s for s in self.slots if not s.is_occupied]

    def characters(self) -> List['Character']:
        """Characters currently holding a slot, in slot order."""
        return [s.character for s in self.slots if s.character is not None]

    def active_count(self) -> int:
        """Characters still in play (not yet resolved)."""
        return sum(1 for c in self.characters() if not c.is_resolved)

    def occupy(self, slot: Slot, character: 'Character') -> None:
        """Assign a character to a free slot.

        Raises:
            ValueError: If the slot is already occupied
        """
        if slot.is_occupied:
            raise ValueError(f"Slot {slot.index} is already occupied")
        slot.character = character

    def release(self, character: 'Character') -> bool:
        """Free the slot owned by character. Returns False if it held none."""
        for slot in self.slots:
            if slot.character is character:
                slot.character = None
                return True
        return False

    def find(self, character: 'Character') -> Optional[Slot]:
        for slot in self.slots:
            if slot.character is character:
                return slot
        return None

    def clear(self) -> None:
        for slot in self.slots:
            slot.character = None
