"""Per-slot, per-instructor capacity bookkeeping for one allocation run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from backend.domain.constraints import AllocationConfig
from backend.domain.models import TimeSlot


class CapacityExceededError(RuntimeError):
    """Raised when a commit would push a slot past its maximum."""


@dataclass
class SlotCapacity:
    maximum: int
    current: int = 0
    participant_ids: list[str] = field(default_factory=list)

    @property
    def has_room(self) -> bool:
        return self.current < self.maximum


class CapacityTable:
    """Tracks (slot, instructor) fill levels; counts only ever go up."""

    def __init__(self, config: AllocationConfig) -> None:
        self._slots = tuple(config.slots)
        self._instructors = tuple(config.instructors)
        self._cells: dict[tuple[int, str], SlotCapacity] = {
            (slot_index, instructor): SlotCapacity(maximum=config.capacity_for(instructor))
            for slot_index in range(len(self._slots))
            for instructor in self._instructors
        }

    @property
    def slots(self) -> tuple[TimeSlot, ...]:
        return self._slots

    @property
    def instructors(self) -> tuple[str, ...]:
        return self._instructors

    def cell(self, slot_index: int, instructor: str) -> SlotCapacity:
        return self._cells[(slot_index, instructor)]

    def has_room(self, slot_index: int, instructor: str) -> bool:
        """Unknown instructors never have room."""
        cell = self._cells.get((slot_index, instructor))
        return cell is not None and cell.has_room

    def can_commit(self, instructors: Sequence[str]) -> bool:
        if len(instructors) != len(self._slots):
            return False
        if len(set(instructors)) != len(instructors):
            return False
        return all(
            self.has_room(slot_index, instructor)
            for slot_index, instructor in enumerate(instructors)
        )

    def commit(self, participant_id: str, instructors: Sequence[str]) -> None:
        """Record one participant against every slot in a single step."""
        if not self.can_commit(instructors):
            raise CapacityExceededError(
                f"cannot commit participant {participant_id} to {tuple(instructors)}"
            )
        for slot_index, instructor in enumerate(instructors):
            cell = self._cells[(slot_index, instructor)]
            cell.current += 1
            cell.participant_ids.append(participant_id)

    def available_instructors(self, slot_index: int) -> list[str]:
        return [
            instructor
            for instructor in self._instructors
            if self._cells[(slot_index, instructor)].has_room
        ]
