"""Domain models for two-slot instructor allocation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ScoringPolicy(str, Enum):
    """How a candidate tuple of preference positions is ranked."""

    RANK_SUM = "rank_sum"
    WORST_RANK = "worst_rank"


class AllocationMethod(str, Enum):
    PREFERENCE = "preference"
    NO_PREFERENCES = "no_preferences"
    FALLBACK = "fallback"


class UnallocatedReason(str, Enum):
    CAPACITY_EXHAUSTED = "capacity_exhausted"


@dataclass(frozen=True)
class TimeSlot:
    slot_id: int
    name: str
    time: str


@dataclass(frozen=True)
class Participant:
    participant_id: str
    name: str
    preferences: tuple[str, ...] = ()
    is_submitted: bool = False


@dataclass(frozen=True)
class Assignment:
    participant_id: str
    name: str
    instructors: tuple[str, ...]
    preference_ranks: Optional[tuple[int, ...]]
    method: AllocationMethod

    @property
    def slot_1_instructor(self) -> str:
        return self.instructors[0]

    @property
    def slot_2_instructor(self) -> str:
        return self.instructors[1]

    @property
    def best_preference_rank(self) -> Optional[int]:
        if self.preference_ranks is None:
            return None
        return min(self.preference_ranks)

    @property
    def worst_preference_rank(self) -> Optional[int]:
        if self.preference_ranks is None:
            return None
        return max(self.preference_ranks)


@dataclass(frozen=True)
class UnallocatedParticipant:
    participant: Participant
    reason: UnallocatedReason


@dataclass(frozen=True)
class InstructorSlotStats:
    current_count: int
    max_capacity: int
    utilization_rate: float
    participant_ids: tuple[str, ...]


@dataclass(frozen=True)
class SlotStats:
    slot: TimeSlot
    instructors: dict[str, InstructorSlotStats]


@dataclass(frozen=True)
class PreferenceSatisfaction:
    first_choice: int = 0
    second_choice: int = 0
    third_choice: int = 0
    fourth_choice: int = 0
    lower_choice: int = 0
    no_preference_satisfied: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "first_choice": self.first_choice,
            "second_choice": self.second_choice,
            "third_choice": self.third_choice,
            "fourth_choice": self.fourth_choice,
            "lower_choice": self.lower_choice,
            "no_preference_satisfied": self.no_preference_satisfied,
        }


@dataclass(frozen=True)
class AllocationStats:
    total_participants: int
    allocated_participants: int
    unallocated_participants: int
    allocation_rate: float
    time_slots: tuple[SlotStats, ...]
    preference_satisfaction: PreferenceSatisfaction

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_participants": self.total_participants,
            "allocated_participants": self.allocated_participants,
            "unallocated_participants": self.unallocated_participants,
            "allocation_rate": self.allocation_rate,
            "time_slots": {
                str(slot_stats.slot.slot_id): {
                    "name": slot_stats.slot.name,
                    "time": slot_stats.slot.time,
                    "instructors": {
                        instructor: {
                            "current_count": item.current_count,
                            "max_capacity": item.max_capacity,
                            "utilization_rate": item.utilization_rate,
                            "participants": list(item.participant_ids),
                        }
                        for instructor, item in slot_stats.instructors.items()
                    },
                }
                for slot_stats in self.time_slots
            },
            "preference_satisfaction": self.preference_satisfaction.to_dict(),
        }


@dataclass(frozen=True)
class AllocationResult:
    assignments: tuple[Assignment, ...]
    stats: AllocationStats
    unallocated: tuple[UnallocatedParticipant, ...]
    slots: tuple[TimeSlot, ...]
    generated_at: str = field(default="", compare=False)

    def assignment_for(self, participant_id: str) -> Optional[Assignment]:
        for assignment in self.assignments:
            if assignment.participant_id == participant_id:
                return assignment
        return None

    def roster_for(self, instructor: str) -> dict[int, list[str]]:
        """Participant ids taught by ``instructor``, keyed by slot id."""
        roster: dict[int, list[str]] = {slot.slot_id: [] for slot in self.slots}
        for assignment in self.assignments:
            for slot, assigned in zip(self.slots, assignment.instructors):
                if assigned == instructor:
                    roster[slot.slot_id].append(assignment.participant_id)
        return roster

    def to_dict(self) -> dict[str, Any]:
        return {
            "allocation": [
                {
                    "participant_id": assignment.participant_id,
                    "name": assignment.name,
                    "method": assignment.method.value,
                    "preference_ranks": (
                        list(assignment.preference_ranks)
                        if assignment.preference_ranks is not None
                        else None
                    ),
                    **{
                        f"time_slot_{slot.slot_id}": {
                            "time": slot.time,
                            "instructor": instructor,
                        }
                        for slot, instructor in zip(self.slots, assignment.instructors)
                    },
                }
                for assignment in self.assignments
            ],
            "stats": self.stats.to_dict(),
            "unallocated": [
                {
                    "participant_id": item.participant.participant_id,
                    "name": item.participant.name,
                    "reason": item.reason.value,
                }
                for item in self.unallocated
            ],
            "timestamp": self.generated_at,
        }
