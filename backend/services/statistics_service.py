"""Summary statistics for a finished allocation run."""

from __future__ import annotations

from collections import Counter
from typing import Sequence

from backend.domain.capacity import CapacityTable
from backend.domain.models import (
    AllocationStats,
    Assignment,
    InstructorSlotStats,
    PreferenceSatisfaction,
    SlotStats,
    UnallocatedParticipant,
)


_RANK_BUCKETS = ("first_choice", "second_choice", "third_choice", "fourth_choice")


def compute_allocation_rate(allocated: int, total: int) -> float:
    if total == 0:
        return 0.0
    return round(allocated / total * 100, 1)


def compute_utilization_rate(current: int, maximum: int) -> float:
    if maximum <= 0:
        return 0.0
    return round(current / maximum * 100, 1)


def tally_preference_satisfaction(assignments: Sequence[Assignment]) -> PreferenceSatisfaction:
    """Bucket each allocated participant by their best satisfied rank."""
    buckets: Counter[str] = Counter()
    for assignment in assignments:
        best_rank = assignment.best_preference_rank
        if best_rank is None:
            buckets["no_preference_satisfied"] += 1
        elif best_rank < len(_RANK_BUCKETS):
            buckets[_RANK_BUCKETS[best_rank]] += 1
        else:
            buckets["lower_choice"] += 1
    return PreferenceSatisfaction(**buckets)


def build_allocation_stats(
    *,
    capacity: CapacityTable,
    assignments: Sequence[Assignment],
    unallocated: Sequence[UnallocatedParticipant],
) -> AllocationStats:
    allocated = len(assignments)
    total = allocated + len(unallocated)

    slot_stats: list[SlotStats] = []
    for slot_index, slot in enumerate(capacity.slots):
        per_instructor: dict[str, InstructorSlotStats] = {}
        for instructor in capacity.instructors:
            cell = capacity.cell(slot_index, instructor)
            per_instructor[instructor] = InstructorSlotStats(
                current_count=cell.current,
                max_capacity=cell.maximum,
                utilization_rate=compute_utilization_rate(cell.current, cell.maximum),
                participant_ids=tuple(cell.participant_ids),
            )
        slot_stats.append(SlotStats(slot=slot, instructors=per_instructor))

    return AllocationStats(
        total_participants=total,
        allocated_participants=allocated,
        unallocated_participants=len(unallocated),
        allocation_rate=compute_allocation_rate(allocated, total),
        time_slots=tuple(slot_stats),
        preference_satisfaction=tally_preference_satisfaction(assignments),
    )
