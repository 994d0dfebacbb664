"""Domain-level validation rules for instructor allocation."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Mapping

from backend.domain.models import AllocationResult, ScoringPolicy, TimeSlot


DEFAULT_TIME_SLOTS: tuple[TimeSlot, ...] = (
    TimeSlot(slot_id=1, name="First session", time="15:55-16:45"),
    TimeSlot(slot_id=2, name="Second session", time="16:50-17:30"),
)


class ConfigurationError(ValueError):
    """Raised when an allocation run is configured in a way it cannot honour."""


@dataclass(frozen=True)
class AllocationConfig:
    instructors: tuple[str, ...]
    capacity_per_slot: int
    slots: tuple[TimeSlot, ...] = DEFAULT_TIME_SLOTS
    scoring_policy: ScoringPolicy = ScoringPolicy.RANK_SUM
    capacity_overrides: Mapping[str, int] = field(default_factory=dict)

    def capacity_for(self, instructor: str) -> int:
        return self.capacity_overrides.get(instructor, self.capacity_per_slot)


def validate_allocation_config(config: AllocationConfig) -> None:
    if not config.instructors:
        raise ConfigurationError("instructors must not be empty")
    if any(not instructor or not instructor.strip() for instructor in config.instructors):
        raise ConfigurationError("instructor ids must be non-empty")
    duplicates = sorted(
        instructor for instructor, count in Counter(config.instructors).items() if count > 1
    )
    if duplicates:
        raise ConfigurationError(f"duplicate instructor ids: {', '.join(duplicates)}")
    if config.capacity_per_slot < 1:
        raise ConfigurationError("capacity_per_slot must be >= 1")
    if len(config.slots) < 2:
        raise ConfigurationError("at least two time slots are required")
    if len({slot.slot_id for slot in config.slots}) != len(config.slots):
        raise ConfigurationError("time slot ids must be unique")
    if not isinstance(config.scoring_policy, ScoringPolicy):
        raise ConfigurationError(f"unsupported scoring_policy={config.scoring_policy!r}")

    known = set(config.instructors)
    for instructor, capacity in config.capacity_overrides.items():
        if instructor not in known:
            raise ConfigurationError(
                f"capacity override references unknown instructor='{instructor}'"
            )
        if capacity < 1:
            raise ConfigurationError(
                f"capacity override for instructor='{instructor}' must be >= 1"
            )


def find_allocation_violations(
    result: AllocationResult,
    config: AllocationConfig,
) -> list[str]:
    """Re-check a finished allocation against the configuration.

    Returns human-readable violation messages; an empty list means the result
    honours distinct instructors per participant and every slot capacity.
    """
    violations: list[str] = []
    known = set(config.instructors)
    counts: Counter[tuple[int, str]] = Counter()
    seen_participants: set[str] = set()

    for assignment in result.assignments:
        if assignment.participant_id in seen_participants:
            violations.append(f"participant {assignment.participant_id} assigned more than once")
        seen_participants.add(assignment.participant_id)

        if len(assignment.instructors) != len(config.slots):
            violations.append(
                f"participant {assignment.participant_id} has "
                f"{len(assignment.instructors)} slots, expected {len(config.slots)}"
            )
        if len(set(assignment.instructors)) != len(assignment.instructors):
            violations.append(
                f"participant {assignment.participant_id} has the same instructor in several slots"
            )
        for slot, instructor in zip(config.slots, assignment.instructors):
            if instructor not in known:
                violations.append(
                    f"participant {assignment.participant_id} assigned unknown instructor '{instructor}'"
                )
                continue
            counts[(slot.slot_id, instructor)] += 1

    for (slot_id, instructor), count in sorted(counts.items()):
        capacity = config.capacity_for(instructor)
        if count > capacity:
            violations.append(
                f"slot {slot_id} instructor '{instructor}' over capacity: {count}/{capacity}"
            )
    return violations
