"""Preference-ranked, capacity-bounded instructor allocation across time slots.

Participants are placed one at a time in the order the caller supplies. For
each participant every ordered tuple of distinct preference positions is
scored, the tuples are tried best-first, and the first one with room in every
slot is committed. Participants whose preferences cannot be honoured fall back
to a shuffled search over all instructors; if that also fails they are
reported as unallocated. Capacity is never released within a run.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from itertools import permutations, product
from typing import Mapping, Optional, Sequence

import numpy as np

from backend.domain.capacity import CapacityTable
from backend.domain.constraints import (
    DEFAULT_TIME_SLOTS,
    AllocationConfig,
    validate_allocation_config,
)
from backend.domain.models import (
    AllocationMethod,
    AllocationResult,
    Assignment,
    Participant,
    ScoringPolicy,
    TimeSlot,
    UnallocatedParticipant,
    UnallocatedReason,
)
from backend.services.statistics_service import build_allocation_stats
from backend.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class PreferenceCandidate:
    instructors: tuple[str, ...]
    ranks: tuple[int, ...]
    score: int


def score_positions(positions: Sequence[int], policy: ScoringPolicy) -> int:
    if policy is ScoringPolicy.WORST_RANK:
        return max(positions)
    return sum(positions)


def generate_preference_candidates(
    preferences: Sequence[str],
    instructors: Sequence[str],
    slot_count: int,
    policy: ScoringPolicy = ScoringPolicy.RANK_SUM,
) -> list[PreferenceCandidate]:
    """Return candidate instructor tuples ordered best-first.

    Positions naming unknown instructors are dropped but the surviving
    positions keep their original rank. Ties keep enumeration order.
    """
    known = set(instructors)
    usable_positions = [
        position for position, instructor in enumerate(preferences) if instructor in known
    ]
    candidates: list[PreferenceCandidate] = []
    for positions in permutations(usable_positions, slot_count):
        chosen = tuple(preferences[position] for position in positions)
        if len(set(chosen)) != len(chosen):
            continue
        candidates.append(
            PreferenceCandidate(
                instructors=chosen,
                ranks=tuple(positions),
                score=score_positions(positions, policy),
            )
        )
    candidates.sort(key=lambda candidate: candidate.score)
    return candidates


def _shuffled(items: Sequence[str], rng: np.random.Generator) -> list[str]:
    return [items[int(index)] for index in rng.permutation(len(items))]


def _allocate_from_candidates(
    participant: Participant,
    candidates: Sequence[PreferenceCandidate],
    capacity: CapacityTable,
) -> Optional[Assignment]:
    for candidate in candidates:
        if not capacity.can_commit(candidate.instructors):
            continue
        capacity.commit(participant.participant_id, candidate.instructors)
        return Assignment(
            participant_id=participant.participant_id,
            name=participant.name,
            instructors=candidate.instructors,
            preference_ranks=candidate.ranks,
            method=AllocationMethod.PREFERENCE,
        )
    return None


def _allocate_randomly(
    participant: Participant,
    capacity: CapacityTable,
    rng: np.random.Generator,
    method: AllocationMethod,
) -> Optional[Assignment]:
    per_slot_order = [
        _shuffled(capacity.instructors, rng) for _ in range(len(capacity.slots))
    ]
    for combination in product(*per_slot_order):
        if not capacity.can_commit(combination):
            continue
        capacity.commit(participant.participant_id, combination)
        logger.debug(
            "Fallback allocation | participant_id=%s | instructors=%s | method=%s",
            participant.participant_id,
            combination,
            method.value,
        )
        return Assignment(
            participant_id=participant.participant_id,
            name=participant.name,
            instructors=tuple(combination),
            preference_ranks=None,
            method=method,
        )
    return None


def allocate_participant(
    participant: Participant,
    capacity: CapacityTable,
    rng: np.random.Generator,
    policy: ScoringPolicy,
) -> Optional[Assignment]:
    """Place one participant, or return None when no slot tuple has room."""
    candidates = generate_preference_candidates(
        participant.preferences,
        capacity.instructors,
        len(capacity.slots),
        policy,
    )
    if candidates:
        assignment = _allocate_from_candidates(participant, candidates, capacity)
        if assignment is not None:
            return assignment
        return _allocate_randomly(participant, capacity, rng, AllocationMethod.FALLBACK)
    return _allocate_randomly(participant, capacity, rng, AllocationMethod.NO_PREFERENCES)


def run_allocation(
    participants: Sequence[Participant],
    config: AllocationConfig,
    rng: Optional[np.random.Generator] = None,
) -> AllocationResult:
    validate_allocation_config(config)
    generator = rng if rng is not None else np.random.default_rng()
    capacity = CapacityTable(config)

    assignments: list[Assignment] = []
    unallocated: list[UnallocatedParticipant] = []
    logger.info(
        "Allocation started | participants=%s | instructors=%s | capacity_per_slot=%s | policy=%s",
        len(participants),
        len(config.instructors),
        config.capacity_per_slot,
        config.scoring_policy.value,
    )

    for participant in participants:
        assignment = allocate_participant(
            participant,
            capacity,
            generator,
            config.scoring_policy,
        )
        if assignment is None:
            logger.warning(
                "Participant left unallocated | participant_id=%s | reason=%s",
                participant.participant_id,
                UnallocatedReason.CAPACITY_EXHAUSTED.value,
            )
            unallocated.append(
                UnallocatedParticipant(
                    participant=participant,
                    reason=UnallocatedReason.CAPACITY_EXHAUSTED,
                )
            )
            continue
        assignments.append(assignment)

    stats = build_allocation_stats(
        capacity=capacity,
        assignments=assignments,
        unallocated=unallocated,
    )
    logger.info(
        "Allocation completed | allocated=%s | unallocated=%s | allocation_rate=%.1f",
        stats.allocated_participants,
        stats.unallocated_participants,
        stats.allocation_rate,
    )
    return AllocationResult(
        assignments=tuple(assignments),
        stats=stats,
        unallocated=tuple(unallocated),
        slots=tuple(config.slots),
        generated_at=datetime.now(timezone.utc).isoformat(),
    )


def allocate(
    participants: Sequence[Participant],
    instructors: Sequence[str],
    capacity_per_slot: int,
    *,
    rng: Optional[np.random.Generator] = None,
    scoring_policy: ScoringPolicy = ScoringPolicy.RANK_SUM,
    slots: Sequence[TimeSlot] = DEFAULT_TIME_SLOTS,
    capacity_overrides: Optional[Mapping[str, int]] = None,
) -> AllocationResult:
    """Allocate every participant to one instructor per slot.

    Raises ``ConfigurationError`` before any commit when the configuration is
    unusable; every per-participant outcome is returned as data.
    """
    config = AllocationConfig(
        instructors=tuple(instructors),
        capacity_per_slot=capacity_per_slot,
        slots=tuple(slots),
        scoring_policy=scoring_policy,
        capacity_overrides=dict(capacity_overrides or {}),
    )
    return run_allocation(participants, config, rng)
