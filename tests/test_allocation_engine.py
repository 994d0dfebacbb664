from __future__ import annotations

from collections import Counter

import numpy as np
import pytest

from backend.domain.constraints import ConfigurationError
from backend.domain.models import (
    AllocationMethod,
    Participant,
    ScoringPolicy,
    TimeSlot,
    UnallocatedReason,
)
from backend.services.allocation_engine import allocate, generate_preference_candidates


INSTRUCTORS = ["A", "B", "C", "D"]
FULL_PREFERENCES = ("A", "B", "C", "D")


def _participant(participant_id: str, preferences=FULL_PREFERENCES, name: str | None = None) -> Participant:
    return Participant(
        participant_id=participant_id,
        name=name or participant_id.upper(),
        preferences=tuple(preferences),
    )


def _assert_invariants(result, capacity_per_slot: int) -> None:
    for assignment in result.assignments:
        assert len(set(assignment.instructors)) == len(assignment.instructors)

    for slot_stats in result.stats.time_slots:
        for item in slot_stats.instructors.values():
            assert item.current_count <= item.max_capacity == capacity_per_slot
            assert item.current_count == len(item.participant_ids)

    stats = result.stats
    assert stats.allocated_participants + stats.unallocated_participants == stats.total_participants

    allocated_ids = {assignment.participant_id for assignment in result.assignments}
    for slot_stats in result.stats.time_slots:
        seen = Counter(
            participant_id
            for item in slot_stats.instructors.values()
            for participant_id in item.participant_ids
        )
        assert set(seen) == allocated_ids
        assert all(count == 1 for count in seen.values())


# --- Preference-driven scenarios (capacity 1) ---

def test_first_participant_gets_top_two_preferences() -> None:
    result = allocate([_participant("p1")], INSTRUCTORS, 1, rng=np.random.default_rng(0))

    assignment = result.assignments[0]
    assert assignment.instructors == ("A", "B")
    assert assignment.preference_ranks == (0, 1)
    assert assignment.method is AllocationMethod.PREFERENCE
    slot_1, slot_2 = result.stats.time_slots
    assert slot_1.instructors["A"].current_count == 1
    assert slot_2.instructors["B"].current_count == 1


def test_second_participant_swaps_when_first_pair_is_full() -> None:
    result = allocate(
        [_participant("p1"), _participant("p2")],
        INSTRUCTORS,
        1,
        rng=np.random.default_rng(0),
    )
    assert result.assignments[1].instructors == ("B", "A")
    assert result.assignments[1].preference_ranks == (1, 0)


@pytest.mark.parametrize("policy", [ScoringPolicy.RANK_SUM, ScoringPolicy.WORST_RANK])
def test_third_participant_falls_through_to_open_pair(policy: ScoringPolicy) -> None:
    result = allocate(
        [_participant("p1"), _participant("p2"), _participant("p3")],
        INSTRUCTORS,
        1,
        rng=np.random.default_rng(0),
        scoring_policy=policy,
    )
    assert result.assignments[2].instructors == ("C", "D")
    assert result.assignments[2].method is AllocationMethod.PREFERENCE


def test_participant_beyond_total_capacity_is_unallocated() -> None:
    participants = [_participant(f"p{index}") for index in range(1, 6)]
    result = allocate(participants, INSTRUCTORS, 1, rng=np.random.default_rng(0))

    assert [assignment.instructors for assignment in result.assignments] == [
        ("A", "B"),
        ("B", "A"),
        ("C", "D"),
        ("D", "C"),
    ]
    assert len(result.unallocated) == 1
    assert result.unallocated[0].participant.participant_id == "p5"
    assert result.unallocated[0].reason is UnallocatedReason.CAPACITY_EXHAUSTED
    _assert_invariants(result, 1)


def test_empty_preferences_use_random_fallback() -> None:
    result = allocate([_participant("p1", preferences=())], INSTRUCTORS, 1, rng=np.random.default_rng(3))

    assignment = result.assignments[0]
    assert assignment.method is AllocationMethod.NO_PREFERENCES
    assert assignment.preference_ranks is None
    assert assignment.slot_1_instructor != assignment.slot_2_instructor
    assert result.stats.preference_satisfaction.no_preference_satisfied == 1


def test_unknown_instructor_ids_are_never_assigned() -> None:
    result = allocate(
        [_participant("p1", preferences=("X", "Y", "Z", "W"))],
        INSTRUCTORS,
        1,
        rng=np.random.default_rng(3),
    )
    assignment = result.assignments[0]
    assert assignment.method is AllocationMethod.NO_PREFERENCES
    assert set(assignment.instructors) <= set(INSTRUCTORS)


def test_unknown_ids_keep_original_ranks_for_remaining_preferences() -> None:
    result = allocate(
        [_participant("p1", preferences=("X", "C", "A", "B"))],
        INSTRUCTORS,
        1,
        rng=np.random.default_rng(0),
    )
    assignment = result.assignments[0]
    assert assignment.instructors == ("C", "A")
    assert assignment.preference_ranks == (1, 2)
    assert result.stats.preference_satisfaction.second_choice == 1


def test_single_preference_goes_straight_to_fallback() -> None:
    result = allocate([_participant("p1", preferences=("B",))], INSTRUCTORS, 1, rng=np.random.default_rng(5))
    assert result.assignments[0].method is AllocationMethod.NO_PREFERENCES


def test_exhausted_preferences_fall_back_to_open_instructors() -> None:
    participants = [_participant(f"p{index}", preferences=("A", "B")) for index in range(1, 4)]
    result = allocate(participants, INSTRUCTORS, 1, rng=np.random.default_rng(11))

    fallback = result.assignments[2]
    assert fallback.method is AllocationMethod.FALLBACK
    assert fallback.preference_ranks is None
    assert set(fallback.instructors) == {"C", "D"}


def test_fallback_cannot_reuse_the_only_open_instructor() -> None:
    participants = [_participant(f"p{index}", preferences=("A", "B")) for index in range(1, 4)]
    result = allocate(participants, ["A", "B", "C"], 1, rng=np.random.default_rng(11))

    assert len(result.assignments) == 2
    assert result.unallocated[0].participant.participant_id == "p3"
    assert result.unallocated[0].reason is UnallocatedReason.CAPACITY_EXHAUSTED
    slot_1, slot_2 = result.stats.time_slots
    assert slot_1.instructors["C"].current_count == 0
    assert slot_2.instructors["C"].current_count == 0


# --- Boundaries ---

def test_zero_participants() -> None:
    result = allocate([], INSTRUCTORS, 3)

    assert result.assignments == ()
    assert result.unallocated == ()
    assert result.stats.total_participants == 0
    assert result.stats.allocation_rate == 0.0


def test_single_instructor_allocates_nobody() -> None:
    participants = [_participant("p1", preferences=("A",)), _participant("p2", preferences=())]
    result = allocate(participants, ["A"], 10, rng=np.random.default_rng(0))

    assert result.assignments == ()
    assert [item.reason for item in result.unallocated] == [UnallocatedReason.CAPACITY_EXHAUSTED] * 2


def test_capacity_filled_exactly_then_next_participant_fails() -> None:
    participants = [_participant(f"p{index}", preferences=("A", "B")) for index in range(1, 6)]
    result = allocate(participants, ["A", "B"], 2, rng=np.random.default_rng(0))

    assert [assignment.instructors for assignment in result.assignments] == [
        ("A", "B"),
        ("A", "B"),
        ("B", "A"),
        ("B", "A"),
    ]
    assert [item.participant.participant_id for item in result.unallocated] == ["p5"]
    _assert_invariants(result, 2)


@pytest.mark.parametrize(
    ("instructors", "capacity"),
    [([], 1), (["A", "B"], 0), (["A", "B"], -1)],
)
def test_invalid_configuration_raises(instructors, capacity) -> None:
    with pytest.raises(ConfigurationError):
        allocate([_participant("p1")], instructors, capacity)


def test_capacity_override_limits_one_instructor() -> None:
    participants = [_participant(f"p{index}") for index in range(1, 4)]
    result = allocate(
        participants,
        INSTRUCTORS,
        3,
        rng=np.random.default_rng(0),
        capacity_overrides={"A": 1},
    )
    assert result.assignments[0].instructors == ("A", "B")
    assert result.assignments[1].instructors == ("B", "A")
    assert result.assignments[2].instructors == ("B", "C")
    assert result.stats.time_slots[0].instructors["A"].max_capacity == 1
    assert result.stats.time_slots[1].instructors["A"].max_capacity == 1


# --- Determinism and invariants ---

def _mixed_roster(count: int, seed: int) -> list[Participant]:
    rng = np.random.default_rng(seed)
    roster: list[Participant] = []
    for index in range(count):
        if index % 5 == 0:
            preferences: tuple[str, ...] = ()
        else:
            preferences = tuple(INSTRUCTORS[int(item)] for item in rng.permutation(len(INSTRUCTORS)))
        roster.append(_participant(f"p{index:03d}", preferences=preferences))
    return roster


def test_same_seed_gives_identical_results() -> None:
    roster = _mixed_roster(30, seed=1)
    first = allocate(roster, INSTRUCTORS, 5, rng=np.random.default_rng(99))
    second = allocate(roster, INSTRUCTORS, 5, rng=np.random.default_rng(99))
    assert first == second


def test_preference_assignments_do_not_depend_on_seed() -> None:
    roster = [_participant(f"p{index}") for index in range(6)]
    first = allocate(roster, INSTRUCTORS, 3, rng=np.random.default_rng(1))
    second = allocate(roster, INSTRUCTORS, 3, rng=np.random.default_rng(2))
    assert all(item.method is AllocationMethod.PREFERENCE for item in first.assignments)
    assert first.assignments == second.assignments


@pytest.mark.parametrize("seed", [0, 7, 21])
def test_invariants_hold_under_pressure(seed: int) -> None:
    roster = _mixed_roster(25, seed=seed)
    result = allocate(roster, INSTRUCTORS, 5, rng=np.random.default_rng(seed))

    assert result.stats.total_participants == 25
    _assert_invariants(result, 5)


def test_input_order_is_processing_order() -> None:
    roster = [_participant("late", name="Zed"), _participant("early", name="Amy")]
    result = allocate(roster, INSTRUCTORS, 1, rng=np.random.default_rng(0))
    assert result.assignments[0].participant_id == "late"
    assert result.assignments[0].instructors == ("A", "B")


# --- Candidate ordering ---

def test_rank_sum_orders_by_total_rank() -> None:
    candidates = generate_preference_candidates(FULL_PREFERENCES, INSTRUCTORS, 2, ScoringPolicy.RANK_SUM)
    ranks = [candidate.ranks for candidate in candidates]
    assert ranks[:4] == [(0, 1), (1, 0), (0, 2), (2, 0)]
    assert ranks.index((2, 0)) < ranks.index((1, 2))
    assert len(candidates) == 12


def test_worst_rank_orders_by_maximum_rank() -> None:
    candidates = generate_preference_candidates(FULL_PREFERENCES, INSTRUCTORS, 2, ScoringPolicy.WORST_RANK)
    ranks = [candidate.ranks for candidate in candidates]
    assert ranks[:6] == [(0, 1), (1, 0), (0, 2), (1, 2), (2, 0), (2, 1)]
    assert ranks.index((1, 2)) < ranks.index((2, 0))


def test_duplicate_preferences_are_not_paired_with_themselves() -> None:
    candidates = generate_preference_candidates(("A", "A", "B"), INSTRUCTORS, 2)
    assert all(len(set(candidate.instructors)) == 2 for candidate in candidates)
    assert candidates[0].instructors == ("A", "B")


# --- More than two slots ---

def test_three_slots_need_three_distinct_instructors() -> None:
    slots = (
        TimeSlot(slot_id=1, name="Morning", time="09:00-10:00"),
        TimeSlot(slot_id=2, name="Midday", time="11:00-12:00"),
        TimeSlot(slot_id=3, name="Afternoon", time="14:00-15:00"),
    )
    roster = [_participant("p1", preferences=("A", "B", "C")), _participant("p2", preferences=("A", "B", "C"))]
    result = allocate(roster, ["A", "B", "C"], 1, rng=np.random.default_rng(0), slots=slots)

    assert result.assignments[0].instructors == ("A", "B", "C")
    assert result.assignments[1].instructors == ("B", "C", "A")
    assert len(result.stats.time_slots) == 3


# --- Result projections ---

def test_roster_and_lookup_projections() -> None:
    roster = [_participant("p1"), _participant("p2"), _participant("p3", preferences=())]
    result = allocate(roster, INSTRUCTORS, 1, rng=np.random.default_rng(0))

    assert result.assignment_for("p2").instructors == ("B", "A")
    assert result.assignment_for("nobody") is None
    assert result.roster_for("A")[1] == ["p1"]
    assert result.roster_for("A")[2] == ["p2"]


def test_to_dict_lists_each_slot_with_its_time() -> None:
    result = allocate([_participant("p1")], INSTRUCTORS, 1, rng=np.random.default_rng(0))

    payload = result.to_dict()
    entry = payload["allocation"][0]
    assert entry["time_slot_1"] == {"time": "15:55-16:45", "instructor": "A"}
    assert entry["time_slot_2"] == {"time": "16:50-17:30", "instructor": "B"}
    assert entry["method"] == "preference"
    assert payload["unallocated"] == []
    assert payload["timestamp"] == result.generated_at
