"""Allocation run orchestration: settings, roster ordering, engine, checks."""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

import numpy as np

from backend.domain.constraints import (
    AllocationConfig,
    ConfigurationError,
    find_allocation_violations,
    validate_allocation_config,
)
from backend.domain.models import AllocationResult, Participant, ScoringPolicy, TimeSlot
from backend.services.allocation_engine import run_allocation
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class AllocationValidationError(Exception):
    """Raised when run inputs or a produced allocation are invalid."""


def order_roster(participants: Sequence[Participant]) -> list[Participant]:
    """Submitted participants first, then alphabetical by name."""
    return sorted(
        participants,
        key=lambda participant: (not participant.is_submitted, participant.name),
    )


def parse_scoring_policy(value: str | ScoringPolicy) -> ScoringPolicy:
    if isinstance(value, ScoringPolicy):
        return value
    try:
        return ScoringPolicy(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(policy.value for policy in ScoringPolicy)
        raise ConfigurationError(
            f"scoring_policy must be one of: {allowed}"
        ) from exc


def _check_unique_participants(participants: Sequence[Participant]) -> None:
    seen: set[str] = set()
    for participant in participants:
        if participant.participant_id in seen:
            raise AllocationValidationError(
                f"duplicate participant_id='{participant.participant_id}' in roster"
            )
        seen.add(participant.participant_id)


class AllocationService:
    """Runs the allocation engine with configuration resolved from settings."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._rng = rng

    def build_config(
        self,
        *,
        instructors: Optional[Sequence[str]] = None,
        capacity_per_slot: Optional[int] = None,
        scoring_policy: Optional[str | ScoringPolicy] = None,
        capacity_overrides: Optional[Mapping[str, int]] = None,
    ) -> AllocationConfig:
        config = AllocationConfig(
            instructors=tuple(
                instructors if instructors is not None else self._settings.allocation_instructors
            ),
            capacity_per_slot=(
                capacity_per_slot
                if capacity_per_slot is not None
                else self._settings.allocation_capacity_per_slot
            ),
            slots=tuple(
                TimeSlot(slot_id=slot_id, name=name, time=time)
                for slot_id, name, time in self._settings.allocation_time_slots
            ),
            scoring_policy=parse_scoring_policy(
                scoring_policy
                if scoring_policy is not None
                else self._settings.allocation_scoring_policy
            ),
            capacity_overrides=dict(capacity_overrides or {}),
        )
        validate_allocation_config(config)
        return config

    def _resolve_rng(self, seed: Optional[int]) -> np.random.Generator:
        if seed is not None:
            return np.random.default_rng(seed)
        if self._rng is not None:
            return self._rng
        return np.random.default_rng(self._settings.allocation_random_seed)

    def generate_allocation(
        self,
        participants: Sequence[Participant],
        *,
        instructors: Optional[Sequence[str]] = None,
        capacity_per_slot: Optional[int] = None,
        scoring_policy: Optional[str | ScoringPolicy] = None,
        capacity_overrides: Optional[Mapping[str, int]] = None,
        seed: Optional[int] = None,
    ) -> AllocationResult:
        config = self.build_config(
            instructors=instructors,
            capacity_per_slot=capacity_per_slot,
            scoring_policy=scoring_policy,
            capacity_overrides=capacity_overrides,
        )
        _check_unique_participants(participants)

        ordered = (
            order_roster(participants)
            if self._settings.allocation_submitted_first
            else list(participants)
        )
        result = run_allocation(ordered, config, self._resolve_rng(seed))

        violations = find_allocation_violations(result, config)
        if violations:
            logger.error("Allocation failed validation | violations=%s", violations)
            raise AllocationValidationError("; ".join(violations))

        logger.info(
            "Allocation generated | total=%s | allocated=%s | unallocated=%s | satisfaction=%s",
            result.stats.total_participants,
            result.stats.allocated_participants,
            result.stats.unallocated_participants,
            result.stats.preference_satisfaction.to_dict(),
        )
        return result
