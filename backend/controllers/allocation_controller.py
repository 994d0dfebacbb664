"""Input/output boundary for allocation runs.

Raw roster payloads are validated once here into typed ``Participant`` values;
nothing downstream re-parses preferences.
"""

from __future__ import annotations

import json
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from backend.domain.constraints import ConfigurationError
from backend.domain.models import AllocationResult, Participant
from backend.services.allocation_service import AllocationService, AllocationValidationError
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class AllocationRequestError(Exception):
    """Raised when an allocation request cannot be served as given."""


class ParticipantPayload(BaseModel):
    participant_id: str = Field(min_length=1)
    name: str = ""
    preferences: list[str] = Field(default_factory=list)
    is_submitted: bool = False

    @field_validator("participant_id", "name", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("preferences", mode="before")
    @classmethod
    def parse_preferences(cls, value: Any) -> list[str]:
        # Stored rosters carry preferences as a JSON string; unreadable ones
        # degrade to an empty list so the participant still gets a fallback slot.
        if value is None:
            return []
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return []
            try:
                value = json.loads(text)
            except json.JSONDecodeError:
                logger.info("Unparseable preferences treated as empty | raw=%s", text)
                return []
        if not isinstance(value, (list, tuple)):
            return []
        return [str(item).strip() for item in value if str(item).strip()]

    def to_participant(self) -> Participant:
        return Participant(
            participant_id=self.participant_id,
            name=self.name or self.participant_id,
            preferences=tuple(self.preferences),
            is_submitted=self.is_submitted,
        )


class AllocateRequest(BaseModel):
    participants: list[ParticipantPayload]
    instructors: Optional[list[str]] = None
    capacity_per_slot: Optional[int] = Field(default=None, ge=1)
    scoring_policy: Optional[Literal["rank_sum", "worst_rank"]] = None
    capacity_overrides: Optional[dict[str, int]] = None
    seed: Optional[int] = Field(default=None, ge=0)

    @field_validator("capacity_overrides")
    @classmethod
    def validate_capacity_overrides(
        cls,
        value: Optional[dict[str, int]],
    ) -> Optional[dict[str, int]]:
        if value is None:
            return None
        for instructor, capacity in value.items():
            if not instructor.strip():
                raise ValueError("capacity_overrides instructor key must be non-empty")
            if capacity < 1:
                raise ValueError("capacity_overrides capacity must be >= 1")
        return value


class SlotAssignmentResponse(BaseModel):
    slot_id: int
    time: str
    instructor: str


class AssignmentResponse(BaseModel):
    participant_id: str
    name: str
    method: str
    preference_ranks: Optional[list[int]] = None
    slots: list[SlotAssignmentResponse]


class UnallocatedResponse(BaseModel):
    participant_id: str
    name: str
    reason: str


class AllocateResponse(BaseModel):
    allocation: list[AssignmentResponse]
    stats: dict[str, Any]
    unallocated: list[UnallocatedResponse]
    timestamp: str


def build_response(result: AllocationResult) -> AllocateResponse:
    return AllocateResponse(
        allocation=[
            AssignmentResponse(
                participant_id=assignment.participant_id,
                name=assignment.name,
                method=assignment.method.value,
                preference_ranks=(
                    list(assignment.preference_ranks)
                    if assignment.preference_ranks is not None
                    else None
                ),
                slots=[
                    SlotAssignmentResponse(
                        slot_id=slot.slot_id,
                        time=slot.time,
                        instructor=instructor,
                    )
                    for slot, instructor in zip(result.slots, assignment.instructors)
                ],
            )
            for assignment in result.assignments
        ],
        stats=result.stats.to_dict(),
        unallocated=[
            UnallocatedResponse(
                participant_id=item.participant.participant_id,
                name=item.participant.name,
                reason=item.reason.value,
            )
            for item in result.unallocated
        ],
        timestamp=result.generated_at,
    )


def handle_allocate_request(
    payload: Mapping[str, Any],
    service: AllocationService,
) -> AllocateResponse:
    """Validate a raw request, run the allocation, and shape the response."""
    try:
        request = AllocateRequest.model_validate(payload)
    except ValidationError as exc:
        raise AllocationRequestError(str(exc)) from exc

    try:
        result = service.generate_allocation(
            [item.to_participant() for item in request.participants],
            instructors=request.instructors,
            capacity_per_slot=request.capacity_per_slot,
            scoring_policy=request.scoring_policy,
            capacity_overrides=request.capacity_overrides,
            seed=request.seed,
        )
    except (ConfigurationError, AllocationValidationError) as exc:
        raise AllocationRequestError(str(exc)) from exc
    return build_response(result)
