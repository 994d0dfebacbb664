"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional


DEFAULT_INSTRUCTORS: tuple[str, ...] = ("Fei", "Douni", "Wu", "Chao")
DEFAULT_TIME_SLOTS: tuple[tuple[int, str, str], ...] = (
    (1, "First session", "15:55-16:45"),
    (2, "Second session", "16:50-17:30"),
)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return int(raw)


def _env_instructors() -> tuple[str, ...]:
    raw = os.getenv("ALLOCATION_INSTRUCTORS")
    if not raw:
        return DEFAULT_INSTRUCTORS
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    app_name: str = "Session Allocation Engine"
    app_version: str = "1.0.0"
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    allocation_instructors: tuple[str, ...] = field(default_factory=_env_instructors)
    allocation_capacity_per_slot: int = field(
        default_factory=lambda: int(os.getenv("ALLOCATION_CAPACITY_PER_SLOT", "13"))
    )
    allocation_scoring_policy: str = field(
        default_factory=lambda: os.getenv("ALLOCATION_SCORING_POLICY", "rank_sum")
    )
    allocation_random_seed: Optional[int] = field(
        default_factory=lambda: _env_optional_int("ALLOCATION_RANDOM_SEED")
    )
    allocation_submitted_first: bool = field(
        default_factory=lambda: _env_bool("ALLOCATION_SUBMITTED_FIRST", True)
    )
    allocation_time_slots: tuple[tuple[int, str, str], ...] = DEFAULT_TIME_SLOTS


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return process-wide settings resolved from the environment."""
    return Settings()
