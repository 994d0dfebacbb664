"""
main.py: command-line launcher for allocation runs.

Reads a roster file (JSON or CSV), runs the allocation with configuration
from environment variables plus any flags given, and prints the result as
JSON on stdout:

    python main.py roster.csv --capacity 13 --seed 42

This file does NOT contain allocation logic. See backend/services for the
engine and orchestration.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Optional, Sequence

from backend.controllers.allocation_controller import (
    AllocationRequestError,
    handle_allocate_request,
)
from backend.repository.roster_repository import RosterLoadError, RosterRepository
from backend.services.allocation_service import AllocationService
from backend.utils.logger import configure_logging, get_logger


logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Allocate participants to one instructor per time slot.",
    )
    parser.add_argument("roster", help="Path to a .json or .csv roster file")
    parser.add_argument(
        "--instructors",
        help="Comma-separated instructor ids (defaults to ALLOCATION_INSTRUCTORS)",
    )
    parser.add_argument("--capacity", type=int, help="Maximum participants per instructor per slot")
    parser.add_argument("--policy", choices=["rank_sum", "worst_rank"], help="Candidate scoring policy")
    parser.add_argument("--seed", type=int, help="Seed for fallback shuffles")
    parser.add_argument("--indent", type=int, default=2, help="JSON indentation")
    return parser


def build_request(args: argparse.Namespace, records: list[dict[str, Any]]) -> dict[str, Any]:
    payload: dict[str, Any] = {"participants": records}
    if args.instructors:
        payload["instructors"] = [
            item.strip() for item in args.instructors.split(",") if item.strip()
        ]
    if args.capacity is not None:
        payload["capacity_per_slot"] = args.capacity
    if args.policy:
        payload["scoring_policy"] = args.policy
    if args.seed is not None:
        payload["seed"] = args.seed
    return payload


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(stream=sys.stderr, force=True)
    try:
        records = RosterRepository(args.roster).load_records()
        response = handle_allocate_request(build_request(args, records), AllocationService())
    except (RosterLoadError, AllocationRequestError) as exc:
        logger.error("Allocation run failed | error=%s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 2

    print(json.dumps(response.model_dump(), ensure_ascii=False, indent=args.indent))
    return 0


if __name__ == "__main__":
    sys.exit(main())
