"""Roster file access for command-line allocation runs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pandas as pd

from backend.utils.logger import get_logger


logger = get_logger(__name__)

REQUIRED_COLUMNS = ("participant_id",)
_TRUE_VALUES = {"1", "true", "yes", "y"}


class RosterLoadError(Exception):
    """Raised when a roster file is missing or malformed."""


def _split_preferences(raw: str) -> Any:
    text = raw.strip()
    if text.startswith("["):
        return text
    return [item.strip() for item in text.split(";") if item.strip()]


class RosterRepository:
    """Reads participant records from JSON or CSV files."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load_records(self) -> list[dict[str, Any]]:
        if not self._path.is_file():
            raise RosterLoadError(f"roster file not found: {self._path}")
        suffix = self._path.suffix.lower()
        if suffix == ".json":
            records = self._load_json()
        elif suffix == ".csv":
            records = self._load_csv()
        else:
            raise RosterLoadError(f"unsupported roster format '{suffix}', expected .json or .csv")
        logger.info("Roster loaded | path=%s | participants=%s", self._path, len(records))
        return records

    def _load_json(self) -> list[dict[str, Any]]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise RosterLoadError(f"invalid JSON roster: {exc}") from exc
        if isinstance(data, dict):
            data = data.get("participants")
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise RosterLoadError("JSON roster must be a list of participant objects")
        return data

    def _load_csv(self) -> list[dict[str, Any]]:
        try:
            frame = pd.read_csv(self._path, dtype=str, keep_default_na=False)
        except (pd.errors.EmptyDataError, pd.errors.ParserError) as exc:
            raise RosterLoadError(f"invalid CSV roster: {exc}") from exc

        missing = [column for column in REQUIRED_COLUMNS if column not in frame.columns]
        if missing:
            raise RosterLoadError(f"CSV roster missing columns: {', '.join(missing)}")

        if "preferences" in frame.columns:
            frame["preferences"] = frame["preferences"].map(_split_preferences)
        if "is_submitted" in frame.columns:
            frame["is_submitted"] = (
                frame["is_submitted"].str.strip().str.lower().isin(_TRUE_VALUES)
            )

        records = frame.to_dict(orient="records")
        for record in records:
            if "is_submitted" in record:
                record["is_submitted"] = bool(record["is_submitted"])
        return records
