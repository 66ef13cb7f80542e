"""Contact records and the ingestion boundary.

Everything numeric is coerced here, once, so the filter and aggregation
code can assume well-typed integers.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

COUNT_FIELDS = (
    "attempts",
    "contacts",
    "not_home",
    "refusal",
    "bad_data",
    "support",
    "oppose",
    "undecided",
)
TEXT_FIELDS = ("first_name", "last_name", "team", "tactic", "date")


def coerce_count(value: Any) -> int:
    """Parse a count or fall back to 0.

    Handles ints, floats, numeric strings (``"3"``, ``"3.0"``, ``"1,200"``)
    and numpy scalars. ``None``, booleans, NaN, infinities, junk strings and
    negative values all become 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return 0
        return max(int(value), 0)
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return 0
        try:
            return coerce_count(float(text))
        except ValueError:
            return 0
    try:
        return coerce_count(float(value))
    except (TypeError, ValueError):
        return 0


def coerce_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return " ".join(str(value).split())


class ContactRecord(BaseModel):
    """One logged contact attempt. Read-only for the query pipeline."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: Optional[int] = None
    first_name: str = ""
    last_name: str = ""
    team: str = ""
    tactic: str = ""
    date: str = ""
    attempts: int = 0
    contacts: int = 0
    not_home: int = 0
    refusal: int = 0
    bad_data: int = 0
    support: int = 0
    oppose: int = 0
    undecided: int = 0

    @field_validator(*COUNT_FIELDS, mode="before")
    @classmethod
    def _coerce_counts(cls, value: Any) -> int:
        return coerce_count(value)

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return coerce_text(value)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Optional[int]:
        text = coerce_text(value)
        if not text:
            return None
        try:
            return int(float(text))
        except ValueError:
            return None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def issues(self) -> int:
        return self.not_home + self.refusal + self.bad_data


def ensure_records(items: Optional[Iterable[Any]]) -> list[ContactRecord]:
    """Normalise ``None``, records or plain mappings into a list of records."""
    if items is None:
        return []
    records: list[ContactRecord] = []
    for item in items:
        if isinstance(item, ContactRecord):
            records.append(item)
        elif isinstance(item, Mapping):
            records.append(ContactRecord.model_validate(_normalize_keys(item)))
        else:
            raise TypeError(f"Unsupported record type: {type(item).__name__}")
    return records


def _normalize_key(key: Any) -> str:
    text = re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", str(key).strip())
    return re.sub(r"[\s\-]+", "_", text).lower()


def _normalize_keys(item: Mapping[str, Any]) -> dict[str, Any]:
    return {_normalize_key(k): v for k, v in item.items()}


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------


def load_records(path: Path | str) -> list[ContactRecord]:
    """Load contact records from a file.

    Supported formats:
    - .json -> list of objects, or ``{"records": [...]}``
    - .jsonl -> one object per line
    - .csv -> header row + one record per line (via pandas)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Records file not found: {path}")
    suffix = path.suffix.lower()

    if suffix == ".json":
        return _load_json(path)
    elif suffix == ".jsonl":
        return _load_jsonl(path)
    elif suffix == ".csv":
        return _load_csv(path)
    raise ValueError(f"Unsupported records format: {suffix or path.name}")


def _load_json(path: Path) -> list[ContactRecord]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, Mapping):
        data = data.get("records", [])
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of records in {path.name}")
    return ensure_records(data)


def _load_jsonl(path: Path) -> list[ContactRecord]:
    rows = [
        json.loads(line)
        for line in path.read_text(encoding="utf-8").splitlines()
        if line.strip()
    ]
    return ensure_records(rows)


def _load_csv(path: Path) -> list[ContactRecord]:
    import pandas as pd

    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    return ensure_records(df.to_dict(orient="records"))
