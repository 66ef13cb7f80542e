"""Pydantic models shared by the query pipeline."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

QueryType = Literal["simple", "comparison", "trend", "complex"]

ALL = "All"

# Order matters: it is the order used when counting and narrating filters.
FILTER_FIELDS = ("date", "end_date", "tactic", "person", "team", "result_type")


def is_set(value: Optional[str]) -> bool:
    """A filter value is active when set and not the ``All`` wildcard."""
    return value is not None and value != ALL


class QueryParams(BaseModel):
    """Partial structured request produced by extraction or built by a caller.

    Accepts both snake_case names and the camelCase aliases used by the
    dashboard (``firstName``, ``endDate``, ``resultType``, ``searchQuery``).
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tactic: Optional[str] = None
    person: Optional[str] = None
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    team: Optional[str] = None
    date: Optional[str] = None
    end_date: Optional[str] = Field(default=None, alias="endDate")
    result_type: Optional[str] = Field(default=None, alias="resultType")
    search_query: Optional[str] = Field(default=None, alias="searchQuery")

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if value is None:
            return None
        text = " ".join(str(value).split())
        return text or None

    @property
    def person_filter_active(self) -> bool:
        if is_set(self.person):
            return True
        return bool(self.first_name and self.last_name)

    @property
    def has_date_range(self) -> bool:
        return is_set(self.date) and is_set(self.end_date)

    @property
    def person_label(self) -> Optional[str]:
        if is_set(self.person):
            return self.person
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return None

    @property
    def date_label(self) -> Optional[str]:
        if self.has_date_range:
            return f"{self.date} to {self.end_date}"
        if is_set(self.date):
            return self.date
        return None

    def populated_fields(self) -> list[str]:
        """Names of the populated filter/metric fields (search text excluded)."""
        return [name for name in FILTER_FIELDS if getattr(self, name) is not None]

    def active_filters(self) -> dict[str, str]:
        """Active filters in narration order: person, tactic, team, date."""
        filters: dict[str, str] = {}
        if self.person_label:
            filters["person"] = self.person_label
        if is_set(self.tactic):
            filters["tactic"] = self.tactic  # type: ignore[assignment]
        if is_set(self.team):
            filters["team"] = self.team  # type: ignore[assignment]
        if self.date_label:
            filters["date"] = self.date_label
        return filters

    def without_person(self) -> "QueryParams":
        return self.model_copy(update={"person": None, "first_name": None, "last_name": None})

    def to_camel_dict(self) -> dict[str, str]:
        return self.model_dump(by_alias=True, exclude_none=True)


class DateRollup(BaseModel):
    """Per-date totals; ``issues`` is not_home + refusal + bad_data."""

    date: str
    attempts: int = 0
    contacts: int = 0
    issues: int = 0


def _empty_tactics() -> dict[str, int]:
    return {"sms": 0, "phone": 0, "canvas": 0}


def _empty_contacts() -> dict[str, int]:
    return {"support": 0, "oppose": 0, "undecided": 0}


def _empty_not_reached() -> dict[str, int]:
    return {"notHome": 0, "refusal": 0, "badData": 0}


class VoterMetrics(BaseModel):
    """Aggregate view of a filtered record set. Recomputed on every call."""

    model_config = ConfigDict(populate_by_name=True)

    tactics: dict[str, int] = Field(default_factory=_empty_tactics)
    contacts: dict[str, int] = Field(default_factory=_empty_contacts)
    not_reached: dict[str, int] = Field(default_factory=_empty_not_reached, alias="notReached")
    by_date: list[DateRollup] = Field(default_factory=list, alias="byDate")
    team_attempts: dict[str, int] = Field(default_factory=dict, alias="teamAttempts")
    total_attempts: int = Field(default=0, alias="totalAttempts")
    record_count: int = Field(default=0, alias="recordCount")

    @property
    def contacts_total(self) -> int:
        return sum(self.contacts.values())

    @property
    def not_reached_total(self) -> int:
        return sum(self.not_reached.values())


class ExtractionResult(BaseModel):
    """Output of the entity extractor."""

    params: QueryParams = Field(default_factory=QueryParams)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    query_type: QueryType = "simple"
    comparisons: list[tuple[str, str]] = Field(default_factory=list)
    has_trend: bool = False
    suggestions: list[str] = Field(default_factory=list)
    examples: list[str] = Field(default_factory=list)


class GeneratedAnswer(BaseModel):
    """Text returned by the external generative model."""

    text: str = ""
    finish_reason: str = "stop"


class GuardedAnswer(BaseModel):
    """Final answer after validation; ``reasons`` lists the checks that tripped."""

    text: str
    finish_reason: str = "stop"
    replaced: bool = False
    reasons: list[str] = Field(default_factory=list)

    @property
    def truncated(self) -> bool:
        return self.finish_reason == "length"
