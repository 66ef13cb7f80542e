# canvassiq/query/extractor.py
"""Deterministic entity extraction for free-text voter-contact questions.

Turns a question such as "How many Phone attempts did Jane Doe make on
2025-01-03?" into a :class:`~canvassiq.models.QueryParams` plus a query-shape
classification and a confidence score.  No I/O, no LLM; unparsable fragments
are dropped rather than reported.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from collections.abc import Iterable
from typing import Optional

from canvassiq.models import ExtractionResult, QueryParams, QueryType

logger = logging.getLogger(__name__)


_TACTIC_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("SMS", ("sms", "text", "message")),
    ("Phone", ("phone", "call")),
    ("Canvas", ("canvas", "door", "knock")),
)

# Specific outcomes first so "supporters did she contact" resolves to support.
_RESULT_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("not_home", (r"not\s+home", r"nobody\s+home", r"absent", r"unavailable")),
    ("refusal", (r"refus", r"declin", r"rejection")),
    ("bad_data", (r"bad\s+data", r"wrong\s+number", r"invalid")),
    ("support", (r"support",)),
    ("oppose", (r"oppos", r"against")),
    ("undecided", (r"undecided", r"unsure")),
    ("contacts", (r"contact", r"reached", r"conversation")),
    ("attempts", (r"attempt", r"tried", r"tries")),
)
_MEASURE_INTENT = re.compile(r"\b(how\s+many|number\s+of|total|count|sum|made|make)\b")

_TREND_MARKERS = re.compile(r"\b(trend|over\s+time|progress|change|growth)")

_COMPARISON_PATTERNS = (
    re.compile(r"\bcompare\s+([^,\s?]+)\s+(?:vs\.?|versus|and|with|to)\s+([^,\s?]+)", re.I),
    re.compile(r"\bdifference\s+between\s+([^,\s?]+)\s+and\s+([^,\s?]+)", re.I),
    re.compile(r"\b([^,\s?]+)\s+(?:vs\.?|versus)\s+([^,\s?]+)", re.I),
)

_RELATIVE_DATES = (
    ("yesterday", re.compile(r"\byesterday\b")),
    ("today", re.compile(r"\btoday\b")),
    ("last week", re.compile(r"\blast\s+week\b")),
    ("this week", re.compile(r"\bthis\s+week\b")),
)
_ISO_DATE = re.compile(r"\b(\d{4})[-/](\d{1,2})[-/](\d{1,2})\b")
_US_DATE = re.compile(r"\b(\d{1,2})[-/](\d{1,2})[-/](\d{4})\b")
_MONTH_DATE = re.compile(
    r"\b(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?"
    r"\s+(\d{1,2})(?:st|nd|rd|th)?,?\s*(\d{4})\b",
    re.I,
)
_MONTHS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")

_NAME_PAIR = re.compile(r"(?=\b([A-Z][a-z]+)\s+([A-Z][a-z]+)\b)")
_BY_OR_DID_NAME = re.compile(r"\b(?:by|did)\s+([a-z]+)(?:\s+([a-z]+))?", re.I)

_TEAM_AFTER = re.compile(r"\bteam\s+([a-z][a-z'\-]*)", re.I)
_TEAM_BEFORE = re.compile(r"\b([a-z][a-z'\-]*)\s+team\b", re.I)

_STOP_WORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "for", "with", "by", "from", "to",
        "in", "on", "at", "of", "as", "per", "than", "then",
        "how", "many", "much", "what", "which", "who", "whom", "when", "where",
        "why", "show", "me", "tell", "give", "list", "compare", "display", "find",
        "did", "does", "do", "make", "made", "have", "has", "had", "get", "got",
        "is", "are", "was", "were", "be", "been", "can", "could", "would",
        "should", "please", "total", "number", "count", "sum", "all", "any",
        "each", "every", "our", "my", "their", "they", "them", "we", "you", "i",
        "he", "she", "it", "his", "her", "this", "that", "these", "those",
        "last", "next", "week", "weeks", "month", "year", "day", "days",
        "today", "yesterday", "team", "teams", "sms", "text", "texts", "message",
        "messages", "phone", "phones", "call", "calls", "called", "calling",
        "canvas", "canvass", "canvassing", "door", "doors", "knock", "knocking",
        "attempt", "attempts", "contact", "contacts", "contacted", "support",
        "supporter", "supporters", "oppose", "opposed", "undecided", "refusal",
        "refusals", "refused", "not", "home", "bad", "data", "versus", "vs",
        "trend", "trends", "over", "time", "between", "difference", "record",
        "records", "voter", "voters", "effectiveness", "performance", "results",
        "result", "tactic", "tactics", "date", "dates", "person", "people",
        "name", "names", "totals", "breakdown", "type", "types",
        "method", "methods", "volunteer", "volunteers", "canvasser", "canvassers",
        "everyone", "category", "group", "outcome", "outcomes",
        "jan", "january", "feb", "february", "mar", "march", "apr", "april",
        "may", "jun", "june", "jul", "july", "aug", "august", "sep", "sept",
        "september", "oct", "october", "nov", "november", "dec", "december",
        "monday", "tuesday", "wednesday", "thursday", "friday", "saturday",
        "sunday",
    }
)

_EXAMPLES: dict[str, list[str]] = {
    "simple": [
        "How many phone calls were made yesterday?",
        "Show me SMS contacts by Team Tony",
        "What are John Smith's supporter contacts?",
    ],
    "comparison": [
        "Compare SMS vs Phone effectiveness",
        "Show Team A vs Team B performance",
        "Phone calls vs Canvas contacts last week",
    ],
    "trend": [
        "Show contact trends over time",
        "How has SMS performance changed this month?",
        "Display weekly progress for all teams",
    ],
    "complex": [
        "How many Phone supporters did Team Tony contact last week?",
        "Compare John Smith's SMS vs Canvas effectiveness yesterday",
        "Show undecided contacts by tactic and team this month",
    ],
}


def _capitalize_words(value: str) -> str:
    return " ".join(word[:1].upper() + word[1:].lower() for word in value.split())


def _calendar_date(year: int, month: int, day: int) -> Optional[str]:
    try:
        return dt.date(year, month, day).isoformat()
    except ValueError:
        return None


class EntityExtractor:
    """Rule-based extractor; ``known_teams`` is matched before generic patterns."""

    def __init__(self, known_teams: Iterable[str] = ()) -> None:
        self.known_teams = tuple(
            t for t in (" ".join(str(x).split()) for x in known_teams) if len(t) > 1
        )

    def extract(self, text: str, *, today: Optional[dt.date] = None) -> ExtractionResult:
        if not isinstance(text, str) or not text.strip():
            return ExtractionResult(suggestions=self._suggestions(QueryParams(), "simple"))

        original = " ".join(text.split())
        lowered = original.lower()
        today = today or dt.date.today()

        date_value, end_date = self.extract_dates(lowered, today=today)
        fields: dict[str, Optional[str]] = {
            "tactic": self.extract_tactic(lowered),
            "date": date_value,
            "end_date": end_date,
            "person": self.extract_person(original),
            "team": self.extract_team(original),
            "result_type": self.extract_result_type(lowered),
        }
        comparisons = self.extract_comparisons(original)
        has_trend = bool(_TREND_MARKERS.search(lowered))

        extracted = sum(
            1 for key in ("tactic", "date", "person", "team") if fields[key] is not None
        )
        if fields["result_type"] is None and extracted and _MEASURE_INTENT.search(lowered):
            fields["result_type"] = "attempts"

        params = QueryParams(**fields)
        query_type = self._classify(params, comparisons, has_trend)
        confidence = self._confidence(params, comparisons, has_trend)

        logger.debug(
            "Extracted %s (type=%s, confidence=%.2f) from %r",
            params.to_camel_dict(),
            query_type,
            confidence,
            original,
        )
        return ExtractionResult(
            params=params,
            confidence=confidence,
            query_type=query_type,
            comparisons=comparisons,
            has_trend=has_trend,
            suggestions=self._suggestions(params, query_type),
            examples=list(_EXAMPLES[query_type]),
        )

    # ------------------------------------------------------------------
    # Field extractors
    # ------------------------------------------------------------------

    def extract_tactic(self, lowered: str) -> Optional[str]:
        for value, keywords in _TACTIC_KEYWORDS:
            if any(re.search(rf"\b{kw}", lowered) for kw in keywords):
                return value
        return None

    def extract_dates(self, lowered: str, *, today: dt.date) -> tuple[Optional[str], Optional[str]]:
        """Return ``(date, end_date)``; pattern types are tried in priority order."""
        relative = self._relative_date(lowered, today)
        if relative is not None:
            return relative

        match = _ISO_DATE.search(lowered)
        if match:
            value = _calendar_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
            if value:
                return value, None

        match = _US_DATE.search(lowered)
        if match:
            value = _calendar_date(int(match.group(3)), int(match.group(1)), int(match.group(2)))
            if value:
                return value, None

        match = _MONTH_DATE.search(lowered)
        if match:
            month = _MONTHS.index(match.group(1)[:3].lower()) + 1
            value = _calendar_date(int(match.group(3)), month, int(match.group(2)))
            if value:
                return value, None

        return None, None

    def _relative_date(self, lowered: str, today: dt.date) -> Optional[tuple[str, Optional[str]]]:
        for keyword, pattern in _RELATIVE_DATES:
            if not pattern.search(lowered):
                continue
            if keyword == "yesterday":
                return (today - dt.timedelta(days=1)).isoformat(), None
            if keyword == "today":
                return today.isoformat(), None
            # Weeks start on Sunday.
            week_start = today - dt.timedelta(days=(today.weekday() + 1) % 7)
            if keyword == "this week":
                return week_start.isoformat(), today.isoformat()
            last_start = week_start - dt.timedelta(days=7)
            return last_start.isoformat(), (week_start - dt.timedelta(days=1)).isoformat()
        return None

    def extract_person(self, original: str) -> Optional[str]:
        for match in _NAME_PAIR.finditer(original):
            first, last = match.group(1), match.group(2)
            if first.lower() in _STOP_WORDS or last.lower() in _STOP_WORDS:
                continue
            return _capitalize_words(f"{first} {last}")

        for match in _BY_OR_DID_NAME.finditer(original):
            first, last = match.group(1), match.group(2)
            if first.lower() in _STOP_WORDS or len(first) < 2:
                continue
            if last and last.lower() not in _STOP_WORDS and len(last) >= 2:
                return _capitalize_words(f"{first} {last}")
            return _capitalize_words(first)
        return None

    def extract_team(self, original: str) -> Optional[str]:
        for team in self.known_teams:
            if re.search(rf"\b{re.escape(team)}\b", original, re.I):
                return team

        match = _TEAM_AFTER.search(original)
        if match and match.group(1).lower() not in _STOP_WORDS:
            return _capitalize_words(f"team {match.group(1)}")
        match = _TEAM_BEFORE.search(original)
        if match and match.group(1).lower() not in _STOP_WORDS:
            return _capitalize_words(f"{match.group(1)} team")
        return None

    def extract_result_type(self, lowered: str) -> Optional[str]:
        for value, patterns in _RESULT_KEYWORDS:
            if any(re.search(rf"\b{p}", lowered) for p in patterns):
                return value
        return None

    def extract_comparisons(self, original: str) -> list[tuple[str, str]]:
        pairs: list[tuple[str, str]] = []
        seen: set[tuple[str, str]] = set()
        for pattern in _COMPARISON_PATTERNS:
            for match in pattern.finditer(original):
                left = match.group(1).strip(".!?;:")
                right = match.group(2).strip(".!?;:")
                if not left or not right:
                    continue
                key = (left.lower(), right.lower())
                if key in seen:
                    continue
                seen.add(key)
                pairs.append((left, right))
        return pairs

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _classify(
        self,
        params: QueryParams,
        comparisons: list[tuple[str, str]],
        has_trend: bool,
    ) -> QueryType:
        if comparisons:
            return "comparison"
        if has_trend:
            return "trend"
        facets = [f for f in params.populated_fields() if f != "end_date"]
        return "complex" if len(facets) >= 4 else "simple"

    def _confidence(
        self,
        params: QueryParams,
        comparisons: list[tuple[str, str]],
        has_trend: bool,
    ) -> float:
        facets = [
            params.date,
            params.tactic,
            params.person,
            params.team,
            params.result_type,
        ]
        populated = sum(1 for f in facets if f is not None) + (1 if comparisons or has_trend else 0)
        confidence = populated / 6

        param_count = len(params.populated_fields())
        confidence = min(confidence + 0.2 * param_count, 1.0)
        if param_count < 2:
            confidence *= 0.8
        return round(confidence, 4)

    def _suggestions(self, params: QueryParams, query_type: str) -> list[str]:
        suggestions: list[str] = []
        if not params.date:
            suggestions.append("Add a time period (e.g., 'yesterday', 'last week', 'January 15, 2025')")
        if not params.tactic:
            suggestions.append("Specify contact method (SMS, Phone, or Canvas)")
        if not params.person and not params.team:
            suggestions.append("Add a person or team name for more specific results")
        if query_type == "simple" and params.tactic:
            suggestions.append(f"Try comparing {params.tactic} with other tactics")
        return suggestions


_default_extractor = EntityExtractor()


def extract(text: str, *, today: Optional[dt.date] = None) -> ExtractionResult:
    """Extract a structured query from ``text`` using the default vocabulary."""
    return _default_extractor.extract(text, today=today)
