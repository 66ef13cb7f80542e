"""Scalar totals and full metric roll-ups over a filtered record set."""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from collections.abc import Callable, Iterable
from typing import Optional

from canvassiq.models import DateRollup, VoterMetrics
from canvassiq.query.filters import parse_calendar_date
from canvassiq.records import ContactRecord

logger = logging.getLogger(__name__)

MetricSelector = Callable[[ContactRecord], int]

METRIC_SELECTORS: dict[str, MetricSelector] = {
    "attempts": lambda r: r.attempts,
    "contacts": lambda r: r.contacts,
    "not_home": lambda r: r.not_home,
    "refusal": lambda r: r.refusal,
    "bad_data": lambda r: r.bad_data,
    "support": lambda r: r.support,
    "oppose": lambda r: r.oppose,
    "undecided": lambda r: r.undecided,
}

_METRIC_SYNONYMS: dict[str, str] = {
    "attempt": "attempts",
    "tries": "attempts",
    "contact": "contacts",
    "contacted": "contacts",
    "nothome": "not_home",
    "not_at_home": "not_home",
    "refusals": "refusal",
    "refused": "refusal",
    "baddata": "bad_data",
    "wrong_number": "bad_data",
    "supporter": "support",
    "supporters": "support",
    "supported": "support",
    "opposed": "oppose",
    "opposition": "oppose",
    "opposes": "oppose",
    "unsure": "undecided",
}


def resolve_metric(name: Optional[str]) -> Optional[str]:
    """Map a metric name or synonym to its canonical key.

    Blank or ``None`` means ``attempts``; unknown names return ``None``.
    """
    if name is None or not str(name).strip():
        return "attempts"
    key = re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", str(name).strip())
    key = re.sub(r"[\s\-]+", "_", key).lower()
    key = _METRIC_SYNONYMS.get(key, key)
    return key if key in METRIC_SELECTORS else None


def scalar_total(records: Optional[Iterable[ContactRecord]], metric: Optional[str] = None) -> int:
    """Sum one metric across ``records``; unknown metrics count as 0."""
    resolved = resolve_metric(metric)
    if resolved is None:
        logger.warning("Unknown metric %r; reporting 0", metric)
        return 0
    selector = METRIC_SELECTORS[resolved]
    return sum(selector(r) for r in records or [])


def normalize_tactic(raw: Optional[str]) -> str:
    value = (raw or "").strip().lower()
    if "sms" in value:
        return "sms"
    if "phone" in value or "call" in value:
        return "phone"
    if "canvas" in value or "knock" in value or "door" in value:
        return "canvas"
    return value


def aggregate(records: Optional[Iterable[ContactRecord]]) -> VoterMetrics:
    """Build a fresh :class:`VoterMetrics` for ``records``. Input is not mutated."""
    metrics = VoterMetrics()
    per_date: dict[str, list[int]] = defaultdict(lambda: [0, 0, 0])
    teams: dict[str, int] = defaultdict(int)
    count = 0

    for record in records or []:
        count += 1
        tactic = normalize_tactic(record.tactic)
        if tactic:
            metrics.tactics[tactic] = metrics.tactics.get(tactic, 0) + record.attempts

        metrics.contacts["support"] += record.support
        metrics.contacts["oppose"] += record.oppose
        metrics.contacts["undecided"] += record.undecided

        metrics.not_reached["notHome"] += record.not_home
        metrics.not_reached["refusal"] += record.refusal
        metrics.not_reached["badData"] += record.bad_data

        if record.team:
            teams[record.team] += record.attempts

        if parse_calendar_date(record.date) is not None and len(record.date) == 10:
            bucket = per_date[record.date]
            bucket[0] += record.attempts
            bucket[1] += record.contacts
            bucket[2] += record.issues

        metrics.total_attempts += record.attempts

    metrics.by_date = [
        DateRollup(date=day, attempts=a, contacts=c, issues=i)
        for day, (a, c, i) in sorted(per_date.items(), key=lambda kv: parse_calendar_date(kv[0]))
    ]
    metrics.team_attempts = dict(teams)
    metrics.record_count = count
    return metrics
