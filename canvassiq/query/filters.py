"""Record filtering: strict predicate plus a relaxed person-name fallback."""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable
from typing import Optional

from canvassiq.models import QueryParams, is_set
from canvassiq.records import ContactRecord

logger = logging.getLogger(__name__)


def parse_calendar_date(value: Optional[str]) -> Optional[dt.date]:
    """Parse an ISO ``YYYY-MM-DD`` string; anything else (Feb 30 included) is None."""
    if not value:
        return None
    try:
        return dt.date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def matches_date(record: ContactRecord, query: QueryParams) -> bool:
    if query.has_date_range:
        start = parse_calendar_date(query.date)
        end = parse_calendar_date(query.end_date)
        current = parse_calendar_date(record.date)
        if start is None or end is None or current is None:
            return False
        # end < start yields an empty range.
        return start <= current <= end
    if is_set(query.date):
        return record.date == query.date
    return True


def matches_person(record: ContactRecord, query: QueryParams) -> bool:
    if query.first_name and query.last_name:
        return (
            record.first_name.lower() == query.first_name.lower()
            and record.last_name.lower() == query.last_name.lower()
        )
    if is_set(query.person):
        return query.person.lower() in record.display_name.lower()  # type: ignore[union-attr]
    return True


def matches_search(record: ContactRecord, query: QueryParams) -> bool:
    if not query.search_query:
        return True
    if is_set(query.person) or is_set(query.tactic) or is_set(query.date):
        return True
    needle = query.search_query.lower()
    haystacks = (record.display_name, record.team, record.tactic)
    return any(needle in h.lower() for h in haystacks)


def matches_non_person(record: ContactRecord, query: QueryParams) -> bool:
    if is_set(query.tactic) and record.tactic != query.tactic:
        return False
    if not matches_date(record, query):
        return False
    if is_set(query.team) and record.team != query.team:
        return False
    return True


def matches_query(record: ContactRecord, query: QueryParams) -> bool:
    """Strict predicate: tactic, date, team, person, then free-text search."""
    return (
        matches_non_person(record, query)
        and matches_person(record, query)
        and matches_search(record, query)
    )


def relaxed_person_match(record: ContactRecord, person: Optional[str]) -> bool:
    """Bidirectional containment on first and last name tokens.

    ``"Dan Kelly"`` matches ``Daniel Kelly``; a single token matches either
    name part. Records with a blank name never match.
    """
    if not person or not person.strip():
        return False
    first = record.first_name.lower()
    last = record.last_name.lower()
    if not first and not last:
        return False

    tokens = person.lower().split()
    if len(tokens) == 1:
        token = tokens[0]
        return any(part and (token in part or part in token) for part in (first, last))

    want_first, want_last = tokens[0], tokens[-1]
    first_ok = bool(first) and (want_first in first or first in want_first)
    last_ok = bool(last) and (want_last in last or last in want_last)
    return first_ok and last_ok


def filter_records(
    records: Optional[Iterable[ContactRecord]],
    query: Optional[QueryParams],
) -> list[ContactRecord]:
    """Return the records matching ``query``, preserving input order.

    When the strict pass is empty and a person filter is active, the person
    criterion alone is relaxed; tactic, date and team stay strict.
    """
    pool = list(records or [])
    if query is None:
        return pool

    strict = [r for r in pool if matches_query(r, query)]
    logger.debug("Strict filter kept %d of %d records", len(strict), len(pool))
    if strict or not query.person_filter_active:
        return strict

    label = query.person_label
    relaxed = [
        r
        for r in pool
        if matches_non_person(r, query) and relaxed_person_match(r, label)
    ]
    if relaxed:
        logger.info(
            "Relaxed person match for %r recovered %d record(s)", label, len(relaxed)
        )
    return relaxed
