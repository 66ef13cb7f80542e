"""Answer guard: reject untrustworthy generated text and rebuild it from data.

A generative model is asked to phrase an answer over the filtered records.
Sometimes it refuses, hedges or apologises instead.  The guard detects that
and substitutes a sentence whose numbers come only from
:mod:`canvassiq.query.aggregation`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, Optional

from pydantic import ValidationError

from canvassiq.models import GeneratedAnswer, GuardedAnswer, QueryParams, is_set
from canvassiq.query.aggregation import aggregate, resolve_metric, scalar_total
from canvassiq.query.filters import (
    filter_records,
    matches_date,
    matches_person,
    relaxed_person_match,
)
from canvassiq.query.phrases import GuardPhrases, load_guard_phrases
from canvassiq.records import ContactRecord, ensure_records

if TYPE_CHECKING:
    from canvassiq.config import CanvassConfig

logger = logging.getLogger(__name__)

GENERIC_MAX_CHARS = 100
_GROUNDING_WORDS = ("records", "attempts")


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _as_generated(value: Any) -> GeneratedAnswer:
    """Accept a model, a ``{"text", "finish_reason"}`` mapping or plain text."""
    if isinstance(value, GeneratedAnswer):
        return value
    if isinstance(value, str):
        return GeneratedAnswer(text=value)
    if isinstance(value, Mapping):
        try:
            return GeneratedAnswer.model_validate(dict(value))
        except ValidationError as exc:
            logger.warning("Unusable generated answer: %s", exc)
    return GeneratedAnswer(finish_reason="error")


def _as_query(value: Any) -> QueryParams:
    if isinstance(value, QueryParams):
        return value
    if isinstance(value, Mapping):
        try:
            return QueryParams.model_validate(dict(value))
        except ValidationError as exc:
            logger.warning("Unusable query parameters: %s", exc)
    return QueryParams()


class AnswerGuard:
    """Validate generated answers against the filtered records."""

    def __init__(
        self,
        phrases: Optional[GuardPhrases] = None,
        *,
        preamble: str = "Based on the data provided",
        require_preamble: bool = True,
        recent_dates: int = 3,
    ) -> None:
        self.phrases = phrases or GuardPhrases()
        self.preamble = preamble
        self.require_preamble = require_preamble
        self.recent_dates = recent_dates

    @classmethod
    def from_config(cls, config: Optional["CanvassConfig"] = None) -> "AnswerGuard":
        if config is None:
            from canvassiq.config import get_config

            config = get_config()
        return cls(
            load_guard_phrases(config.guard_phrases_path),
            preamble=config.answer_preamble,
            require_preamble=config.require_preamble,
            recent_dates=config.recent_dates_in_answer,
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def validate(
        self,
        generated: Optional[GeneratedAnswer],
        filtered_records: Optional[Iterable[ContactRecord]],
        prompt: str,
        query: Optional[QueryParams],
        *,
        candidates: Optional[Iterable[ContactRecord]] = None,
    ) -> GuardedAnswer:
        """Return the generated text if trustworthy, else a grounded replacement.

        ``candidates`` is the record set the filtered records came from; when
        given, a "person not found" claim is re-checked against it with the
        non-person filters applied.  Never raises.
        """
        generated = _as_generated(generated)
        query = _as_query(query)
        try:
            records = ensure_records(filtered_records)
        except (TypeError, ValidationError) as exc:
            logger.warning("Ignoring unusable filtered records: %s", exc)
            records = []

        try:
            text = (generated.text or "").strip()
            reasons: list[str] = []

            if not text:
                reasons.append("empty")
            refusal = self.phrases.first_hit("blacklist", text) if text else None
            if refusal:
                logger.info("Generated answer contains refusal phrase %r", refusal)
                reasons.append("refusal")

            if text and refusal is None and query.person_filter_active:
                claim = self.phrases.first_hit("not_found", text)
                if claim:
                    recovered = self._recover_person(records, query, candidates)
                    if recovered:
                        logger.info(
                            "Answer claimed %r was not found; relaxed match recovered %d record(s)",
                            query.person_label,
                            len(recovered),
                        )
                        return self._replaced(self.synthesize(recovered, query), ["person_recovered"])

            if text:
                reasons.extend(self.check(text, has_records=bool(records)))

            if not reasons:
                return GuardedAnswer(text=generated.text, finish_reason=generated.finish_reason)

            logger.info("Replacing generated answer for %r (%s)", prompt, ", ".join(reasons))
            body = self.synthesize(records, query) if records else self.no_match(query)
            return self._replaced(body, reasons)
        except Exception:
            logger.exception("Answer synthesis failed; reporting record count only")
            return self._replaced(self.degraded(records, query), ["synthesis_error"])

    def check(self, text: str, *, has_records: bool) -> list[str]:
        """Genericity, self-reference and preamble checks on non-empty text."""
        reasons: list[str] = []
        lowered = text.lower()
        if (
            self.phrases.first_hit("generic", text)
            and len(text) < GENERIC_MAX_CHARS
            and not any(word in lowered for word in _GROUNDING_WORDS)
        ):
            reasons.append("generic")
        if self.phrases.first_hit("self_reference", text):
            reasons.append("self_reference")
        if (
            has_records
            and self.require_preamble
            and not lowered.startswith(self.preamble.lower())
        ):
            reasons.append("missing_preamble")
        return reasons

    # ------------------------------------------------------------------
    # Deterministic answers
    # ------------------------------------------------------------------

    def synthesize(self, records: list[ContactRecord], query: QueryParams) -> str:
        subset = list(records)
        clauses: list[str] = []

        label = query.person_label
        if label:
            strict = [r for r in subset if matches_person(r, query)]
            subset = strict or [r for r in subset if relaxed_person_match(r, label)]
            clauses.append(f"I found {_plural(len(subset), 'record')} for {label}")
        if is_set(query.tactic):
            subset = [r for r in subset if r.tactic == query.tactic]
            n = len(subset)
            clauses.append(
                f"{n} of those used {query.tactic}"
                if clauses
                else f"I found {_plural(n, f'{query.tactic} record')}"
            )
        if is_set(query.team):
            subset = [r for r in subset if r.team == query.team]
            clauses.append(self._narrow(clauses, len(subset), f"from {query.team}"))
        if query.date_label:
            subset = [r for r in subset if matches_date(r, query)]
            where = f"between {query.date} and {query.end_date}" if query.has_date_range else f"on {query.date}"
            clauses.append(self._narrow(clauses, len(subset), where))
        if not clauses:
            clauses.append(f"I found {_plural(len(subset), 'matching record')}")

        metrics = aggregate(subset)
        sentences = ["; ".join(clauses) + "."]
        sentences.append(f"Total attempts: {metrics.total_attempts}.")

        if metrics.contacts_total > 0:
            c = metrics.contacts
            sentences.append(
                f"Contacts: {metrics.contacts_total} "
                f"({c['support']} support, {c['oppose']} oppose, {c['undecided']} undecided)."
            )
        if metrics.not_reached_total > 0:
            nr = metrics.not_reached
            sentences.append(
                f"Not reached: {metrics.not_reached_total} "
                f"({nr['notHome']} not home, {nr['refusal']} refusal, {nr['badData']} bad data)."
            )

        if query.result_type:
            metric = resolve_metric(query.result_type)
            if metric:
                total = scalar_total(subset, metric)
                sentences.append(f"Total {metric.replace('_', ' ')}: {total}.")

        if is_set(query.tactic) and not label:
            top = self._top_people(subset)
            if top:
                listing = ", ".join(f"{name} ({_plural(n, 'attempt')})" for name, n in top)
                sentences.append(f"Top people for {query.tactic}: {listing}.")

        single_date = is_set(query.date) and not query.has_date_range
        if not label and not single_date:
            breakdown = [f"{tactic} {count}" for tactic, count in metrics.tactics.items() if count > 0]
            if breakdown:
                sentences.append(f"Attempts by tactic: {', '.join(breakdown)}.")
            if len(metrics.by_date) > 1:
                recent = list(reversed(metrics.by_date[-self.recent_dates:]))
                listing = ", ".join(f"{d.date} ({_plural(d.attempts, 'attempt')})" for d in recent)
                sentences.append(f"Most recent dates: {listing}.")

        return f"{self.preamble}, " + " ".join(sentences)

    @staticmethod
    def _top_people(records: list[ContactRecord], limit: int = 3) -> list[tuple[str, int]]:
        totals: dict[str, int] = {}
        for r in records:
            if r.display_name:
                totals[r.display_name] = totals.get(r.display_name, 0) + r.attempts
        return sorted(totals.items(), key=lambda kv: kv[1], reverse=True)[:limit]

    @staticmethod
    def _narrow(clauses: list[str], count: int, where: str) -> str:
        if clauses:
            return f"{count} of those {'was' if count == 1 else 'were'} {where}"
        return f"I found {_plural(count, 'record')} {where}"

    def no_match(self, query: QueryParams) -> str:
        filters = query.active_filters()
        if not filters:
            return f"{self.preamble}, I found no matching records for your query."
        described = ", ".join(f"{key} {value}" for key, value in filters.items())
        return f"{self.preamble}, I found no matching records for {described}."

    def degraded(self, records: list[ContactRecord], query: QueryParams) -> str:
        filters = query.active_filters()
        text = f"{self.preamble}, I found {_plural(len(records), 'matching record')}"
        if filters:
            text += " for " + ", ".join(f"{key} {value}" for key, value in filters.items())
        return text + "."

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _recover_person(
        self,
        records: list[ContactRecord],
        query: QueryParams,
        candidates: Optional[Iterable[ContactRecord]],
    ) -> list[ContactRecord]:
        if candidates is not None:
            pool = filter_records(ensure_records(candidates), query.without_person())
        else:
            pool = records
        return [r for r in pool if relaxed_person_match(r, query.person_label)]

    @staticmethod
    def _replaced(text: str, reasons: list[str]) -> GuardedAnswer:
        return GuardedAnswer(text=text, finish_reason="stop", replaced=True, reasons=reasons)


def validate(
    generated: Optional[GeneratedAnswer],
    filtered_records: Optional[Iterable[ContactRecord]],
    prompt: str,
    query: Optional[QueryParams],
    *,
    candidates: Optional[Iterable[ContactRecord]] = None,
    phrases: Optional[GuardPhrases] = None,
) -> GuardedAnswer:
    """Validate ``generated`` with a default-configured :class:`AnswerGuard`."""
    return AnswerGuard(phrases).validate(
        generated, filtered_records, prompt, query, candidates=candidates
    )
