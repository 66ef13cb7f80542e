"""Query session: extraction, filtering, aggregation, generation and guarding."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from canvassiq.models import (
    ExtractionResult,
    GeneratedAnswer,
    GuardedAnswer,
    QueryParams,
    VoterMetrics,
)
from canvassiq.query.aggregation import aggregate, scalar_total
from canvassiq.query.extractor import EntityExtractor
from canvassiq.query.filters import filter_records
from canvassiq.query.guard import AnswerGuard
from canvassiq.query.insights import DataInsights, generate_insights
from canvassiq.query.narrator import build_data_context
from canvassiq.records import ContactRecord, ensure_records

if TYPE_CHECKING:
    from canvassiq.config import CanvassConfig

logger = logging.getLogger(__name__)

Generator = Callable[..., GeneratedAnswer]

SEARCH_FALLBACK_MAX_WORDS = 3


@dataclass(slots=True)
class Turn:
    question: str
    params: QueryParams
    answer: str


class ConversationContext:
    """Caller-owned conversation history, capped at ``max_turns`` entries."""

    def __init__(self, max_turns: int = 5) -> None:
        self._turns: deque[Turn] = deque(maxlen=max(max_turns, 1))

    @property
    def max_turns(self) -> int:
        return self._turns.maxlen or 1

    @property
    def turns(self) -> list[Turn]:
        return list(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def add(self, question: str, params: QueryParams, answer: str) -> None:
        self._turns.append(Turn(question=question, params=params, answer=answer))

    def clear(self) -> None:
        self._turns.clear()

    def render(self) -> str:
        lines: list[str] = []
        for turn in self._turns:
            lines.append(f"Q: {turn.question}")
            lines.append(f"A: {turn.answer}")
        return "\n".join(lines)


@dataclass(slots=True)
class QueryOutcome:
    question: str
    extraction: ExtractionResult
    params: QueryParams
    records: list[ContactRecord]
    metrics: VoterMetrics
    total: int
    answer: GuardedAnswer
    insights: DataInsights
    generated: Optional[GeneratedAnswer] = None
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "question": self.question,
            "query_type": self.extraction.query_type,
            "confidence": self.extraction.confidence,
            "params": self.params.to_camel_dict(),
            "record_count": len(self.records),
            "total": self.total,
            "metrics": self.metrics.model_dump(by_alias=True),
            "answer": self.answer.text,
            "finish_reason": self.answer.finish_reason,
            "replaced": self.answer.replaced,
            "reasons": list(self.answer.reasons),
            "insights": self.insights.model_dump(),
        }


class QuerySession:
    """Answer questions over an in-memory record set.

    Parameters
    ----------
    records:
        Contact records (or mappings) forming the working set.
    generator:
        Optional callable ``(question, *, history, data_context)`` returning a
        :class:`GeneratedAnswer`.  Without one, answers are synthesised.
    context:
        Conversation history; a fresh one sized from config when omitted.
    """

    def __init__(
        self,
        records: Optional[Iterable[Any]],
        generator: Optional[Generator] = None,
        context: Optional[ConversationContext] = None,
        *,
        config: Optional["CanvassConfig"] = None,
        extractor: Optional[EntityExtractor] = None,
        guard: Optional[AnswerGuard] = None,
    ) -> None:
        if config is None:
            from canvassiq.config import get_config

            config = get_config()
        self._config = config
        self._records = ensure_records(records)
        self.generator = generator
        self.context = context if context is not None else ConversationContext(config.history_limit)
        self.extractor = extractor or EntityExtractor(
            known_teams=sorted({r.team for r in self._records if r.team})
        )
        self.guard = guard or AnswerGuard.from_config(config)

    @property
    def records(self) -> list[ContactRecord]:
        return list(self._records)

    def ask(
        self,
        question: str,
        *,
        structured: Optional[QueryParams | Mapping[str, Any]] = None,
    ) -> QueryOutcome:
        extraction = self.extractor.extract(question)
        params = self.resolve_params(question, extraction, structured)

        filtered = filter_records(self._records, params)
        metrics = aggregate(filtered)
        total = scalar_total(filtered, params.result_type)
        logger.info(
            "Question %r -> %s: %d record(s), total=%d",
            question,
            params.to_camel_dict(),
            len(filtered),
            total,
        )

        generated: Optional[GeneratedAnswer] = None
        if self.generator is not None:
            generated = self._generate(question, filtered, metrics)

        answer = self.guard.validate(
            generated,
            filtered,
            question,
            params,
            candidates=self._records,
        )
        self.context.add(question, params, answer.text)

        return QueryOutcome(
            question=question,
            extraction=extraction,
            params=params,
            records=filtered,
            metrics=metrics,
            total=total,
            answer=answer,
            insights=generate_insights(metrics),
            generated=generated,
            notes=list(extraction.suggestions),
        )

    def resolve_params(
        self,
        question: str,
        extraction: ExtractionResult,
        structured: Optional[QueryParams | Mapping[str, Any]] = None,
    ) -> QueryParams:
        """Merge extracted params with caller-supplied ones (caller wins)."""
        params = extraction.params
        if structured is not None:
            if not isinstance(structured, QueryParams):
                structured = QueryParams.model_validate(dict(structured))
            overrides = structured.model_dump(exclude_none=True)
            params = params.model_copy(update=overrides)

        text = " ".join((question or "").split())
        if (
            not params.populated_fields()
            and params.search_query is None
            and text
            and len(text.split()) <= SEARCH_FALLBACK_MAX_WORDS
        ):
            params = params.model_copy(update={"search_query": text.strip("?!.")})
        return params

    def _generate(
        self,
        question: str,
        records: list[ContactRecord],
        metrics: VoterMetrics,
    ) -> GeneratedAnswer:
        data_context = build_data_context(
            records,
            metrics,
            self._config.max_context_records,
            preamble=self._config.answer_preamble,
        )
        history = self.context.render()
        timeout = self._config.generation_timeout_s

        pool = ThreadPoolExecutor(max_workers=1)
        future = pool.submit(self.generator, question, history=history, data_context=data_context)  # type: ignore[arg-type]
        try:
            generated = future.result(timeout=timeout)
        except FutureTimeoutError:
            logger.warning("Answer generation timed out after %.1fs", timeout)
            future.cancel()
            return GeneratedAnswer(text="", finish_reason="error")
        except Exception as exc:
            logger.warning("Answer generation failed: %s", exc)
            return GeneratedAnswer(text="", finish_reason="error")
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        if not isinstance(generated, GeneratedAnswer):
            generated = GeneratedAnswer(text=str(generated or ""))
        if generated.finish_reason == "length":
            logger.warning("Generated answer was truncated (finish_reason=length)")
        return generated
