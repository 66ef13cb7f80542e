"""Generative answer phrasing through DSPy.

The narrator only phrases; every number the user finally sees is checked by
:mod:`canvassiq.query.guard` against the deterministic aggregation.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Optional, Sequence

from canvassiq.models import GeneratedAnswer, VoterMetrics
from canvassiq.records import ContactRecord
from canvassiq.utils.logging import log_llm_response, log_prompt

if TYPE_CHECKING:
    from canvassiq.config import CanvassConfig

logger = logging.getLogger(__name__)

_RECORD_FIELDS = (
    "first_name",
    "last_name",
    "team",
    "tactic",
    "date",
    "attempts",
    "contacts",
    "not_home",
    "refusal",
    "bad_data",
    "support",
    "oppose",
    "undecided",
)


def build_data_context(
    records: Sequence[ContactRecord],
    metrics: VoterMetrics,
    max_records: int = 200,
    preamble: str = "Based on the data provided",
) -> str:
    """Render the grounding block handed to the model with every question."""
    shown = list(records)[: max(max_records, 0)]
    rows = [r.model_dump(include=set(_RECORD_FIELDS)) for r in shown]
    stats = metrics.model_dump(by_alias=True)

    lines = [
        f"You have {len(records)} matching voter contact records.",
    ]
    if len(shown) < len(records):
        lines.append(f"The first {len(shown)} are listed below; the statistics cover all of them.")
    lines.extend(
        [
            "RECORDS:",
            json.dumps(rows, indent=2),
            "AGGREGATE STATISTICS:",
            json.dumps(stats, indent=2),
            "INSTRUCTIONS:",
            "1. Answer only from the records and statistics above.",
            "2. Never mention knowledge cutoffs, training data or lack of access.",
            "3. Report exact numbers; do not estimate.",
            f'4. Always begin your response with "{preamble}, ..."',
        ]
    )
    return "\n".join(lines)


def _build_dspy_classes():
    import dspy

    class AnswerVoterQuestion(dspy.Signature):
        """Answer a campaign staff question using only the supplied voter contact data."""

        question: str = dspy.InputField(desc="Staff question about voter contact activity")
        history: str = dspy.InputField(desc="Earlier questions and answers in this conversation")
        data_context: str = dspy.InputField(desc="Matching records and aggregate statistics")
        answer: str = dspy.OutputField(desc="Concise answer with exact numbers from the data")

    return {"AnswerVoterQuestion": AnswerVoterQuestion}


_dspy_classes: dict[str, type] | None = None
_DSPY_CLASS_NAMES = frozenset({"AnswerVoterQuestion"})


def __getattr__(name: str):
    global _dspy_classes

    if name in _DSPY_CLASS_NAMES:
        if _dspy_classes is None:
            _dspy_classes = _build_dspy_classes()
        return _dspy_classes[name]

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def configure_lm(config: Optional["CanvassConfig"] = None) -> Any:
    """Configure DSPy's global LM from settings and return it.

    Raises ``RuntimeError`` when no API key is configured.
    """
    if config is None:
        from canvassiq.config import get_config

        config = get_config()
    if not config.api_key:
        raise RuntimeError("No API key configured. Set CANVASSIQ_API_KEY.")

    import dspy

    logging.getLogger("LiteLLM").setLevel(logging.ERROR)
    logging.getLogger("litellm").setLevel(logging.ERROR)

    lm = dspy.LM(
        config.lm,
        api_key=config.api_key,
        api_base=config.api_base,
        temperature=config.lm_temperature,
    )
    dspy.configure(lm=lm)
    logger.info("Configured DSPy LM %s", config.lm)
    return lm


class DspyNarrator:
    """Callable ``(question, history, data_context) -> GeneratedAnswer``.

    DSPy is imported on first use.  Any failure is reported as an empty
    answer with ``finish_reason="error"`` so the guard takes over.
    """

    def __init__(self) -> None:
        self._predict: Any = None

    def _predictor(self) -> Any:
        if self._predict is None:
            import dspy

            self._predict = dspy.Predict(__getattr__("AnswerVoterQuestion"))
        return self._predict

    def __call__(self, question: str, *, history: str = "", data_context: str = "") -> GeneratedAnswer:
        log_prompt(logger, "question", question)
        log_prompt(logger, "data_context", data_context)
        try:
            prediction = self._predictor()(
                question=question,
                history=history or "(none)",
                data_context=data_context,
            )
        except Exception as exc:
            logger.warning("Answer generation failed: %s", exc)
            return GeneratedAnswer(text="", finish_reason="error")

        text = str(getattr(prediction, "answer", "") or "").strip()
        log_llm_response(logger, "answer", text)
        return GeneratedAnswer(text=text, finish_reason="stop")
