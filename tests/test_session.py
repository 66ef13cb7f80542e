# tests/test_session.py
"""Tests for the end-to-end query session and conversation history."""

from __future__ import annotations

import threading

import pytest


ROWS = [
    {"first_name": "Jane", "last_name": "Doe", "team": "Team Tony", "tactic": "Phone", "date": "2025-01-03", "attempts": 10, "contacts": 4, "support": 3, "undecided": 1},
    {"first_name": "Daniel", "last_name": "Kelly", "team": "Team Tony", "tactic": "Phone", "date": "2025-01-04", "attempts": 7},
    {"first_name": "Daniel", "last_name": "Kelly", "team": "Team Sarah", "tactic": "SMS", "date": "2025-01-05", "attempts": 5},
    {"first_name": "Sam", "last_name": "Lee", "team": "North", "tactic": "Canvas", "date": "2025-01-05", "attempts": 3},
]


@pytest.fixture()
def cfg(tmp_path):
    from canvassiq.config import CanvassConfig

    return CanvassConfig(home_dir=tmp_path, history_limit=2, generation_timeout_s=2.0)


def _session(cfg, generator=None):
    from canvassiq.query.session import QuerySession

    return QuerySession(ROWS, generator=generator, config=cfg)


class TestConversationContext:
    def test_bounded_history(self):
        from canvassiq.models import QueryParams
        from canvassiq.query.session import ConversationContext

        ctx = ConversationContext(max_turns=2)
        for i in range(3):
            ctx.add(f"q{i}", QueryParams(), f"a{i}")
        assert len(ctx) == 2
        assert [t.question for t in ctx.turns] == ["q1", "q2"]
        assert ctx.render() == "Q: q1\nA: a1\nQ: q2\nA: a2"

    def test_clear(self):
        from canvassiq.models import QueryParams
        from canvassiq.query.session import ConversationContext

        ctx = ConversationContext()
        ctx.add("q", QueryParams(), "a")
        ctx.clear()
        assert len(ctx) == 0
        assert ctx.max_turns == 5


class TestQuerySessionDeterministic:
    def test_phone_question_without_generator(self, cfg):
        outcome = _session(cfg).ask("How many Phone attempts did Jane Doe make on 2025-01-03?")
        assert len(outcome.records) == 1
        assert outcome.total == 10
        assert outcome.answer.replaced
        assert "Total attempts: 10." in outcome.answer.text
        assert outcome.generated is None

    def test_relaxed_person_through_session(self, cfg):
        outcome = _session(cfg).ask("How many phone calls did Dan Kelly make?")
        assert outcome.params.person == "Dan Kelly"
        assert outcome.params.tactic == "Phone"
        assert outcome.total == 7

    def test_team_vocabulary_from_records(self, cfg):
        outcome = _session(cfg).ask("attempts by the north volunteers")
        assert outcome.params.team == "North"
        assert outcome.total == 3

    def test_grouping_question_keeps_every_record(self, cfg):
        outcome = _session(cfg).ask("Show undecided contacts by tactic and team")
        assert outcome.params.person is None
        assert outcome.params.result_type == "undecided"
        assert len(outcome.records) == 4
        assert outcome.total == 1
        assert "no matching records" not in outcome.answer.text

    def test_short_question_falls_back_to_search(self, cfg):
        outcome = _session(cfg).ask("Sam")
        assert outcome.params.search_query == "Sam"
        assert [r.first_name for r in outcome.records] == ["Sam"]

    def test_structured_params_override_extraction(self, cfg):
        outcome = _session(cfg).ask("How many attempts by Jane Doe?", structured={"tactic": "SMS"})
        assert outcome.params.tactic == "SMS"
        assert outcome.records == []
        assert outcome.total == 0
        assert "no matching records" in outcome.answer.text

    def test_outcome_serialises(self, cfg):
        payload = _session(cfg).ask("Show Phone attempts").to_dict()
        assert payload["params"]["tactic"] == "Phone"
        assert payload["record_count"] == 2
        assert payload["total"] == 17
        assert "byDate" in payload["metrics"]
        assert set(payload["insights"]) == {"insights", "anomalies", "recommendations", "trends"}

    def test_history_recorded(self, cfg):
        session = _session(cfg)
        session.ask("Show Phone attempts")
        session.ask("Show SMS attempts")
        session.ask("Show Canvas attempts")
        assert [t.question for t in session.context.turns] == ["Show SMS attempts", "Show Canvas attempts"]


class TestQuerySessionGenerator:
    def test_good_answer_kept_and_receives_context(self, cfg):
        from canvassiq.models import GeneratedAnswer

        seen = {}

        def generator(question, *, history, data_context):
            seen["history"] = history
            seen["data_context"] = data_context
            return GeneratedAnswer(text="Based on the data provided, there were 17 Phone attempts.")

        session = _session(cfg, generator)
        session.ask("Show SMS attempts")
        outcome = session.ask("Show Phone attempts")
        assert not outcome.answer.replaced
        assert outcome.answer.text.endswith("17 Phone attempts.")
        assert "Q: Show SMS attempts" in seen["history"]
        assert '"Based on the data provided, ..."' in seen["data_context"]
        assert "You have 2 matching voter contact records." in seen["data_context"]

    def test_refusal_replaced(self, cfg):
        from canvassiq.models import GeneratedAnswer

        def generator(question, **_):
            return GeneratedAnswer(text="As an AI, I don't have access to your campaign data.")

        outcome = _session(cfg, generator).ask("Show Phone attempts")
        assert outcome.answer.replaced
        assert "refusal" in outcome.answer.reasons
        assert "Total attempts: 17." in outcome.answer.text

    def test_generator_failure_uses_deterministic_answer(self, cfg):
        def generator(question, **_):
            raise ConnectionError("network down")

        outcome = _session(cfg, generator).ask("Show Phone attempts")
        assert outcome.generated.finish_reason == "error"
        assert outcome.answer.reasons == ["empty"]
        assert "Total attempts: 17." in outcome.answer.text

    def test_generator_timeout(self, tmp_path):
        from canvassiq.config import CanvassConfig
        from canvassiq.models import GeneratedAnswer
        from canvassiq.query.session import QuerySession

        release = threading.Event()

        def generator(question, **_):
            release.wait(5)
            return GeneratedAnswer(text="Based on the data provided, too late.")

        cfg = CanvassConfig(home_dir=tmp_path, generation_timeout_s=0.05)
        try:
            outcome = QuerySession(ROWS, generator=generator, config=cfg).ask("Show Phone attempts")
        finally:
            release.set()
        assert outcome.generated.finish_reason == "error"
        assert "Total attempts: 17." in outcome.answer.text

    def test_plain_string_result_is_wrapped(self, cfg):
        def generator(question, **_):
            return "Based on the data provided, 17 attempts."

        outcome = _session(cfg, generator).ask("Show Phone attempts")
        assert outcome.generated.text == "Based on the data provided, 17 attempts."
        assert not outcome.answer.replaced
