# tests/test_narrator.py
"""Tests for the DSPy narrator and the data context it is given."""

from __future__ import annotations

import sys
from types import SimpleNamespace

import pytest


def _fake_dspy(monkeypatch, predict_impl):
    configured = {}

    class _Predict:
        def __init__(self, signature):
            self.signature = signature

        def __call__(self, **kwargs):
            return predict_impl(**kwargs)

    def _lm(model, **kwargs):
        return SimpleNamespace(model=model, kwargs=kwargs)

    def _configure(**kwargs):
        configured.update(kwargs)

    fake = SimpleNamespace(
        Signature=object,
        InputField=lambda **kw: None,
        OutputField=lambda **kw: None,
        Predict=_Predict,
        LM=_lm,
        configure=_configure,
    )
    monkeypatch.setitem(sys.modules, "dspy", fake)
    import canvassiq.query.narrator as narrator

    monkeypatch.setattr(narrator, "_dspy_classes", None)
    return configured


class TestDspyNarrator:
    def test_prediction_becomes_generated_answer(self, monkeypatch):
        seen = {}

        def predict(**kwargs):
            seen.update(kwargs)
            return SimpleNamespace(answer="  Based on the data provided, 3 attempts.  ")

        _fake_dspy(monkeypatch, predict)
        from canvassiq.query.narrator import DspyNarrator

        result = DspyNarrator()("How many?", data_context="ctx")
        assert result.text == "Based on the data provided, 3 attempts."
        assert result.finish_reason == "stop"
        assert seen["history"] == "(none)"
        assert seen["data_context"] == "ctx"

    def test_failure_reported_as_error(self, monkeypatch):
        def predict(**kwargs):
            raise RuntimeError("rate limited")

        _fake_dspy(monkeypatch, predict)
        from canvassiq.query.narrator import DspyNarrator

        result = DspyNarrator()("How many?", history="Q: x\nA: y")
        assert result.text == ""
        assert result.finish_reason == "error"

    def test_signature_built_lazily(self, monkeypatch):
        _fake_dspy(monkeypatch, lambda **kw: None)
        import canvassiq.query.narrator as narrator

        assert narrator._dspy_classes is None
        signature = narrator.AnswerVoterQuestion
        assert signature.__name__ == "AnswerVoterQuestion"
        assert narrator._dspy_classes is not None

    def test_unknown_attribute(self):
        import canvassiq.query.narrator as narrator

        with pytest.raises(AttributeError):
            narrator.NotASignature  # noqa: B018


class TestConfigureLm:
    def test_requires_api_key(self, tmp_path):
        from canvassiq.config import CanvassConfig
        from canvassiq.query.narrator import configure_lm

        with pytest.raises(RuntimeError, match="CANVASSIQ_API_KEY"):
            configure_lm(CanvassConfig(home_dir=tmp_path, api_key=""))

    def test_configures_dspy(self, monkeypatch, tmp_path):
        from canvassiq.config import CanvassConfig
        from canvassiq.query.narrator import configure_lm

        configured = _fake_dspy(monkeypatch, lambda **kw: None)
        cfg = CanvassConfig(home_dir=tmp_path, api_key="sk-test", lm="openai/gpt-4o-mini", lm_temperature=0.1)
        lm = configure_lm(cfg)
        assert configured["lm"] is lm
        assert lm.model == "openai/gpt-4o-mini"
        assert lm.kwargs["api_key"] == "sk-test"
        assert lm.kwargs["temperature"] == 0.1


class TestBuildDataContext:
    def _records(self, n):
        from canvassiq.records import ensure_records

        return ensure_records([{"first_name": f"P{i}", "attempts": i} for i in range(n)])

    def test_sections_and_instructions(self):
        from canvassiq.query.aggregation import aggregate
        from canvassiq.query.narrator import build_data_context

        records = self._records(2)
        text = build_data_context(records, aggregate(records), preamble="Per the data")
        assert text.startswith("You have 2 matching voter contact records.")
        assert "RECORDS:" in text
        assert "AGGREGATE STATISTICS:" in text
        assert '"totalAttempts": 1' in text
        assert 'Always begin your response with "Per the data, ..."' in text
        assert "are listed below" not in text

    def test_truncation_note(self):
        from canvassiq.query.aggregation import aggregate
        from canvassiq.query.narrator import build_data_context

        records = self._records(5)
        text = build_data_context(records, aggregate(records), max_records=2)
        assert "You have 5 matching voter contact records." in text
        assert "The first 2 are listed below" in text
        assert '"P1"' in text
        assert '"P4"' not in text
