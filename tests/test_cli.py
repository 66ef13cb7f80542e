# tests/test_cli.py
"""Tests for the canvassiq CLI."""

import json
import logging

import pytest
from click.testing import CliRunner

ROWS = [
    {"firstName": "Jane", "lastName": "Doe", "team": "Team Tony", "tactic": "Phone", "date": "2025-01-03", "attempts": 10, "contacts": 4, "support": 3, "undecided": 1},
    {"firstName": "Jane", "lastName": "Doe", "team": "Team Tony", "tactic": "SMS", "date": "2025-01-03", "attempts": 20, "contacts": 2, "support": 2},
    {"firstName": "Daniel", "lastName": "Kelly", "team": "Team Sarah", "tactic": "Phone", "date": "2025-01-04", "attempts": 7, "notHome": 3},
]


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    from canvassiq.config import get_config

    monkeypatch.setenv("CANVASSIQ_HOME_DIR", str(tmp_path / "home"))
    monkeypatch.delenv("CANVASSIQ_LOG_DIR", raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()
    root = logging.getLogger("canvassiq")
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)
    for f in root.filters[:]:
        root.removeFilter(f)
    root.setLevel(logging.NOTSET)
    root.propagate = True


@pytest.fixture()
def records_file(tmp_path):
    path = tmp_path / "contacts.json"
    path.write_text(json.dumps(ROWS), encoding="utf-8")
    return path


class TestCLISkeleton:

    def test_cli_group_exists(self):
        from canvassiq.cli import cli
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("extract", "metrics", "ask"):
            assert command in result.output

    def test_no_subcommand_prints_help(self):
        from canvassiq.cli import cli
        result = CliRunner().invoke(cli, [])
        assert result.exit_code == 0
        assert "Usage" in result.output

    def test_version_flag(self):
        from canvassiq import __version__
        from canvassiq.cli import cli
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_session_log_written(self, tmp_path):
        from canvassiq.cli import cli
        result = CliRunner().invoke(cli, ["extract", "Show SMS"])
        assert result.exit_code == 0
        assert list((tmp_path / "home" / "logs").glob("canvassiq_*.log"))

    def test_log_dir_override(self, tmp_path, monkeypatch):
        from canvassiq.cli import cli
        monkeypatch.setenv("CANVASSIQ_LOG_DIR", str(tmp_path / "elsewhere"))
        result = CliRunner().invoke(cli, ["extract", "Show SMS"])
        assert result.exit_code == 0
        assert list((tmp_path / "elsewhere").glob("canvassiq_*.log"))


class TestExtractCommand:

    def test_interpretation(self):
        from canvassiq.cli import cli
        result = CliRunner().invoke(cli, ["extract", "How many Phone attempts did Jane Doe make on 2025-01-03?"])
        assert result.exit_code == 0, result.output
        assert "INTERPRETATION" in result.output
        assert "Jane Doe" in result.output
        assert "2025-01-03" in result.output

    def test_known_team_option(self):
        from canvassiq.cli import cli
        result = CliRunner().invoke(cli, ["extract", "attempts by the north crew", "--team", "North"])
        assert result.exit_code == 0
        assert "North" in result.output

    def test_suggestions_for_vague_question(self):
        from canvassiq.cli import cli
        result = CliRunner().invoke(cli, ["extract", "hello"])
        assert result.exit_code == 0
        assert "SUGGESTIONS" in result.output


class TestMetricsCommand:

    def test_filtered_metrics(self, records_file):
        from canvassiq.cli import cli
        result = CliRunner().invoke(cli, ["metrics", "--records", str(records_file), "--tactic", "Phone"])
        assert result.exit_code == 0, result.output
        assert "2 of 3 record(s) matched" in result.output
        assert "Team Sarah" in result.output

    def test_missing_records_file(self, tmp_path):
        from canvassiq.cli import cli
        result = CliRunner().invoke(cli, ["metrics", "--records", str(tmp_path / "nope.json")])
        assert result.exit_code != 0

    def test_unsupported_format(self, tmp_path):
        from canvassiq.cli import cli
        path = tmp_path / "contacts.xml"
        path.write_text("<rows/>")
        result = CliRunner().invoke(cli, ["metrics", "--records", str(path)])
        assert result.exit_code == 1
        assert "Unsupported records format" in result.output


class TestAskCommand:

    def test_synthesised_answer(self, records_file, tmp_path):
        from canvassiq.cli import cli
        out = tmp_path / "out" / "answer.json"
        result = CliRunner().invoke(
            cli,
            ["ask", "--records", str(records_file), "-q", "How many Phone attempts did Jane Doe make?", "-o", str(out)],
        )
        assert result.exit_code == 0, result.output
        assert "ANSWER" in result.output
        assert out.exists()
        payload = json.loads(out.read_text(encoding="utf-8"))
        assert payload["total"] == 10
        assert payload["params"]["person"] == "Jane Doe"
        assert payload["replaced"] is True
        assert "Total attempts: 10." in payload["answer"]

    def test_refused_answer_replaced(self, records_file, tmp_path):
        from canvassiq.cli import cli
        out = tmp_path / "answer"
        result = CliRunner().invoke(
            cli,
            [
                "ask", "--records", str(records_file),
                "-q", "How many SMS attempts did Jane Doe make?",
                "--answer", "I don't have access to that information.",
                "-o", str(out),
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Generated answer replaced (refusal" in result.output
        payload = json.loads((tmp_path / "answer.json").read_text(encoding="utf-8"))
        assert payload["reasons"] == ["refusal", "missing_preamble"]
        assert "Total attempts: 20." in payload["answer"]
        assert "don't have access" not in payload["answer"]

    def test_good_answer_kept(self, records_file, tmp_path):
        from canvassiq.cli import cli
        out = tmp_path / "answer.json"
        text = "Based on the data provided, Jane Doe made 20 SMS attempts."
        result = CliRunner().invoke(
            cli,
            ["ask", "--records", str(records_file), "-q", "SMS attempts by Jane Doe", "--answer", text, "-o", str(out)],
        )
        assert result.exit_code == 0, result.output
        payload = json.loads(out.read_text(encoding="utf-8"))
        assert payload["answer"] == text
        assert payload["replaced"] is False

    def test_answer_and_llm_are_exclusive(self, records_file):
        from canvassiq.cli import cli
        result = CliRunner().invoke(
            cli, ["ask", "--records", str(records_file), "-q", "x", "--answer", "y", "--llm"]
        )
        assert result.exit_code == 1
        assert "not both" in result.output

    def test_llm_without_key(self, records_file, monkeypatch):
        from canvassiq.cli import cli
        monkeypatch.setenv("CANVASSIQ_API_KEY", "")
        result = CliRunner().invoke(cli, ["ask", "--records", str(records_file), "-q", "x", "--llm"])
        assert result.exit_code == 1
        assert "CANVASSIQ_API_KEY" in result.output
