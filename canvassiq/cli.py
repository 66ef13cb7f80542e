# canvassiq/cli.py
"""
canvassiq CLI -- Click commands with a rich terminal UI.

Provides the ``canvassiq`` console entry-point declared in pyproject.toml as
``canvassiq.cli:cli``.  Commands call into the query pipeline:

- extract:  EntityExtractor -- show how a question is interpreted
- metrics:  filter_records + aggregate over a records file
- ask:      QuerySession -- extraction, filtering, aggregation, guarded answer
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.markup import escape as _esc
from rich.padding import Padding

from . import __version__
from . import cli_theme as theme
from .config import get_config

console = Console()


def _print_version(
    ctx: click.Context,
    _param: click.Parameter,
    value: bool,
) -> None:
    if not value or ctx.resilient_parsing:
        return
    theme.print_version(__version__, console)
    ctx.exit()


def _load_records_or_fail(path: Path) -> list:
    from .records import load_records

    try:
        return load_records(path)
    except (FileNotFoundError, ValueError, TypeError) as exc:
        raise click.ClickException(str(exc))


def _configure_dspy() -> None:
    """Configure DSPy from CanvassConfig, surfacing failures as ClickException."""
    from .query.narrator import configure_lm

    try:
        configure_lm(get_config())
    except RuntimeError as exc:
        raise click.ClickException(str(exc))
    except ImportError:
        raise click.ClickException(
            "DSPy is required for --llm. Install with: pip install dspy"
        )


def _params_table(params: dict[str, Any]):
    table = theme.make_kv_table()
    if not params:
        table.add_row("filters", "[dim]none[/dim]")
    for key, value in params.items():
        table.add_row(key, _esc(str(value)))
    return table


def _print_metrics(metrics) -> None:
    tactics = theme.make_table("Attempts by tactic")
    tactics.add_column("Tactic", style="bold")
    tactics.add_column("Attempts", justify="right")
    for tactic, count in metrics.tactics.items():
        tactics.add_row(_esc(tactic), f"{count:,}")
    console.print(Padding(tactics, (0, 0, 0, 2)))

    outcomes = theme.make_table("Outcomes")
    outcomes.add_column("Result", style="bold")
    outcomes.add_column("Count", justify="right")
    for name, count in metrics.contacts.items():
        outcomes.add_row(name, f"{count:,}")
    for name, count in metrics.not_reached.items():
        outcomes.add_row(f"[dim]{name}[/dim]", f"{count:,}")
    console.print(Padding(outcomes, (0, 0, 0, 2)))

    if metrics.team_attempts:
        teams = theme.make_table("Attempts by team")
        teams.add_column("Team", style="bold")
        teams.add_column("Attempts", justify="right")
        for team, count in sorted(metrics.team_attempts.items(), key=lambda kv: kv[1], reverse=True):
            teams.add_row(_esc(team), f"{count:,}")
        console.print(Padding(teams, (0, 0, 0, 2)))

    if metrics.by_date:
        dates = theme.make_table("By date")
        dates.add_column("Date")
        dates.add_column("Attempts", justify="right")
        dates.add_column("Contacts", justify="right")
        dates.add_column("Issues", justify="right")
        for row in metrics.by_date:
            dates.add_row(row.date, f"{row.attempts:,}", f"{row.contacts:,}", f"{row.issues:,}")
        console.print(Padding(dates, (0, 0, 0, 2)))


# ---------------------------------------------------------------------------
# Main CLI group
# ---------------------------------------------------------------------------


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    callback=_print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False), default=None, help="Log level for the session log file.")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Also write log messages to stderr.")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str], verbose: bool) -> None:
    """canvassiq -- grounded answers for voter contact data."""
    from .utils.logging import setup_logging

    cfg = get_config()
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        return
    log_dir = Path(os.environ["CANVASSIQ_LOG_DIR"]) if os.getenv("CANVASSIQ_LOG_DIR") else cfg.log_dir
    setup_logging(level=log_level, log_dir=log_dir, console_output=verbose)
    theme.print_banner(__version__, console)


# ---------------------------------------------------------------------------
# extract
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("question")
@click.option("--team", "teams", multiple=True, help="Known team name to recognise. Repeatable.")
def extract(question: str, teams: tuple[str, ...]) -> None:
    """Show how a question is interpreted.

    \b
    Examples:
      canvassiq extract "How many Phone attempts did Jane Doe make on 2025-01-03?"
      canvassiq extract "Compare SMS vs Phone effectiveness"
    """
    from .query.extractor import EntityExtractor

    result = EntityExtractor(known_teams=teams).extract(question)

    theme.section("Interpretation", console, "01")
    console.print(Padding(_params_table(result.params.to_camel_dict()), (0, 0, 0, 2)))
    console.print(
        theme.info(
            f"type {result.query_type} · confidence {result.confidence:.2f}"
        )
    )
    for left, right in result.comparisons:
        console.print(theme.info(f"compare {_esc(left)} vs {_esc(right)}"))
    if result.has_trend:
        console.print(theme.info("trend requested"))

    if result.suggestions:
        theme.section("Suggestions", console, "02")
        for hint in result.suggestions:
            console.print(theme.warn(hint))


# ---------------------------------------------------------------------------
# metrics
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--records", "records_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), required=True, help="Contact records file (.json, .jsonl or .csv).")
@click.option("--tactic", type=str, default=None, help="Exact tactic (e.g. Phone) or All.")
@click.option("--team", type=str, default=None, help="Exact team name or All.")
@click.option("--person", type=str, default=None, help='Canvasser name, e.g. "Jane Doe".')
@click.option("--date", "date_", type=str, default=None, help="Date (YYYY-MM-DD), or range start with --end-date.")
@click.option("--end-date", type=str, default=None, help="Inclusive range end (YYYY-MM-DD).")
def metrics(
    records_path: Path,
    tactic: Optional[str],
    team: Optional[str],
    person: Optional[str],
    date_: Optional[str],
    end_date: Optional[str],
) -> None:
    """Aggregate a records file, optionally filtered."""
    from .models import QueryParams
    from .query.aggregation import aggregate
    from .query.filters import filter_records
    from .query.insights import generate_insights

    records = _load_records_or_fail(records_path)
    params = QueryParams(tactic=tactic, team=team, person=person, date=date_, end_date=end_date)
    filtered = filter_records(records, params)
    result = aggregate(filtered)

    theme.section("Metrics", console, "01")
    console.print(theme.info(f"{len(filtered)} of {len(records)} record(s) matched"))
    console.print(Padding(_params_table(params.to_camel_dict()), (0, 0, 0, 2)))
    _print_metrics(result)

    found = generate_insights(result)
    if found.insights or found.anomalies:
        theme.section("Insights", console, "02")
        for line in found.insights:
            console.print(theme.info(line))
        for line in found.anomalies:
            console.print(theme.warn(line))
        for line in found.recommendations:
            console.print(theme.ok(line))


# ---------------------------------------------------------------------------
# ask
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--records", "records_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), required=True, help="Contact records file (.json, .jsonl or .csv).")
@click.option("--question", "-q", type=str, required=True, help="Question to answer.")
@click.option("--answer", "answer_text", type=str, default=None, help="Pre-generated answer text to validate instead of calling a model.")
@click.option("--llm", "use_llm", is_flag=True, default=False, help="Phrase the answer with the configured DSPy LM.")
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Save the outcome as JSON.")
def ask(
    records_path: Path,
    question: str,
    answer_text: Optional[str],
    use_llm: bool,
    output: Optional[Path],
) -> None:
    """Answer a question over a records file.

    \b
    Without --llm or --answer the answer is synthesised from the data.

    \b
    Examples:
      canvassiq ask --records contacts.csv -q "How many phone calls did Dan Kelly make?"
      canvassiq ask --records contacts.csv -q "SMS attempts last week" --llm -o answer.json
    """
    from .models import GeneratedAnswer
    from .query.session import QuerySession

    if answer_text is not None and use_llm:
        raise click.ClickException("Use either --answer or --llm, not both.")

    records = _load_records_or_fail(records_path)

    generator = None
    if use_llm:
        from .query.narrator import DspyNarrator

        _configure_dspy()
        generator = DspyNarrator()
    elif answer_text is not None:
        canned = GeneratedAnswer(text=answer_text)

        def _canned(question: str, **_: Any) -> GeneratedAnswer:
            return canned

        generator = _canned

    session = QuerySession(records, generator=generator)
    if use_llm:
        with theme.spinner("Generating answer...", console):
            outcome = session.ask(question)
    else:
        outcome = session.ask(question)

    theme.section("Query", console, "01")
    console.print(Padding(_params_table(outcome.params.to_camel_dict()), (0, 0, 0, 2)))
    console.print(
        theme.info(
            f"{len(outcome.records)} record(s) · type {outcome.extraction.query_type}"
            f" · confidence {outcome.extraction.confidence:.2f}"
        )
    )

    theme.section("Answer", console, "02")
    if outcome.answer.replaced and outcome.generated is not None:
        console.print(theme.warn(f"Generated answer replaced ({', '.join(outcome.answer.reasons)})"))
    console.print(Padding(_esc(outcome.answer.text), (0, 0, 0, 2)))
    if outcome.answer.truncated:
        console.print(theme.warn("Answer was truncated by the model"))

    if output is not None:
        if output.suffix.lower() != ".json":
            output = output.with_suffix(".json")
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(outcome.to_dict(), indent=2, default=str, ensure_ascii=False), encoding="utf-8")
        console.print(theme.ok(f"Saved to {output}"))


if __name__ == "__main__":
    cli()
