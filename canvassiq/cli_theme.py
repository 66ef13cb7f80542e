# canvassiq/cli_theme.py
"""Terminal theme for the canvassiq CLI.

Navy & brass palette:
  - Spaced wordmark banner with tagline
  - Numbered section headers ("01 · SECTION NAME")
  - Rounded tables with brass borders
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from rich import box
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.style import Style
from rich.table import Table
from rich.text import Text

# ── Brand ─────────────────────────────────────────────────────────

BRAND = "C A N V A S S I Q"
TAGLINE = "Grounded answers for voter contact data"

# ── Palette ───────────────────────────────────────────────────────

NAVY = "#3D5A98"
BRASS = "#C9A227"
MUTED = "dim"


def print_banner(version: str, console: Console) -> None:
    """Print the wordmark, tagline and version."""
    console.print()
    console.print(f"  [bold {NAVY}]{BRAND}[/bold {NAVY}]")
    console.print(f"  [{BRASS}]{TAGLINE}[/{BRASS}]")
    console.print(f"  [{MUTED}]v{version}[/{MUTED}]")
    console.print()


def print_version(version: str, console: Console) -> None:
    t = Text()
    t.append(BRAND, style=f"bold {NAVY}")
    t.append(f"  v{version}", style=MUTED)
    console.print(t)


# ── Section headers ──────────────────────────────────────────────


def section(
    title: str,
    console: Console,
    number: str | None = None,
    uppercase: bool = True,
) -> None:
    """Print a numbered section header followed by a brass rule."""
    console.print()
    t = Text()
    if number:
        t.append(f"  {number}", style=f"bold {NAVY}")
        t.append(" · ", style=MUTED)
    else:
        t.append("  ", style="")
    t.append(title.upper() if uppercase else title, style="bold")
    console.print(t)
    console.print(f"  {'─' * len(TAGLINE)}", style=BRASS)


# ── Tables ───────────────────────────────────────────────────────


def make_table(title: str | None = None, **kwargs: object) -> Table:
    return Table(
        title=title,
        box=box.ROUNDED,
        border_style=BRASS,
        title_style=f"bold {NAVY}",
        header_style="bold",
        padding=(0, 1),
        **kwargs,
    )


def make_kv_table() -> Table:
    """Headerless two-column key/value table."""
    t = make_table(show_header=False)
    t.add_column("Key", style=f"bold {NAVY}", no_wrap=True)
    t.add_column("Value")
    return t


# ── Status lines ─────────────────────────────────────────────────


def info(msg: str) -> str:
    return f"  [{NAVY}]›[/{NAVY}] [{MUTED}]{msg}[/{MUTED}]"


def ok(msg: str) -> str:
    return f"  [bold green]✓[/bold green] {msg}"


def warn(msg: str) -> str:
    return f"  [bold yellow]![/bold yellow] [yellow]{msg}[/yellow]"


@contextmanager
def spinner(label: str, console: Console) -> Generator[None, None, None]:
    """Spinner for indeterminate operations such as LLM calls."""
    p = Progress(
        TextColumn(" "),
        SpinnerColumn("dots", style=Style(color=NAVY)),
        TextColumn(f"[{MUTED}]{label}[/{MUTED}]"),
        console=console,
        transient=True,
    )
    with p:
        p.add_task(label, total=None)
        yield
