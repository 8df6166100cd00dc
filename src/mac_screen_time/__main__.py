"""Command-line interface for screen time since the last charge."""
import logging as _logging
import sys as _sys

from pathlib import Path
from typing import Optional

import typer

from . import core as _core
from .config import ScreenTimeSettings

_TARGET_PLATFORM = "darwin"
_DEFAULTS = ScreenTimeSettings()

app = typer.Typer(help="Screen on time and battery drain since the last charge.")


def _require_macos():
    if _sys.platform != _TARGET_PLATFORM:
        print(f"Expected macOS (darwin), found {_sys.platform}", file=_sys.stderr)
        raise typer.Exit(1)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")):
    _logging.basicConfig(
        level=_logging.DEBUG if verbose else _logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command()
def summary(
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        "-f",
        exists=True,
        dir_okay=False,
        readable=True,
        help="Read a saved `pmset -g log` instead of running pmset.",
    ),
    tail_lines: int = typer.Option(
        _DEFAULTS.tail_lines,
        "--tail",
        min=1,
        help="Number of trailing pmset log lines to read.",
    ),
):
    """Print the screen time summary once."""
    if log_file is not None:
        raw_log = log_file.read_text(encoding="UTF-8", errors="replace")
    else:
        _require_macos()
        raw_log = _core.pmset_log_text(tail_lines)
    print(_core.analyze(raw_log).pretty_str())


@app.command()
def menubar(
    refresh_minutes: float = typer.Option(
        _DEFAULTS.refresh_interval.total_seconds() / 60,
        "--refresh",
        min=1.0,
        help="Minutes between refreshes.",
    ),
    tail_lines: int = typer.Option(
        _DEFAULTS.tail_lines,
        "--tail",
        min=1,
        help="Number of trailing pmset log lines to read.",
    ),
):
    """Run the menu bar app."""
    _require_macos()
    from . import menubar as _menubar

    _menubar.main(
        ScreenTimeSettings.from_values(refresh_minutes=refresh_minutes, tail_lines=tail_lines)
    )


if __name__ == "__main__":
    app()
