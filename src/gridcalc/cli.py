"""Command-line interface for gridcalc."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import click
import yaml

from gridcalc import __version__


@click.group()
@click.version_option(version=__version__, prog_name="gridcalc")
def main() -> None:
    """gridcalc -- spreadsheet formula engine.

    Evaluate formulas, calculate YAML sheets, inspect the event log.
    """


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _display(value: Any) -> str:
    from gridcalc.formulas.values import to_text

    return to_text(value)


def _load_sheet(path: Path) -> dict[tuple[int, int], Any]:
    """Read a YAML mapping of A1 address -> cell text."""
    from gridcalc.formulas.references import parse_address

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise click.ClickException(f"{path}: invalid YAML: {e}")
    if not isinstance(data, dict):
        raise click.ClickException(f"{path}: expected a mapping of address to value")

    cells: dict[tuple[int, int], Any] = {}
    for addr, text in data.items():
        address = parse_address(str(addr))
        if address is None:
            raise click.ClickException(f"{path}: invalid cell address {addr!r}")
        cells[address.key] = text
    return cells


# ---------------------------------------------------------------------------
# Eval
# ---------------------------------------------------------------------------


@main.command("eval")
@click.argument("formula")
def eval_formula(formula: str) -> None:
    """Evaluate a standalone FORMULA (cell references read as empty)."""
    from gridcalc.engine import FormulaEngine
    from gridcalc.formulas.errors import FormulaError

    if not formula.startswith("="):
        formula = "=" + formula
    try:
        value = FormulaEngine().evaluate(formula)
    except FormulaError as e:
        raise click.ClickException(str(e))
    click.echo(_display(value))


# ---------------------------------------------------------------------------
# Calc
# ---------------------------------------------------------------------------


@main.command()
@click.argument("sheet", type=click.Path(exists=True, dir_okay=False))
@click.option("--cell", "cells", multiple=True, help="Address to print (repeatable). Default: all cells.")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True), help="Path to gridcalc.yaml.")
def calc(sheet: str, cells: tuple[str, ...], config_path: str | None) -> None:
    """Calculate every formula in SHEET (YAML) and print ADDRESS<TAB>VALUE lines."""
    from pydantic import ValidationError

    from gridcalc.config import load_engine_config
    from gridcalc.engine import FormulaEngine
    from gridcalc.formulas.references import key_to_a1, parse_address

    try:
        config = load_engine_config(config_path)
    except (ValueError, ValidationError) as e:
        raise click.ClickException(str(e))

    engine = FormulaEngine(config=config)
    try:
        for (col, row), text in _load_sheet(Path(sheet)).items():
            engine.store.write_cell(col, row, {"value": text})
    except IndexError as e:
        raise click.ClickException(str(e))
    engine.initialize_formulas()

    if cells:
        keys = []
        for addr in cells:
            address = parse_address(addr)
            if address is None:
                raise click.ClickException(f"Invalid cell address: {addr!r}")
            keys.append(address.key)
    else:
        keys = [key for key, _ in engine.store.iter_cells()]

    for key in keys:
        click.echo(f"{key_to_a1(key)}\t{_display(engine.get_value(*key))}")


# ---------------------------------------------------------------------------
# Functions
# ---------------------------------------------------------------------------


@main.command()
def functions() -> None:
    """List built-in formula functions."""
    from gridcalc.functions import function_names

    for name in function_names():
        click.echo(name)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@main.command("events")
@click.argument("log_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--limit", default=100, type=int, help="Maximum events to show.")
def events_cmd(log_dir: str, level: str | None, event_type: str | None, limit: int) -> None:
    """Show the engine event log in LOG_DIR, newest first."""
    from gridcalc.logging.sink import EventSink

    events = EventSink(Path(log_dir)).read_events(level=level, event_type=event_type, limit=limit)
    if not events:
        click.echo("No events found.")
        return

    for evt in events:
        line = f"[{evt.get('ts', '')}] {evt.get('level', '').upper():7s} {evt.get('event_type', '')}: {evt.get('message', '')}"
        if evt.get("error_code"):
            line += f"  ({evt['error_code']})"
        click.echo(line)
