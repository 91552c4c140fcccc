"""Analysis commands: volume, explain-volume."""

import json
from dataclasses import asdict
from typing import Annotated, Optional

import typer
from rich.markup import escape

from ...core.scoring import compute_history, compute_sample, explain_formula
from .. import views
from ..app import StoreOption, app, get_history_store


@app.command()
def volume(
    exercise: Annotated[str, typer.Argument(help="Exercise name (case-sensitive)")],
    chart: Annotated[
        bool,
        typer.Option("--chart/--no-chart", help="Show ASCII charts below the table"),
    ] = True,
    store_path: StoreOption = None,
    json_out: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON for machine processing"),
    ] = False,
) -> None:
    """
    Show the Adjusted Volume series for an exercise, oldest first.

    Only workouts with per-set data are scored.
    """
    store = get_history_store(store_path)
    entries = store.get_entries(exercise)

    try:
        samples = compute_history(entries)
    except (ValueError, ZeroDivisionError) as e:
        views.print_error(f"Cannot score {exercise}: {e}")
        raise typer.Exit(1)

    if json_out:
        print(json.dumps([asdict(s) for s in samples], indent=2))
        return

    views.print_volume(exercise, samples, chart=chart)


@app.command("explain-volume")
def explain_volume(
    exercise: Annotated[
        Optional[str],
        typer.Argument(help="Exercise whose latest workout should be broken down"),
    ] = None,
    store_path: StoreOption = None,
) -> None:
    """
    Explain the Adjusted Volume formula, optionally for an exercise's last workout.
    """
    views.console.print(explain_formula())

    if exercise is None:
        return

    last = get_history_store(store_path).get_last_entry(exercise)
    if last is None or not last.sets_data:
        views.print_warning(f"No workout with per-set data for {exercise}.")
        return

    try:
        s = compute_sample(last)
    except (ValueError, ZeroDivisionError) as e:
        views.print_error(f"Cannot score {exercise}: {e}")
        raise typer.Exit(1)

    views.console.print()
    views.console.print(f"[bold]{escape(exercise)}[/bold] ({s.date})")
    views.console.print(
        f"  {s.volume_load} × {s.rest_efficiency:.2f} × {s.consistency_factor:.2f}"
        f" × {s.progressive_overload_bonus:.2f} = [bold]{s.adjusted_volume}[/bold]"
    )
