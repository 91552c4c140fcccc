"""History commands: log-exercise, show-history, dedupe, clear-history, defaults."""

import json
from datetime import datetime, timezone
from typing import Annotated, Optional

import typer

from ...core.models import WorkoutEntry, format_timestamp, parse_timestamp
from ...io.serializers import ValidationError, parse_sets_string, workout_entry_to_dict
from .. import views
from ..app import StoreOption, app, get_history_store

# Rest used when neither --rest nor a saved default is available
DEFAULT_REST_SECONDS = 180


@app.command("log-exercise")
def log_exercise(
    exercise: Annotated[str, typer.Argument(help="Exercise name (case-sensitive)")],
    sets: Annotated[
        str,
        typer.Option("--sets", "-s", help='Performed sets: "10@20,8@20", "12,10" or "10x3 @20"'),
    ],
    rest: Annotated[
        Optional[int],
        typer.Option("--rest", "-r", help="Rest between sets in seconds (default: saved default or 180)"),
    ] = None,
    total_sets: Annotated[
        Optional[int],
        typer.Option("--total-sets", "-t", help="Planned number of sets (default: sets performed)"),
    ] = None,
    date: Annotated[
        Optional[str],
        typer.Option("--date", "-d", help="ISO timestamp of the workout (default: now)"),
    ] = None,
    store_path: StoreOption = None,
    json_out: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON for machine processing"),
    ] = False,
) -> None:
    """
    Log a completed exercise.

      trainerly log-exercise "Bench Press" --sets "10@60,8@60,8@60" --rest 120

    Saving again within a second replaces the previous entry instead of
    adding a new one.  The weight, rest and reps are remembered as the
    exercise's defaults.
    """
    store = get_history_store(store_path)

    try:
        parsed_sets = parse_sets_string(sets)
    except ValidationError as e:
        views.print_error(f"Invalid sets format: {e}")
        raise typer.Exit(1)

    if rest is None:
        rest = store.get_defaults(exercise).rest_time or DEFAULT_REST_SECONDS

    planned = total_sets if total_sets is not None else len(parsed_sets)

    try:
        timestamp = parse_timestamp(date) if date else datetime.now(timezone.utc)
        first = parsed_sets[0]
        entry = WorkoutEntry(
            date=format_timestamp(timestamp),
            rest_time_seconds=rest,
            completed_sets=len(parsed_sets),
            total_sets=planned,
            weight=first.weight,
            repeats=first.repeats,
            sets_data=parsed_sets,
        )
    except ValueError as e:
        views.print_error(f"Invalid entry: {e}")
        raise typer.Exit(1)

    store.save_entry(exercise, entry)
    store.save_defaults(exercise, weight=first.weight, rest_time=rest, repeats=first.repeats)

    if json_out:
        print(json.dumps({"exercise": exercise, **workout_entry_to_dict(entry)}, indent=2))
        return

    views.print_success(
        f"Logged {exercise}: {entry.completed_sets}/{entry.total_sets} sets, {rest}s rest"
    )


@app.command("show-history")
def show_history(
    exercise: Annotated[
        Optional[str],
        typer.Argument(help="Exercise name (omit to list all exercises)"),
    ] = None,
    limit: Annotated[
        Optional[int],
        typer.Option("--limit", "-l", help="Show only the N most recent entries"),
    ] = None,
    store_path: StoreOption = None,
    json_out: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON for machine processing"),
    ] = False,
) -> None:
    """
    Display workout history.
    """
    store = get_history_store(store_path)

    if exercise is None:
        history = store.get_history()
        if json_out:
            print(json.dumps({name: len(entries) for name, entries in history.items()}, indent=2))
            return
        views.print_exercise_summary(history)
        return

    entries = store.get_entries(exercise)
    if limit is not None:
        entries = entries[:limit]

    if json_out:
        print(json.dumps([workout_entry_to_dict(e) for e in entries], indent=2))
        return

    views.print_history(exercise, entries)


@app.command()
def dedupe(store_path: StoreOption = None) -> None:
    """
    Remove duplicate entries saved within a second of each other.
    """
    store = get_history_store(store_path)
    removed = store.remove_duplicates()
    if removed:
        views.print_success(f"Removed {removed} duplicate entries")
    else:
        views.print_info("No duplicates found.")


@app.command("clear-history")
def clear_history(
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip the confirmation prompt"),
    ] = False,
    store_path: StoreOption = None,
) -> None:
    """
    Delete all exercise history.
    """
    if not yes and not views.confirm_action("Delete ALL exercise history?"):
        views.print_info("Cancelled.")
        raise typer.Exit(0)

    get_history_store(store_path).clear()
    views.print_success("Exercise history cleared.")


@app.command()
def defaults(
    exercise: Annotated[
        Optional[str],
        typer.Argument(help="Exercise to update (omit to show all defaults)"),
    ] = None,
    weight: Annotated[
        Optional[float],
        typer.Option("--weight", "-w", help="Default weight"),
    ] = None,
    rest: Annotated[
        Optional[int],
        typer.Option("--rest", "-r", help="Default rest in seconds"),
    ] = None,
    repeats: Annotated[
        Optional[int],
        typer.Option("--repeats", "-n", help="Default repeats per set"),
    ] = None,
    store_path: StoreOption = None,
) -> None:
    """
    Show saved exercise defaults, or update one exercise's defaults.

    Zero or negative values leave the saved value unchanged.
    """
    store = get_history_store(store_path)

    if exercise is None:
        views.print_defaults(store.get_all_defaults())
        return

    if weight is None and rest is None and repeats is None:
        views.print_defaults({exercise: store.get_defaults(exercise)})
        return

    store.save_defaults(exercise, weight=weight, rest_time=rest, repeats=repeats)
    views.print_defaults({exercise: store.get_defaults(exercise)})
