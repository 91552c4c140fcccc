"""
CLI view formatters using Rich for pretty console output.

Handles table formatting and display of workout data.
"""

from datetime import datetime

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..core.ascii_plot import create_adjusted_volume_plot, create_volume_load_chart
from ..core.models import (
    AdjustedVolumeSample,
    ExerciseDefaults,
    TrainingCompletion,
    WorkoutEntry,
    parse_timestamp,
)

console = Console()


def _fmt_when(dt: datetime) -> str:
    """Workout time in the local timezone."""
    return dt.astimezone().strftime("%Y-%m-%d %H:%M")


def _fmt_sets(entry: WorkoutEntry) -> str:
    """Per-set data as '10@20 + 8@20', bodyweight sets as bare reps."""
    if not entry.sets_data:
        return "-"
    parts = []
    for s in entry.sets_data:
        reps = "?" if s.repeats is None else str(s.repeats)
        parts.append(f"{reps}@{s.weight:g}" if s.weight else reps)
    return " + ".join(parts)


def _fmt_weight(weight: float | None) -> str:
    return f"{weight:g}" if weight is not None else "-"


def format_history_table(exercise_name: str, entries: list[WorkoutEntry]) -> Table:
    """
    Create a Rich table displaying an exercise's history.

    Args:
        exercise_name: Exercise shown in the title
        entries: Entries to display, newest first

    Returns:
        Rich Table object
    """
    table = Table(title=f"History: {escape(exercise_name)}")

    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Date", style="cyan")
    table.add_column("Sets", justify="right")
    table.add_column("Weight", justify="right")
    table.add_column("Reps", justify="right")
    table.add_column("Rest(s)", justify="right")
    table.add_column("Per-set", style="green")

    for i, entry in enumerate(entries, 1):
        table.add_row(
            str(i),
            _fmt_when(entry.timestamp),
            f"{entry.completed_sets}/{entry.total_sets}",
            _fmt_weight(entry.weight),
            str(entry.repeats) if entry.repeats is not None else "-",
            str(entry.rest_time_seconds),
            _fmt_sets(entry),
        )

    return table


def print_history(exercise_name: str, entries: list[WorkoutEntry]) -> None:
    """
    Print an exercise's history to console.

    Args:
        exercise_name: Exercise name
        entries: Entries to display
    """
    if not entries:
        console.print(f"[yellow]No history recorded for {escape(exercise_name)}.[/yellow]")
        return

    console.print(format_history_table(exercise_name, entries))


def print_exercise_summary(history: dict[str, list[WorkoutEntry]]) -> None:
    """One row per exercise: entry count and last workout date."""
    if not history:
        console.print("[yellow]No history recorded yet.[/yellow]")
        return

    table = Table(title="Exercises")
    table.add_column("Exercise", style="cyan")
    table.add_column("Entries", justify="right")
    table.add_column("Last workout")

    for name in sorted(history):
        entries = history[name]
        last = _fmt_when(entries[0].timestamp) if entries else "-"
        table.add_row(escape(name), str(len(entries)), last)

    console.print(table)


def format_volume_table(exercise_name: str, samples: list[AdjustedVolumeSample]) -> Table:
    """
    Create a Rich table of the Adjusted Volume series.

    Args:
        exercise_name: Exercise shown in the title
        samples: Series, oldest first

    Returns:
        Rich Table object
    """
    table = Table(title=f"Adjusted Volume: {escape(exercise_name)}")

    table.add_column("Date", style="cyan")
    table.add_column("VL", justify="right")
    table.add_column("RE", justify="right")
    table.add_column("CF", justify="right")
    table.add_column("POB", justify="right")
    table.add_column("AV", justify="right", style="bold")

    for s in samples:
        table.add_row(
            _fmt_when(parse_timestamp(s.date)),
            f"{s.volume_load:g}",
            f"{s.rest_efficiency:.2f}",
            f"{s.consistency_factor:.2f}",
            f"{s.progressive_overload_bonus:.2f}",
            str(int(s.adjusted_volume)),
        )

    return table


def print_volume(exercise_name: str, samples: list[AdjustedVolumeSample], chart: bool = True) -> None:
    """
    Print the Adjusted Volume table and, optionally, its charts.

    Args:
        exercise_name: Exercise name
        samples: Series, oldest first
        chart: Also print the ASCII progress and Volume Load charts
    """
    if not samples:
        name = escape(exercise_name)
        console.print(f"[yellow]No workouts with per-set data for {name}.[/yellow]")
        return

    console.print(format_volume_table(exercise_name, samples))
    if chart:
        console.print()
        console.print(create_adjusted_volume_plot(samples, exercise_name=exercise_name), markup=False)
        console.print()
        console.print(create_volume_load_chart(samples), markup=False)


def print_defaults(defaults: dict[str, ExerciseDefaults]) -> None:
    """Print saved per-exercise defaults."""
    if not defaults:
        console.print("[yellow]No defaults saved yet.[/yellow]")
        return

    table = Table(title="Exercise Defaults")
    table.add_column("Exercise", style="cyan")
    table.add_column("Weight", justify="right")
    table.add_column("Rest(s)", justify="right")
    table.add_column("Reps", justify="right")

    for name in sorted(defaults):
        d = defaults[name]
        table.add_row(
            escape(name),
            _fmt_weight(d.weight),
            str(d.rest_time) if d.rest_time is not None else "-",
            str(d.repeats) if d.repeats is not None else "-",
        )

    console.print(table)


def print_completions(completions: dict[str, list[TrainingCompletion]]) -> None:
    """Completion counts and last completion date per training."""
    table = Table(title="Training Completions")
    table.add_column("Training", style="cyan")
    table.add_column("Completed", justify="right")
    table.add_column("Last", justify="right")

    for training in sorted(completions):
        items = completions[training]
        table.add_row(escape(training), str(len(items)), items[0].date if items else "-")

    console.print(table)


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{escape(message)}[/green]")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]Error: {escape(message)}[/red]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning: {escape(message)}[/yellow]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]{escape(message)}[/blue]")


def confirm_action(message: str) -> bool:
    """
    Prompt user for confirmation.

    Args:
        message: Confirmation message

    Returns:
        True if confirmed, False otherwise
    """
    response = console.input(f"{escape(message)} \\[y/N]: ")
    return response.lower() in ("y", "yes")
