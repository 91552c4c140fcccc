"""Training commands: complete-training, recommend, compare-versions."""

import json
from typing import Annotated, Optional

import typer
from rich.markup import escape

from ...core.versioning import compare_versions as _compare_versions
from .. import views
from ..app import StoreOption, app, get_progress_store


@app.command("complete-training")
def complete_training(
    training: Annotated[str, typer.Argument(help="Training identifier, e.g. A")],
    exercises: Annotated[
        Optional[list[str]],
        typer.Option("--exercise", "-e", help="Completed exercise (repeatable)"),
    ] = None,
    store_path: StoreOption = None,
) -> None:
    """
    Record a finished training for today.
    """
    store = get_progress_store(store_path)
    store.save_completion(training, exercises or [])
    views.print_success(
        f"Completed training {training} ({store.get_completion_count(training)} times so far)"
    )


@app.command()
def recommend(
    trainings: Annotated[
        list[str],
        typer.Argument(help="Trainings offered by the current plan, in plan order"),
    ],
    store_path: StoreOption = None,
    json_out: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON for machine processing"),
    ] = False,
) -> None:
    """
    Recommend which training to do next.

    The least-completed training wins; when all are even, the one done
    longest ago.
    """
    store = get_progress_store(store_path)
    choice = store.next_recommended_training(trainings)

    if json_out:
        print(json.dumps({"recommended": choice}))
        return

    completions = store.get_completions()
    views.print_completions({t: completions.get(t, []) for t in trainings})
    views.console.print(f"Next training: [bold cyan]{escape(str(choice))}[/bold cyan]")


@app.command("compare-versions")
def compare_versions(
    a: Annotated[str, typer.Argument(help="First version, e.g. 3.6")],
    b: Annotated[str, typer.Argument(help="Second version, e.g. 3.10")],
) -> None:
    """
    Compare two plan versions numerically (prints -1, 0 or 1).
    """
    try:
        result = _compare_versions(a, b)
    except ValueError as e:
        views.print_error(str(e))
        raise typer.Exit(1)
    print(result)
