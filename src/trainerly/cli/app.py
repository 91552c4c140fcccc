"""Shared Typer app object, shared option types, and store utilities."""

from pathlib import Path
from typing import Annotated, Optional

import typer

from ..core.config_loader import load_settings
from ..io.history_store import HistoryStore
from ..io.kv_store import JsonFileStore, get_default_storage_path
from ..io.progress_store import ProgressStore
from ..logging_setup import setup_logger

# Shared --store-path option type used across all commands
StoreOption = Annotated[
    Optional[Path],
    typer.Option("--store-path", "-p", help="Path to the JSON store (default: ~/.trainerly/storage.json)"),
]

app = typer.Typer(
    name="trainerly",
    help="Workout history, Adjusted Volume progress and training tracking.",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging on stderr"),
    ] = False,
) -> None:
    """
    Track workouts and see how your Adjusted Volume develops.
    """
    settings = load_settings()
    setup_logger("DEBUG" if verbose else settings.log_level)


def get_kv_store(store_path: Path | None) -> JsonFileStore:
    """Get the file store from path, configured path, or default location."""
    if store_path is None:
        configured = load_settings().storage_path
        store_path = Path(configured).expanduser() if configured else get_default_storage_path()
    return JsonFileStore(store_path)


def get_history_store(store_path: Path | None) -> HistoryStore:
    """History store over the file store, tuned from settings."""
    settings = load_settings()
    return HistoryStore(
        get_kv_store(store_path),
        retention=settings.history_retention,
        dedup_window_ms=settings.dedup_window_ms,
    )


def get_progress_store(store_path: Path | None) -> ProgressStore:
    settings = load_settings()
    return ProgressStore(get_kv_store(store_path), completions_retention=settings.completions_retention)
