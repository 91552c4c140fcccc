"""
CLI entry point using Typer.

Provides commands for workout tracking:
- log-exercise: Log a completed exercise
- show-history: Display workout history
- volume: Adjusted Volume table and charts
- explain-volume: How Adjusted Volume is calculated
- dedupe / clear-history: History maintenance
- defaults: Saved weight, rest and reps per exercise
- complete-training / recommend: Training completion log
- compare-versions: Plan version comparison
"""

from .app import app
from .commands import analysis, history, training  # noqa: F401  (registers commands)

__all__ = ["app"]


if __name__ == "__main__":
    app()
