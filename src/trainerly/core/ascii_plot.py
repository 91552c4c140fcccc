"""
ASCII plotting for the Adjusted Volume series.

Creates terminal-friendly charts of workout progress over time.
"""

from datetime import datetime

from .models import AdjustedVolumeSample, parse_timestamp


def create_adjusted_volume_plot(
    samples: list[AdjustedVolumeSample],
    width: int = 60,
    height: int = 20,
    exercise_name: str = "",
) -> str:
    """
    Create an ASCII plot of Adjusted Volume over time.

    Args:
        samples: Adjusted Volume series, oldest first
        width: Plot width in characters
        height: Plot height in lines
        exercise_name: Display name shown in chart title

    Returns:
        ASCII art string
    """
    if not samples:
        return "No workouts with per-set data recorded yet."

    points: list[tuple[datetime, int]] = [
        (parse_timestamp(s.date), int(s.adjusted_volume)) for s in samples
    ]
    points.sort(key=lambda p: p[0])

    min_date = points[0][0]
    max_date = points[-1][0]
    # Sub-day resolution so several workouts on one day still spread out
    date_range = (max_date - min_date).total_seconds()
    if date_range == 0:
        date_range = 1.0

    min_val = min(p[1] for p in points)
    max_val = max(p[1] for p in points)
    margin = max(1, (max_val - min_val) // 10)
    y_min = max(0, min_val - margin)
    y_max = max_val + margin
    y_range = y_max - y_min
    if y_range == 0:
        y_range = 1

    plot_width = width - 8  # room for y-axis labels
    plot_height = height - 3  # room for x-axis and title

    grid = [[" " for _ in range(plot_width)] for _ in range(plot_height)]

    plot_points: list[tuple[int, int, int]] = []  # (x, y, value)
    for date, value in points:
        offset = (date - min_date).total_seconds()
        x = int((offset / date_range) * (plot_width - 1)) if len(points) > 1 else 0
        y = int(((value - y_min) / y_range) * (plot_height - 1))
        y = plot_height - 1 - y  # flip y-axis
        plot_points.append((x, y, value))

    def _p(x: int, r: int, ch: str) -> None:
        if 0 <= x < plot_width and 0 <= r < plot_height and grid[r][x] == " ":
            grid[r][x] = ch

    # Connecting lines (staircase style: ╭─╯)
    for i in range(len(plot_points) - 1):
        col1, row1, _ = plot_points[i]
        col2, row2, _ = plot_points[i + 1]

        n_rows = abs(row2 - row1)
        if n_rows == 0:
            for x in range(col1 + 1, col2):
                _p(x, row1, "─")
            continue

        if col1 == col2:
            for r in range(min(row1, row2) + 1, max(row1, row2)):
                _p(col1, r, "│")
            continue

        row_dir = -1 if row2 < row1 else 1  # -1 = going up
        up = row_dir == -1
        corner_exit = "╯" if up else "╮"
        corner_entry = "╭" if up else "╰"
        n_segs = n_rows + 1

        for step in range(n_segs):
            row = row1 + row_dir * step
            pivot_in = col1 + (col2 - col1) * step // n_segs
            pivot_out = col1 + (col2 - col1) * (step + 1) // n_segs

            if step != 0:
                _p(pivot_in, row, corner_entry)
            start = col1 + 1 if step == 0 else pivot_in + 1
            end = col2 if step == n_segs - 1 else pivot_out
            for x in range(start, end):
                _p(x, row, "─")
            if step != n_segs - 1:
                _p(pivot_out, row, corner_exit)

    for x, y, _ in plot_points:
        if 0 <= x < plot_width and 0 <= y < plot_height:
            grid[y][x] = "●"

    lines = []
    title = "Adjusted Volume"
    if exercise_name:
        title += f" ({exercise_name})"
    lines.append(title)
    lines.append("─" * width)

    for i, row in enumerate(grid):
        y_val = y_max - int((i / (plot_height - 1)) * y_range) if plot_height > 1 else y_max
        label = f"{y_val:5d} ┤"
        row_list = list(row)

        # Value labels next to data points, left of the point near the edge
        for x, py, value in plot_points:
            if py != i:
                continue
            label_text = f"({value})"
            pos = x + 2
            if pos + len(label_text) >= plot_width:
                pos = x - len(label_text) - 1
            if pos < 0:
                continue
            for j, c in enumerate(label_text):
                if row_list[pos + j] == " ":
                    row_list[pos + j] = c

        lines.append(label + "".join(row_list))

    lines.append("─" * width)

    label_line = [" "] * plot_width
    mid_date = min_date + (max_date - min_date) / 2
    for x_pos, date in ((0, min_date), (plot_width // 2, mid_date), (plot_width - 7, max_date)):
        date_str = date.strftime("%b %d")
        for j, c in enumerate(date_str):
            if 0 <= x_pos + j < plot_width:
                label_line[x_pos + j] = c
    lines.append(" " * 7 + "".join(label_line))

    return "\n".join(lines)


def create_simple_bar_chart(
    labels: list[str],
    values: list[float],
    width: int = 40,
    title: str = "",
) -> str:
    """
    Create a simple horizontal bar chart.

    Args:
        labels: Labels for each bar
        values: Values for each bar
        width: Maximum bar width
        title: Chart title

    Returns:
        ASCII bar chart string
    """
    if not values:
        return "No data to display."

    max_val = max(values)
    max_label_len = max(len(label) for label in labels) if labels else 0

    lines = []

    if title:
        lines.append(title)
        lines.append("─" * (max_label_len + width + 5))

    for label, value in zip(labels, values):
        bar_len = int((value / max_val) * width) if max_val > 0 else 0
        bar = "█" * bar_len
        lines.append(f"{label:>{max_label_len}} │{bar} {value:.0f}")

    return "\n".join(lines)


def create_volume_load_chart(samples: list[AdjustedVolumeSample], last: int = 8) -> str:
    """
    Bar chart of raw Volume Load for the most recent workouts.

    Args:
        samples: Adjusted Volume series, oldest first
        last: Number of workouts to show

    Returns:
        ASCII chart string
    """
    recent = samples[-last:]
    labels = [parse_timestamp(s.date).strftime("%m-%d %H:%M") for s in recent]
    values = [float(s.volume_load) for s in recent]
    return create_simple_bar_chart(labels, values, title="Volume Load (recent workouts)")
