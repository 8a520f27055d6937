from __future__ import annotations

import datetime as dt
from importlib import metadata
from pathlib import Path
from typing import Iterable

import matplotlib

matplotlib.use("Agg")  # ensure headless, deterministic output
import matplotlib.dates as mdates
import matplotlib.pyplot as plt
from matplotlib.patches import FancyArrowPatch

from .dependencies import get_dependency_warnings
from .models import Schedule
from .render_rows import RenderRow, to_render_rows

TIMELINE_PAD_DAYS = 7  # add breathing room before first and after last date
ROW_HEIGHT = 0.6
INDENT_STEP = 0.04  # label axis fraction per indent level
FONT_SCALE = 1.0
TITLE_FONT = 14 * FONT_SCALE
LABEL_FONT = 10 * FONT_SCALE
FOOTER_FONT = 8 * FONT_SCALE
TICK_FONT = 9 * FONT_SCALE
TOP_MARGIN_FRAC = 0.85
TITLE_Y = 0.985
WARNING_EDGE = "#c0392b"
WEEKEND_SHADE = "#f2f2f2"

CATEGORY_COLORS = {
    "pre": "#6c8ebf",
    "build": "#d79b00",
    "post": "#82b366",
    "maintenance": "#9673a6",
}
STATUS_ALPHA = {"planned": 0.85, "in_progress": 1.0, "blocked": 0.5, "done": 0.35}


def render_schedule(
    schedule: Schedule,
    out_path: str,
    title: str | None = None,
    min_date: dt.date | None = None,
    max_date: dt.date | None = None,
) -> None:
    """
    Render a static SVG Gantt chart of `schedule` to `out_path`.

    - Rows are grouped by the schedule's `group_by` view setting.
    - Bars are coloured by category; tasks with dependency warnings get a red outline.
    - Weekends are shaded when `show_weekends` is set.
    """

    rows = to_render_rows(schedule)
    if not rows:
        raise ValueError("schedule has no tasks to render")

    min_date, max_date = _resolve_date_window(rows, min_date, max_date)
    warned = {warning.task_id for warning in get_dependency_warnings(schedule.tasks)}

    span_days = (max_date - min_date).days + 1
    fig_height = max(3.0, ROW_HEIGHT * len(rows) + 2.0)
    fig_width = max(12.0, min(24.0, span_days / 7.0 * 2.0 + 6.0))
    fig = plt.figure(figsize=(fig_width, fig_height))
    # Allocate explicit grid: left column for labels, right for chart.
    gs = fig.add_gridspec(1, 2, width_ratios=[1.2, 4.0], wspace=0.05, left=0.06, right=0.98, top=TOP_MARGIN_FRAC, bottom=0.1)
    label_ax = fig.add_subplot(gs[0, 0])
    ax = fig.add_subplot(gs[0, 1], sharey=label_ax)

    ax.set_ylim(-1, len(rows))
    ax.invert_yaxis()
    ax.set_xlim(
        mdates.date2num(min_date - dt.timedelta(days=TIMELINE_PAD_DAYS)),
        mdates.date2num(max_date + dt.timedelta(days=TIMELINE_PAD_DAYS)),
    )
    ax.xaxis_date()
    ax.xaxis.tick_top()
    major_locator, major_formatter = _major_tick_strategy(span_days)
    ax.xaxis.set_major_locator(major_locator)
    ax.xaxis.set_major_formatter(major_formatter)
    ax.grid(True, axis="x", which="major", linestyle="--", alpha=0.4)
    ax.tick_params(axis="x", labelrotation=30, labelsize=TICK_FONT, pad=4)
    ax.set_yticks([])

    if schedule.view_settings.show_weekends:
        _shade_weekends(ax, min_date, max_date)

    label_ax.set_ylim(-1, len(rows))
    label_ax.invert_yaxis()
    label_ax.set_xlim(0, 1)
    label_ax.axis("off")

    fig.suptitle(title if title is not None else schedule.title, x=0.5, fontsize=TITLE_FONT, y=TITLE_Y)
    footer = f"{schedule.project_id} · schedule-planner v{_tool_version()}"
    fig.text(0.99, 0.01, footer, ha="right", va="bottom", fontsize=FOOTER_FONT, alpha=0.8)

    positions: dict[str, tuple[float, float, float]] = {}  # id -> (x_start, x_finish, y)
    for y, row in enumerate(rows):
        is_group = row.node_type == "group"
        label_ax.text(
            0.98 - INDENT_STEP * max(0, row.indent - 1) if not is_group else 0.02,
            y,
            row.name,
            ha="left" if is_group else "right",
            va="center",
            fontsize=LABEL_FONT,
            fontweight="bold" if is_group else "normal",
            transform=label_ax.transData,
        )
        if is_group or row.start_date is None or row.finish_date is None:
            continue

        start_num = mdates.date2num(row.start_date)
        end_num = mdates.date2num(row.finish_date + dt.timedelta(days=1))
        in_warning = row.node_id in warned
        ax.barh(
            y,
            width=end_num - start_num,
            left=start_num,
            height=ROW_HEIGHT if row.indent <= 1 else ROW_HEIGHT * 0.7,
            color=CATEGORY_COLORS.get(row.category or "", "#999999"),
            alpha=STATUS_ALPHA.get(row.status or "", 0.85),
            edgecolor=WARNING_EDGE if in_warning else "black",
            linewidth=1.5 if in_warning else 0.5,
        )
        positions[row.node_id] = (start_num, end_num, y)

    _draw_dependencies(ax, rows, positions)

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, format="svg", bbox_inches="tight")
    plt.close(fig)


def _resolve_date_window(
    rows: Iterable[RenderRow], min_date: dt.date | None, max_date: dt.date | None
) -> tuple[dt.date, dt.date]:
    starts = [row.start_date for row in rows if row.start_date]
    finishes = [row.finish_date for row in rows if row.finish_date]
    if not starts and min_date is None:
        raise ValueError("Cannot infer min_date; no date values present")
    if not finishes and max_date is None:
        raise ValueError("Cannot infer max_date; no date values present")
    return min_date or min(starts), max_date or max(finishes)


def _tool_version() -> str:
    try:
        return metadata.version("schedule-planner")
    except metadata.PackageNotFoundError:
        return "0.0.0"


def _major_tick_strategy(span_days: int) -> tuple[mdates.DateLocator, mdates.DateFormatter]:
    """Choose a major tick locator/formatter to avoid overlapping labels."""
    if span_days > 730:
        return mdates.MonthLocator(bymonth=(1, 7)), mdates.DateFormatter("%b %Y")
    if span_days > 180:
        return mdates.MonthLocator(interval=1), mdates.DateFormatter("%b %Y")
    if span_days > 90:
        return mdates.WeekdayLocator(byweekday=mdates.MO, interval=2), mdates.DateFormatter("%b %d")
    if span_days > 45:
        return mdates.WeekdayLocator(byweekday=mdates.MO, interval=1), mdates.DateFormatter("%b %d")
    return mdates.DayLocator(interval=2), mdates.DateFormatter("%b %d")


def _shade_weekends(ax: plt.Axes, min_date: dt.date, max_date: dt.date) -> None:
    day = min_date - dt.timedelta(days=TIMELINE_PAD_DAYS)
    last = max_date + dt.timedelta(days=TIMELINE_PAD_DAYS)
    while day <= last:
        if day.weekday() == 5:
            start = mdates.date2num(day)
            ax.axvspan(start, start + 2, color=WEEKEND_SHADE, zorder=0, linewidth=0)
        day += dt.timedelta(days=1)


def _draw_dependencies(
    ax: plt.Axes,
    rows: list[RenderRow],
    positions: dict[str, tuple[float, float, float]],
) -> None:
    """Draw an elbow connector from each dependency's finish to the dependent's start."""
    for row in rows:
        target = positions.get(row.node_id)
        if target is None:
            continue
        for dep_id in row.depends_on:
            source = positions.get(dep_id)
            if source is None:
                continue
            arrow = FancyArrowPatch(
                (source[1], source[2]),
                (target[0], target[2]),
                connectionstyle="angle,angleA=0,angleB=90,rad=0",
                arrowstyle="-|>",
                mutation_scale=8.0,
                lw=0.9,
                color="#3a3a3a",
                shrinkA=0.5,
                shrinkB=0.5,
            )
            ax.add_patch(arrow)
