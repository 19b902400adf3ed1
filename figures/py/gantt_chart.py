#!/usr/bin/env python3
from __future__ import annotations

import argparse
import datetime as _dt
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import pandas as pd

import matplotlib

matplotlib.use("Agg")
import matplotlib.dates as mdates  # noqa: E402
import matplotlib.pyplot as plt  # noqa: E402
from matplotlib.axes import Axes  # noqa: E402
from matplotlib.colors import to_hex  # noqa: E402
from matplotlib.figure import Figure  # noqa: E402

TIMELINE_COLUMNS = ("item", "activity", "team", "start", "end", "font")
TIMELINE_DATE_FORMAT = "%Y-%m-%d"
_NA_TOKENS = {"", "NA", "N/A"}


class TimelineError(RuntimeError):
    def __init__(self, message: str, *, path: Optional[Path] = None) -> None:
        prefix = f"{path}: " if path is not None else ""
        super().__init__(f"{prefix}{message}")
        self.path = path


@dataclass(frozen=True)
class TimelineActivity:
    item: int
    activity: str
    team: str
    start: Optional[_dt.date]
    end: Optional[_dt.date]
    bold: bool = False

    @property
    def has_bar(self) -> bool:
        return self.start is not None and self.end is not None


@dataclass(frozen=True)
class RenderedTimeline:
    figure: Figure
    axes: Axes
    team_colors: dict[str, str]


def _parse_date(raw: str, *, path: Path, row: int, column: str) -> Optional[_dt.date]:
    s = raw.strip()
    if s.upper() in _NA_TOKENS:
        return None
    try:
        return _dt.datetime.strptime(s, TIMELINE_DATE_FORMAT).date()
    except ValueError as e:
        raise TimelineError(f"row {row}: malformed {column} date {raw!r} (expected YYYY-MM-DD)", path=path) from e


def read_timeline(path: Union[str, Path]) -> list[TimelineActivity]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"missing timeline file: {p}")
    if not p.is_file():
        raise FileNotFoundError(f"not a file (timeline): {p}")
    try:
        raw = pd.read_csv(p, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError as e:
        raise TimelineError("empty timeline file", path=p) from e

    missing = [c for c in TIMELINE_COLUMNS if c not in raw.columns]
    if missing:
        raise TimelineError(f"missing column(s) {missing} (found: {list(raw.columns)})", path=p)

    out: list[TimelineActivity] = []
    for i, rec in enumerate(raw.to_dict(orient="records"), start=1):
        try:
            item = int(rec["item"])
        except ValueError as e:
            raise TimelineError(f"row {i}: item is not an integer: {rec['item']!r}", path=p) from e

        start = _parse_date(rec["start"], path=p, row=i, column="start")
        end = _parse_date(rec["end"], path=p, row=i, column="end")
        if (start is None) != (end is None):
            raise TimelineError(f"row {i}: start and end must both be set or both be empty", path=p)
        if start is not None and end is not None and end < start:
            raise TimelineError(f"row {i}: end {end} is before start {start}", path=p)

        font = rec["font"].strip().lower() or "plain"
        if font not in ("bold", "plain"):
            raise TimelineError(f"row {i}: unknown font {rec['font']!r} (expected bold/plain)", path=p)

        out.append(
            TimelineActivity(
                item=item,
                activity=rec["activity"].strip(),
                team=rec["team"].strip(),
                start=start,
                end=end,
                bold=font == "bold",
            )
        )

    if not out:
        raise TimelineError("no activities found", path=p)
    return out


def compose_timeline(
    activities: Sequence[TimelineActivity],
    *,
    title: str = "Timeline",
    xlabel: str = "Project year",
    bar_height: float = 10.0,
    figsize: tuple[float, float] = (8.0, 4.5),
) -> RenderedTimeline:
    if not activities:
        raise TimelineError("no activities to plot")

    teams = list(dict.fromkeys(a.team for a in activities if a.has_bar))
    palette = matplotlib.colormaps["tab10"]
    team_colors = {team: to_hex(palette(i % 10)) for i, team in enumerate(teams)}

    n = len(activities)
    fig, ax = plt.subplots(figsize=figsize)

    labelled: set[str] = set()
    for i, a in enumerate(activities):
        if not a.has_bar:
            continue
        y = n - 1 - i  # first activity on top
        x0 = mdates.date2num(a.start)
        x1 = mdates.date2num(a.end)
        ax.plot(
            [x0, x1],
            [y, y],
            color=team_colors[a.team],
            linewidth=bar_height,
            solid_capstyle="butt",
            label=a.team if a.team not in labelled else None,
        )
        labelled.add(a.team)

    ax.set_yticks(list(range(n)))
    ax.set_yticklabels([a.activity for a in reversed(activities)])
    for label, a in zip(ax.get_yticklabels(), reversed(activities)):
        label.set_fontweight("bold" if a.bold else "normal")
    ax.set_ylim(-0.75, n - 0.25)

    ax.xaxis.set_major_locator(mdates.AutoDateLocator())
    ax.xaxis.set_major_formatter(mdates.DateFormatter("%b %Y"))
    ax.set_xlabel(xlabel)
    ax.set_title(title, loc="left")

    # Minimal theme: no box, light vertical grid.
    for spine in ax.spines.values():
        spine.set_visible(False)
    ax.grid(True, axis="x", alpha=0.3)
    ax.tick_params(axis="both", length=0)

    if teams:
        ax.legend(title="Team", loc="center left", bbox_to_anchor=(1.0, 0.5), frameon=False)

    fig.tight_layout()
    return RenderedTimeline(figure=fig, axes=ax, team_colors=team_colors)


def render_timeline(
    activities: Sequence[TimelineActivity],
    output_path: Union[str, Path],
    *,
    dpi: int = 300,
    **kwargs: Any,
) -> Path:
    """Compose and save a timeline; `kwargs` go to `compose_timeline`."""
    out_path = Path(output_path)
    rendered = compose_timeline(activities, **kwargs)
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        rendered.figure.savefig(out_path, dpi=dpi, bbox_inches="tight")
    finally:
        plt.close(rendered.figure)
    return out_path


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Plot a project timeline (Gantt chart) from a CSV.")
    parser.add_argument("timeline", type=Path, help="CSV with columns: " + ", ".join(TIMELINE_COLUMNS))
    parser.add_argument("--output", "-o", type=Path, required=True, help="Output image path")
    parser.add_argument("--title", default="Timeline", help="Chart title (default: %(default)s)")
    parser.add_argument("--xlabel", default="Project year", help="X axis title (default: %(default)s)")
    parser.add_argument("--dpi", type=int, default=300, help="Output resolution (default: %(default)s)")
    args = parser.parse_args(argv)

    try:
        activities = read_timeline(args.timeline)
        out_path = render_timeline(activities, args.output, dpi=args.dpi, title=args.title, xlabel=args.xlabel)
    except (TimelineError, FileNotFoundError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    n_bars = sum(1 for a in activities if a.has_bar)
    print(f"OK: wrote {out_path} ({len(activities)} rows, {n_bars} bars)")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
