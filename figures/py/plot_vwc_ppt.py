#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import matplotlib

matplotlib.use("Agg")
import matplotlib.dates as mdates  # noqa: E402
import matplotlib.pyplot as plt  # noqa: E402
from matplotlib.axes import Axes  # noqa: E402
from matplotlib.axis import Axis  # noqa: E402
from matplotlib.figure import Figure  # noqa: E402
from matplotlib.ticker import FuncFormatter  # noqa: E402

from vwc_config import (  # noqa: E402
    DEFAULT_DPI,
    DEFAULT_LEGEND_POSITION,
    DEFAULT_TREATMENT_RULE,
    DEFAULT_WINDOW,
    DEFAULT_YEAR,
    SITE_VARIANTS,
    TRANSPARENT,
    ChartConfig,
    ConfigError,
    DateWindow,
    SiteVariant,
    TreatmentRule,
    chart_config_for_site,
)
from vwc_reader import InputError, PreparedDataset, prepare  # noqa: E402

_PT_PER_CM = 72.0 / 2.54

# Padding (pt) between tick labels / axis titles and the axes.
_PAD_X_TICKLABELS = 13.0
_PAD_Y_TICKLABELS = 10.0
_PAD_Y_TITLE_LEFT = 5.0
_PAD_Y_TITLE_RIGHT = 7.0

_BAR_WIDTH_DAYS = 0.9


@dataclass(frozen=True)
class RenderedChart:
    figure: Figure
    axes: Axes
    secondary_axis: Any
    config: ChartConfig


def _sigmaplot_rc() -> dict:
    # Boxed, grid-free "SigmaPlot" look.
    return {
        "axes.facecolor": "white",
        "axes.edgecolor": "black",
        "axes.linewidth": 1.0,
        "axes.grid": False,
        "axes.spines.top": True,
        "axes.spines.right": True,
        "axes.spines.left": True,
        "axes.spines.bottom": True,
        "xtick.color": "black",
        "ytick.color": "black",
        "xtick.labelcolor": "black",
        "ytick.labelcolor": "black",
        "lines.linewidth": 1.0,
        "legend.fancybox": False,
        "legend.framealpha": 1.0,
        "legend.edgecolor": "black",
        "savefig.transparent": False,
    }


def _fmt_tick(value: float, _pos: Optional[int] = None) -> str:
    return f"{round(float(value), 10):g}"


def _tick_color(color: str) -> str:
    return "none" if color == TRANSPARENT else color


def _apply_tick_colors(axis: Axis, colors: Sequence[str]) -> None:
    for tick, color in zip(axis.get_major_ticks(len(colors)), colors):
        c = _tick_color(color)
        tick.tick1line.set_color(c)
        tick.tick2line.set_color(c)


def compose(prepared: PreparedDataset, config: ChartConfig) -> RenderedChart:
    config.validate()

    with plt.rc_context(_sigmaplot_rc()):
        fig, ax = plt.subplots(figsize=(config.width_in, config.height_in))

        ppt = prepared.precipitation
        if not ppt.empty:
            ax.bar(
                ppt["date"],
                ppt["amount_mm"] / config.scale_factor,
                width=_BAR_WIDTH_DAYS,
                color=config.bar_color,
                align="center",
                zorder=1,
            )

        vwc = prepared.moisture
        for style in config.treatment_styles:
            rows = vwc.loc[vwc["treatment"] == style.treatment]
            ax.plot(rows["date"], rows["vwc"], color=style.color, label=style.label, zorder=2)

        # Fixed axes; anything outside is clipped.
        ax.set_xlim(config.x_limits[0], config.x_limits[1])
        ax.xaxis.set_major_locator(mdates.MonthLocator())
        ax.xaxis.set_major_formatter(mdates.DateFormatter("%b"))
        ax.set_xlabel("")

        ax.set_ylim(*config.y_limits)
        ax.set_yticks(list(config.y_ticks))
        ax.yaxis.set_major_formatter(FuncFormatter(_fmt_tick))
        ax.set_ylabel(config.y_label, labelpad=_PAD_Y_TITLE_LEFT)

        sec = ax.secondary_yaxis("right", functions=(config.to_secondary, config.from_secondary))
        sec.set_ticks(list(config.secondary_ticks))
        sec.yaxis.set_major_formatter(FuncFormatter(_fmt_tick))
        sec.set_ylabel(config.secondary_label, labelpad=_PAD_Y_TITLE_RIGHT)

        tick_len = config.tick_length_cm * _PT_PER_CM
        ax.tick_params(axis="both", which="both", direction="in", length=tick_len)
        ax.tick_params(axis="x", pad=_PAD_X_TICKLABELS)
        ax.tick_params(axis="y", pad=_PAD_Y_TICKLABELS)
        sec.tick_params(axis="y", direction="in", length=tick_len, pad=_PAD_Y_TICKLABELS)

        # Must run after tick_params, which would otherwise reset the colors.
        _apply_tick_colors(ax.yaxis, config.tick_colors)
        _apply_tick_colors(sec.yaxis, config.tick_colors)

        if ax.get_legend_handles_labels()[0]:
            legend = ax.legend(
                title=config.legend_title,
                loc="center",
                bbox_to_anchor=config.legend_position,
                frameon=True,
            )
            legend.get_frame().set_linewidth(1.0)

        fig.tight_layout()

    return RenderedChart(figure=fig, axes=ax, secondary_axis=sec, config=config)


def render(prepared: PreparedDataset, config: ChartConfig) -> Path:
    chart = compose(prepared, config)
    out_path = config.output_path
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        chart.figure.savefig(out_path, dpi=config.dpi)
    finally:
        plt.close(chart.figure)
    return out_path


def make_vwc_ppt_plot(
    site: Union[str, SiteVariant],
    merge_intense_into_chronic: bool,
    use_shallow_depth: bool,
    legend_title: str,
    *,
    precip_path: Union[str, Path],
    output_path: Union[str, Path],
    moisture_path: Optional[Union[str, Path]] = None,
    data_dir: Optional[Union[str, Path]] = None,
    legend_position: Sequence[float] = DEFAULT_LEGEND_POSITION,
    year: int = DEFAULT_YEAR,
    window: DateWindow = DEFAULT_WINDOW,
    rule: TreatmentRule = DEFAULT_TREATMENT_RULE,
    dpi: int = DEFAULT_DPI,
) -> Path:
    config = chart_config_for_site(
        site,
        legend_title=legend_title,
        output_path=output_path,
        legend_position=legend_position,
        window=window,
        dpi=int(dpi),
    )
    prepared = prepare(
        site,
        merge_intense_into_chronic,
        use_shallow_depth,
        precip_path=precip_path,
        moisture_path=moisture_path,
        data_dir=data_dir,
        year=year,
        window=window,
        rule=rule,
    )
    return render(prepared, config)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Plot soil VWC per treatment over daily ambient precipitation for one site."
    )
    parser.add_argument("--site", required=True, choices=sorted(SITE_VARIANTS), help="Monitoring site")
    parser.add_argument("--precip", type=Path, required=True, help="Precipitation workbook (.xlsx, one sheet per site)")
    parser.add_argument(
        "--moisture",
        type=Path,
        default=None,
        help="Moisture CSV (default: <data-dir>/<site file name>)",
    )
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory holding the per-site moisture CSVs")
    parser.add_argument("--output", "-o", type=Path, required=True, help="Output image path (e.g., figs/chy.png)")
    parser.add_argument("--legend-title", default="", help="Legend title text")
    parser.add_argument(
        "--legend-position",
        type=float,
        nargs=2,
        metavar=("X", "Y"),
        default=list(DEFAULT_LEGEND_POSITION),
        help="Legend center in normalized axes coordinates (default: %(default)s)",
    )
    parser.add_argument(
        "--drop-intense",
        action="store_true",
        help="Drop the intense-drought plots instead of merging them into drought",
    )
    parser.add_argument(
        "--depth",
        choices=("shallow", "deep"),
        default="shallow",
        help="Measurement depth field (shallow=VWC45, deep=VWC90; default: shallow)",
    )
    parser.add_argument(
        "--window-rule",
        choices=("bounds", "months"),
        default=DEFAULT_WINDOW.moisture_rule,
        help="Moisture date filter: strict date bounds or calendar months Apr-Sep (default: %(default)s)",
    )
    parser.add_argument("--year", type=int, default=DEFAULT_YEAR, help="Calendar year to plot (default: %(default)s)")
    parser.add_argument("--dpi", type=int, default=DEFAULT_DPI, help="Output resolution (default: %(default)s)")
    args = parser.parse_args(argv)

    window = DateWindow(moisture_rule=args.window_rule)
    try:
        out_path = make_vwc_ppt_plot(
            args.site,
            not args.drop_intense,
            args.depth == "shallow",
            args.legend_title,
            precip_path=args.precip,
            output_path=args.output,
            moisture_path=args.moisture,
            data_dir=args.data_dir,
            legend_position=args.legend_position,
            year=args.year,
            window=window,
            dpi=args.dpi,
        )
    except (InputError, ConfigError, FileNotFoundError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    print(f"OK: wrote {out_path}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
