#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

# figures/py is not a Python package, so add it to sys.path explicitly.
_REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(_REPO_ROOT / "figures" / "py"))
from plot_vwc_ppt import make_vwc_ppt_plot  # noqa: E402
from vwc_config import (  # noqa: E402
    DEFAULT_DPI,
    DEFAULT_LEGEND_POSITION,
    DEFAULT_YEAR,
    SITE_VARIANTS,
    ConfigError,
    DateWindow,
)
from vwc_reader import InputError  # noqa: E402

_DEPTHS = {"shallow": True, "deep": False}


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Render the VWC / precipitation figure for every site and depth.")
    ap.add_argument("--data-dir", type=Path, default=Path("data"), help="Directory with the per-site moisture CSVs")
    ap.add_argument("--precip", type=Path, default=Path("data/Daily_PPT_2017.xlsx"))
    ap.add_argument("--outdir", type=Path, default=Path("figs/vwc_ppt"))
    ap.add_argument("--sites", nargs="+", choices=sorted(SITE_VARIANTS), default=sorted(SITE_VARIANTS))
    ap.add_argument("--depths", nargs="+", choices=sorted(_DEPTHS), default=sorted(_DEPTHS))
    ap.add_argument("--drop-intense", action="store_true")
    ap.add_argument("--legend-title", default="")
    ap.add_argument("--legend-position", type=float, nargs=2, default=list(DEFAULT_LEGEND_POSITION))
    ap.add_argument("--window-rule", choices=("bounds", "months"), default="bounds")
    ap.add_argument("--year", type=int, default=DEFAULT_YEAR)
    ap.add_argument("--dpi", type=int, default=DEFAULT_DPI)
    args = ap.parse_args(argv)

    window = DateWindow(moisture_rule=args.window_rule)
    failures: list[str] = []
    for site in args.sites:
        for depth in args.depths:
            out_path = args.outdir / f"vwc_ppt_{site.lower()}_{depth}.png"
            try:
                make_vwc_ppt_plot(
                    site,
                    not args.drop_intense,
                    _DEPTHS[depth],
                    args.legend_title,
                    precip_path=args.precip,
                    output_path=out_path,
                    data_dir=args.data_dir,
                    legend_position=args.legend_position,
                    year=args.year,
                    window=window,
                    dpi=args.dpi,
                )
            except (InputError, ConfigError, FileNotFoundError) as e:
                failures.append(f"{site} ({depth}): {e}")
                continue
            print(f"OK: {site} ({depth}) -> {out_path}")

    if failures:
        print("\nFAIL:", file=sys.stderr)
        for line in failures:
            print(f"- {line}", file=sys.stderr)
        return 2

    print(f"OK: wrote figures under {args.outdir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
