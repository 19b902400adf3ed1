#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

import pandas as pd

from vwc_reader import (
    DEEP_COL,
    SHALLOW_COL,
    TREATMENT_COL,
    InputError,
    list_sheets,
    read_moisture_table,
    read_precipitation_sheet,
)


def _fmt_range(dates: pd.Series) -> str:
    if dates.empty:
        return "n/a"
    return f"{dates.min():%Y-%m-%d} .. {dates.max():%Y-%m-%d}"


def _describe_moisture(path: Path) -> list[str]:
    df = read_moisture_table(path)
    lines = [f"- {path.name}: rows={len(df)}, dates={_fmt_range(df['date'])}"]
    counts = df[TREATMENT_COL].value_counts(dropna=False).sort_index()
    for code, n in counts.items():
        lines.append(f"  - {code}: {int(n)} rows")
    for col in (SHALLOW_COL, DEEP_COL):
        n_missing = int(df[col].isna().sum())
        lines.append(f"  - {col}: missing={n_missing}")
    return lines


def _describe_precip(path: Path, sheet: Optional[str]) -> list[str]:
    sheets = list_sheets(path)
    lines = [f"- {path.name}: sheets={sheets}"]
    if sheet is not None:
        df = read_precipitation_sheet(path, sheet)
        total = float(df["amount_mm"].sum())
        lines.append(f"  - {sheet}: rows={len(df)}, dates={_fmt_range(df['date'])}, total={total:g} mm")
    return lines


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Inspect VWC / precipitation inputs (row counts, date ranges, treatment codes, sheets)."
    )
    parser.add_argument("--moisture", type=Path, default=None, help="Moisture CSV to summarize")
    parser.add_argument("--precip", type=Path, default=None, help="Precipitation workbook (.xlsx)")
    parser.add_argument("--sheet", type=str, default=None, help="Sheet to summarize within the workbook")
    args = parser.parse_args(argv)

    if args.moisture is None and args.precip is None:
        print("ERROR: nothing to inspect (pass --moisture and/or --precip)", file=sys.stderr)
        return 2
    if args.sheet is not None and args.precip is None:
        print("ERROR: --sheet requires --precip", file=sys.stderr)
        return 2

    lines: list[str] = []
    try:
        if args.moisture is not None:
            lines.extend(_describe_moisture(args.moisture))
        if args.precip is not None:
            lines.extend(_describe_precip(args.precip, args.sheet))
    except (InputError, FileNotFoundError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    print("Input summary")
    for ln in lines:
        print(ln)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
