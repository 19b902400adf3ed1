from __future__ import annotations

import datetime as _dt
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from vwc_config import (
    DEFAULT_TREATMENT_RULE,
    DEFAULT_WINDOW,
    DEFAULT_YEAR,
    TREATMENTS,
    ConfigError,
    DateWindow,
    SiteVariant,
    TreatmentRule,
    get_site,
)

DATE_FORMAT = "%m/%d/%Y"

TIMESTAMP_COL = "TIMESTAMP"
TREATMENT_COL = "Treatment"
SHALLOW_COL = "VWC45"
DEEP_COL = "VWC90"

PPT_DATE_COL = "date"
PPT_AMOUNT_COL = "ambient precip (mm)"


class InputError(RuntimeError):
    def __init__(self, message: str, *, path: Optional[Path] = None) -> None:
        prefix = f"{path}: " if path is not None else ""
        super().__init__(f"{prefix}{message}")
        self.path = path


class ParseError(InputError):
    pass


class SheetNotFoundError(InputError):
    pass


@dataclass(frozen=True)
class PreparedDataset:
    site: str
    value_column: str
    # columns: date, treatment, vwc
    moisture: pd.DataFrame
    # columns: date, amount_mm
    precipitation: pd.DataFrame


def _require_file(path: Path, what: str) -> None:
    if not path.exists():
        raise FileNotFoundError(f"missing {what}: {path}")
    if not path.is_file():
        raise FileNotFoundError(f"not a file ({what}): {path}")


def _require_columns(df: pd.DataFrame, columns: tuple[str, ...], *, path: Path) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ParseError(f"missing column(s) {missing} (found: {list(df.columns)})", path=path)


def _date_text(v: object) -> object:
    # Workbook cells may already hold dates.
    if isinstance(v, _dt.date):
        return v.strftime(DATE_FORMAT)
    return v


def _parse_dates(values: pd.Series, *, path: Path, column: str) -> pd.Series:
    if pd.api.types.is_datetime64_any_dtype(values):
        parsed = pd.to_datetime(values)
    else:
        text = values.map(_date_text).astype("string").str.strip()
        # A trailing time of day is ignored; readings are binned per calendar day.
        token = text.str.split(n=1).str[0]
        try:
            parsed = pd.to_datetime(token, format=DATE_FORMAT, errors="raise")
        except (ValueError, TypeError) as e:
            raise ParseError(f"malformed date in column {column!r} (expected MM/DD/YYYY): {e}", path=path) from e

    bad = parsed.isna()
    if bool(bad.any()):
        # Index labels are the original data rows (blank rows dropped, not renumbered).
        row = int(bad[bad].index[0])
        raise ParseError(f"missing date in column {column!r} at data row {row + 1}", path=path)
    return parsed.dt.normalize()


def _drop_blank_rows(raw: pd.DataFrame, columns: tuple[str, ...]) -> pd.DataFrame:
    # Spacer rows in hand-edited files carry no values at all.
    return raw.dropna(how="all", subset=list(columns))


def _parse_numbers(values: pd.Series, *, path: Path, column: str) -> pd.Series:
    try:
        return pd.to_numeric(values, errors="raise").astype(float)
    except (ValueError, TypeError) as e:
        raise ParseError(f"malformed number in column {column!r}: {e}", path=path) from e


# -----------------------------------------------------------------------------
# Readers
# -----------------------------------------------------------------------------


def read_moisture_table(path: Union[str, Path]) -> pd.DataFrame:
    """Read a logger export into columns: date, Treatment, VWC45, VWC90.

    Missing values (`NA`, empty cells) are kept as NaN.
    """
    p = Path(path)
    _require_file(p, "moisture file")
    try:
        raw = pd.read_csv(p, sep=",", dtype={TIMESTAMP_COL: "string", TREATMENT_COL: "string"})
    except pd.errors.ParserError as e:
        raise ParseError(f"unreadable CSV: {e}", path=p) from e
    except pd.errors.EmptyDataError as e:
        raise ParseError("empty moisture file", path=p) from e

    columns = (TIMESTAMP_COL, TREATMENT_COL, SHALLOW_COL, DEEP_COL)
    _require_columns(raw, columns, path=p)
    raw = _drop_blank_rows(raw, columns)

    out = pd.DataFrame(
        {
            "date": _parse_dates(raw[TIMESTAMP_COL], path=p, column=TIMESTAMP_COL),
            TREATMENT_COL: raw[TREATMENT_COL].str.strip(),
            SHALLOW_COL: _parse_numbers(raw[SHALLOW_COL], path=p, column=SHALLOW_COL),
            DEEP_COL: _parse_numbers(raw[DEEP_COL], path=p, column=DEEP_COL),
        }
    )
    return out.reset_index(drop=True)


def list_sheets(path: Union[str, Path]) -> list[str]:
    p = Path(path)
    _require_file(p, "precipitation workbook")
    try:
        with pd.ExcelFile(p) as xls:
            return [str(s) for s in xls.sheet_names]
    except (ValueError, zipfile.BadZipFile) as e:
        raise ParseError(f"unreadable workbook: {e}", path=p) from e


def read_precipitation_sheet(path: Union[str, Path], sheet: str) -> pd.DataFrame:
    """Read one site sheet into columns: date, amount_mm (ordered by date)."""
    p = Path(path)
    _require_file(p, "precipitation workbook")
    try:
        with pd.ExcelFile(p) as xls:
            if sheet not in xls.sheet_names:
                raise SheetNotFoundError(
                    f"sheet {sheet!r} not found (available: {list(xls.sheet_names)})", path=p
                )
            raw = xls.parse(sheet)
    except (ValueError, zipfile.BadZipFile) as e:
        raise ParseError(f"unreadable workbook: {e}", path=p) from e

    _require_columns(raw, (PPT_DATE_COL, PPT_AMOUNT_COL), path=p)
    raw = _drop_blank_rows(raw, (PPT_DATE_COL, PPT_AMOUNT_COL))

    amount = _parse_numbers(raw[PPT_AMOUNT_COL], path=p, column=PPT_AMOUNT_COL)
    if bool((amount < 0).any()):
        raise ParseError(f"negative value in column {PPT_AMOUNT_COL!r}", path=p)

    out = pd.DataFrame(
        {
            "date": _parse_dates(raw[PPT_DATE_COL], path=p, column=PPT_DATE_COL),
            "amount_mm": amount,
        }
    )
    return out.sort_values("date", kind="stable").reset_index(drop=True)


# -----------------------------------------------------------------------------
# Transforms
# -----------------------------------------------------------------------------


def normalize_treatments(
    df: pd.DataFrame,
    *,
    merge_intense_into_chronic: bool,
    rule: TreatmentRule = DEFAULT_TREATMENT_RULE,
    path: Optional[Path] = None,
) -> pd.DataFrame:
    codes = df[TREATMENT_COL]
    mapping = rule.mapping(merge_intense_into_chronic=merge_intense_into_chronic)
    dropped = set() if merge_intense_into_chronic else set(rule.intense_codes)

    known = codes.isin(list(mapping)) | codes.isin(list(dropped))
    if not bool(known.fillna(False).all()):
        unknown = sorted({str(c) for c in codes[~known.fillna(False)]})
        raise ParseError(f"unrecognized treatment code(s): {unknown}", path=path)

    out = df.loc[~codes.isin(list(dropped))].copy()
    out["treatment"] = pd.Categorical(out[TREATMENT_COL].map(mapping), categories=list(TREATMENTS))
    return out.drop(columns=[TREATMENT_COL]).reset_index(drop=True)


def filter_year(df: pd.DataFrame, year: int, *, column: str = "date") -> pd.DataFrame:
    return df.loc[df[column].dt.year == int(year)].reset_index(drop=True)


def daily_means(df: pd.DataFrame, value_column: str) -> pd.DataFrame:
    # mean() skips NaN; an all-NaN group stays NaN.
    out = (
        df.groupby(["date", "treatment"], observed=True, sort=True)[value_column]
        .mean()
        .reset_index()
        .rename(columns={value_column: "vwc"})
    )
    out["vwc"] = out["vwc"].astype(float)
    return out


def apply_window(
    df: pd.DataFrame,
    window: DateWindow,
    *,
    column: str = "date",
    rule: Optional[str] = None,
) -> pd.DataFrame:
    d = df[column]
    rule = rule if rule is not None else "bounds"
    if rule == "months":
        month = d.dt.month
        mask = (month >= window.first_month) & (month <= window.last_month)
    elif rule == "bounds":
        mask = (d > pd.Timestamp(window.start)) & (d < pd.Timestamp(window.end))
    else:
        raise ConfigError(f"unsupported window rule: {rule!r}")
    return df.loc[mask].reset_index(drop=True)


def resolve_moisture_path(
    site: SiteVariant,
    *,
    moisture_path: Optional[Union[str, Path]] = None,
    data_dir: Optional[Union[str, Path]] = None,
) -> Path:
    if moisture_path is not None:
        return Path(moisture_path)
    if data_dir is not None:
        return Path(data_dir) / site.moisture_filename
    raise ConfigError(f"no moisture file given for site {site.key} (pass moisture_path or data_dir)")


def prepare(
    site: Union[str, SiteVariant],
    merge_intense_into_chronic: bool,
    use_shallow_depth: bool,
    *,
    precip_path: Union[str, Path],
    moisture_path: Optional[Union[str, Path]] = None,
    data_dir: Optional[Union[str, Path]] = None,
    year: int = DEFAULT_YEAR,
    window: DateWindow = DEFAULT_WINDOW,
    rule: TreatmentRule = DEFAULT_TREATMENT_RULE,
) -> PreparedDataset:
    s = get_site(site)
    window.validate()
    vwc_path = resolve_moisture_path(s, moisture_path=moisture_path, data_dir=data_dir)
    value_column = SHALLOW_COL if use_shallow_depth else DEEP_COL

    vwc = read_moisture_table(vwc_path)
    vwc = normalize_treatments(
        vwc, merge_intense_into_chronic=merge_intense_into_chronic, rule=rule, path=vwc_path
    )
    vwc = filter_year(vwc, year)
    vwc = daily_means(vwc, value_column)
    vwc = apply_window(vwc, window, rule=window.moisture_rule)

    ppt = read_precipitation_sheet(precip_path, s.sheet_name)
    ppt = apply_window(ppt, window, rule="bounds")

    return PreparedDataset(
        site=s.key,
        value_column=value_column,
        moisture=vwc,
        precipitation=ppt,
    )
