from __future__ import annotations

import datetime as _dt
import math
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Literal, Optional, Sequence, Union

# -----------------------------------------------------------------------------
# Defaults (match the published 2017 figures)
# -----------------------------------------------------------------------------

DEFAULT_YEAR = 2017
DEFAULT_SCALE_FACTOR = 300.0

DEFAULT_BAR_COLOR = "#162947"
DEFAULT_DROUGHT_COLOR = "#de9f40"
DEFAULT_CONTROL_COLOR = "#3e946c"

DEFAULT_Y_LABEL = "VWC %"
DEFAULT_SECONDARY_LABEL = "Ambient precipitation (mm)"
DEFAULT_LEGEND_POSITION = (0.75, 0.8)

DEFAULT_WIDTH_IN = 6.0
DEFAULT_HEIGHT_IN = 4.0
DEFAULT_DPI = 300
DEFAULT_TICK_LENGTH_CM = 0.25

DROUGHT = "drought"
CONTROL = "control"
TREATMENTS = (DROUGHT, CONTROL)

TRANSPARENT = "transparent"


class ConfigError(RuntimeError):
    pass


# -----------------------------------------------------------------------------
# Data-side configuration
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class TreatmentRule:
    """Raw treatment codes and the canonical category each one maps to.

    `intense_codes` are folded into drought when merging, dropped otherwise.
    """

    drought_codes: tuple[str, ...] = ("CHR",)
    intense_codes: tuple[str, ...] = ("INT",)
    control_codes: tuple[str, ...] = ("CON",)

    def mapping(self, *, merge_intense_into_chronic: bool) -> dict[str, str]:
        out = {code: DROUGHT for code in self.drought_codes}
        out.update({code: CONTROL for code in self.control_codes})
        if merge_intense_into_chronic:
            out.update({code: DROUGHT for code in self.intense_codes})
        return out


DEFAULT_TREATMENT_RULE = TreatmentRule()


@dataclass(frozen=True)
class DateWindow:
    # Both bounds are exclusive.
    start: _dt.date = _dt.date(2017, 4, 1)
    end: _dt.date = _dt.date(2017, 9, 15)
    # "months" keeps moisture rows whose calendar month is in [first_month, last_month].
    moisture_rule: Literal["bounds", "months"] = "bounds"
    first_month: int = 4
    last_month: int = 9

    def validate(self) -> None:
        if not self.start < self.end:
            raise ConfigError(f"date window start {self.start} must be before end {self.end}")
        if self.moisture_rule not in ("bounds", "months"):
            raise ConfigError(f"unsupported moisture window rule: {self.moisture_rule!r}")
        if not (1 <= self.first_month <= self.last_month <= 12):
            raise ConfigError(f"invalid month range: [{self.first_month}, {self.last_month}]")


DEFAULT_WINDOW = DateWindow()


# -----------------------------------------------------------------------------
# Site variants
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class SiteVariant:
    key: str
    sheet_name: str
    moisture_filename: str
    y_limits: tuple[float, float]
    y_ticks: tuple[float, ...]
    tick_colors: tuple[str, ...]


SITE_VARIANTS: dict[str, SiteVariant] = {
    "CHY": SiteVariant(
        key="CHY",
        sheet_name="CHY Daily PPT 2017",
        moisture_filename="CHY_VWC.csv",
        y_limits=(0.0, 0.3),
        y_ticks=(0.0, 0.1, 0.2, 0.3),
        tick_colors=(TRANSPARENT, "black", "black", TRANSPARENT),
    ),
    "HYS": SiteVariant(
        key="HYS",
        sheet_name="HYS Daily PPT 2017",
        moisture_filename="HYS_VWC.csv",
        y_limits=(0.0, 0.45),
        y_ticks=(0.0, 0.1, 0.2, 0.3, 0.4),
        # 0.4 sits below the top border, so only the bottom tick collides.
        tick_colors=(TRANSPARENT, "black", "black", "black", "black"),
    ),
}


def get_site(key: Union[str, SiteVariant]) -> SiteVariant:
    if isinstance(key, SiteVariant):
        return key
    site = SITE_VARIANTS.get(str(key).strip().upper())
    if site is None:
        known = ", ".join(sorted(SITE_VARIANTS))
        raise ConfigError(f"unknown site {key!r} (expected one of: {known})")
    return site


# -----------------------------------------------------------------------------
# Chart configuration
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class TreatmentStyle:
    treatment: str
    color: str
    label: str


DEFAULT_TREATMENT_STYLES = (
    TreatmentStyle(DROUGHT, DEFAULT_DROUGHT_COLOR, "Drought"),
    TreatmentStyle(CONTROL, DEFAULT_CONTROL_COLOR, "Control"),
)


@dataclass(frozen=True)
class ChartConfig:
    y_limits: tuple[float, float]
    y_ticks: tuple[float, ...]
    tick_colors: tuple[str, ...]
    legend_title: str
    output_path: Path
    scale_factor: float = DEFAULT_SCALE_FACTOR
    treatment_styles: tuple[TreatmentStyle, ...] = DEFAULT_TREATMENT_STYLES
    bar_color: str = DEFAULT_BAR_COLOR
    y_label: str = DEFAULT_Y_LABEL
    secondary_label: str = DEFAULT_SECONDARY_LABEL
    legend_position: tuple[float, float] = DEFAULT_LEGEND_POSITION
    x_limits: tuple[_dt.date, _dt.date] = (DEFAULT_WINDOW.start, DEFAULT_WINDOW.end)
    tick_length_cm: float = DEFAULT_TICK_LENGTH_CM
    width_in: float = DEFAULT_WIDTH_IN
    height_in: float = DEFAULT_HEIGHT_IN
    dpi: int = DEFAULT_DPI

    @property
    def secondary_ticks(self) -> tuple[float, ...]:
        return tuple(v * self.scale_factor for v in self.y_ticks)

    def to_secondary(self, value: float) -> float:
        return value * self.scale_factor

    def from_secondary(self, value: float) -> float:
        return value / self.scale_factor

    def validate(self) -> None:
        lo, hi = self.y_limits
        if not (math.isfinite(lo) and math.isfinite(hi) and lo < hi):
            raise ConfigError(f"invalid y limits: {self.y_limits!r}")
        if not self.y_ticks:
            raise ConfigError("y ticks must not be empty")
        if any(b <= a for a, b in zip(self.y_ticks, self.y_ticks[1:])):
            raise ConfigError(f"y ticks must be strictly increasing: {self.y_ticks!r}")
        if self.y_ticks[0] < lo or self.y_ticks[-1] > hi:
            raise ConfigError(f"y ticks {self.y_ticks!r} fall outside limits {self.y_limits!r}")
        if len(self.tick_colors) != len(self.y_ticks):
            raise ConfigError(
                f"tick color list has {len(self.tick_colors)} entries for {len(self.y_ticks)} ticks"
            )
        if not (math.isfinite(self.scale_factor) and self.scale_factor > 0):
            raise ConfigError(f"scale factor must be finite and > 0: {self.scale_factor!r}")

        seen: set[str] = set()
        for style in self.treatment_styles:
            if style.treatment not in TREATMENTS:
                raise ConfigError(f"unknown treatment in styles: {style.treatment!r}")
            if style.treatment in seen:
                raise ConfigError(f"duplicate style for treatment {style.treatment!r}")
            seen.add(style.treatment)

        x, y = self.legend_position
        if not (0.0 <= x <= 1.0 and 0.0 <= y <= 1.0):
            raise ConfigError(f"legend position must be in normalized [0, 1] space: {self.legend_position!r}")
        if not self.x_limits[0] < self.x_limits[1]:
            raise ConfigError(f"invalid date limits: {self.x_limits!r}")
        if self.width_in <= 0 or self.height_in <= 0 or self.dpi <= 0:
            raise ConfigError(
                f"figure size must be positive: {self.width_in}x{self.height_in} in @ {self.dpi} dpi"
            )
        if self.tick_length_cm < 0:
            raise ConfigError(f"tick length must be >= 0: {self.tick_length_cm!r}")


def chart_config_for_site(
    site: Union[str, SiteVariant],
    *,
    legend_title: str,
    output_path: Union[str, Path],
    legend_position: Sequence[float] = DEFAULT_LEGEND_POSITION,
    window: Optional[DateWindow] = None,
    **overrides: object,
) -> ChartConfig:
    s = get_site(site)
    w = window if window is not None else DEFAULT_WINDOW
    if len(legend_position) != 2:
        raise ConfigError(f"legend position needs two coordinates, got {list(legend_position)!r}")
    cfg = ChartConfig(
        y_limits=s.y_limits,
        y_ticks=s.y_ticks,
        tick_colors=s.tick_colors,
        legend_title=legend_title,
        output_path=Path(output_path),
        legend_position=(float(legend_position[0]), float(legend_position[1])),
        x_limits=(w.start, w.end),
    )
    if overrides:
        try:
            cfg = replace(cfg, **overrides)
        except TypeError as e:
            raise ConfigError(f"invalid chart option: {e}") from e
    cfg.validate()
    return cfg
