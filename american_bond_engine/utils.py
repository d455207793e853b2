from __future__ import annotations

import math
from typing import List, Sequence, Tuple, TypeVar

import pandas as pd

T = TypeVar("T")


def yearfrac(start: pd.Timestamp, end: pd.Timestamp, convention: str) -> float:
    """
    Year fraction between two dates under an actual-days convention.

    Supported:
    - ACT/365, ACT/365F
    - ACT/360
    """
    start = pd.Timestamp(start)
    end = pd.Timestamp(end)

    convention = convention.upper().replace(" ", "")
    if end < start:
        raise ValueError(f"end < start: {start=} {end=}")

    if convention in ("ACT/365", "ACT/365F"):
        return (end - start).days / 365.0

    if convention == "ACT/360":
        return (end - start).days / 360.0

    raise ValueError(f"Unsupported day count convention: {convention}")


def day_count_convention(day_count_basis: int) -> str:
    """ACT convention string matching a 360/365 day-count basis."""
    if day_count_basis == 360:
        return "ACT/360"
    if day_count_basis == 365:
        return "ACT/365"
    raise ValueError(f"Unsupported day-count basis: {day_count_basis}")


def period_date(issuance_date: pd.Timestamp, period: int, period_days: int) -> pd.Timestamp:
    """Payment date of a period: issuance + period * period_days calendar days."""
    if period < 0:
        raise ValueError("period must be non-negative")
    return pd.Timestamp(issuance_date) + pd.Timedelta(days=period * period_days)


def period_dates(issuance_date: pd.Timestamp, total_periods: int, period_days: int) -> Tuple[pd.Timestamp, ...]:
    """Dates for periods 0..total_periods."""
    issuance_date = pd.Timestamp(issuance_date)
    return tuple(period_date(issuance_date, n, period_days) for n in range(total_periods + 1))


def year_index(period: int, periods_per_year: float) -> int:
    """
    Zero-based year a period falls in: floor((period - 1) / periods_per_year).

    The last period of a year stays in that year, e.g. with 2 periods per year
    periods 1 and 2 map to year 0, period 3 to year 1. Fractional
    periods_per_year (365-day basis) use the same rule.
    """
    if period < 1:
        raise ValueError("Only periods >= 1 belong to a year")
    if periods_per_year <= 0:
        raise ValueError("periods_per_year must be positive")
    return int(math.floor((period - 1) / periods_per_year))


def expand_yearly_series(
    series: Sequence[T],
    total_periods: int,
    periods_per_year: float,
) -> List[T]:
    """
    Expand a per-year series to one value per period 1..total_periods.

    Returns a list where element k holds the value for period k + 1.
    """
    if len(series) == 0:
        raise ValueError("Cannot expand an empty yearly series")

    out: List[T] = []
    for n in range(1, total_periods + 1):
        y = year_index(n, periods_per_year)
        if y >= len(series):
            raise ValueError(
                f"Period {n} maps to year {y + 1} but the series has {len(series)} entries"
            )
        out.append(series[y])
    return out
