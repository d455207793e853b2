from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import List, Sequence

import numpy as np

from .bonds import CashFlowPeriod
from .errors import CalculationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Valuation:
    price: float
    duration: float
    modified_duration: float
    convexity: float
    discounted: np.ndarray       # index 0 = period 0, undiscounted
    duration_terms: np.ndarray
    convexity_terms: np.ndarray


def discount_flows(holder_flows: Sequence[float], periodic_discount_rate: float) -> np.ndarray:
    """Holder flow n / (1+d)^n; period 0 is the present and stays as-is."""
    flows = np.asarray(holder_flows, dtype=float)
    n = np.arange(len(flows), dtype=float)
    return flows / (1.0 + periodic_discount_rate) ** n


def price(discounted: np.ndarray) -> float:
    """Present value of holder flows, periods >= 1 only."""
    return float(np.sum(discounted[1:]))


def _pv_or_raise(discounted: np.ndarray) -> float:
    pv = price(discounted)
    if pv == 0.0:
        raise CalculationError("Present value of holder flows is zero; duration/convexity undefined.")
    return pv


def duration(discounted: np.ndarray, period_days: int, day_count_basis: int) -> float:
    """Macaulay duration in years: sum(PV_n * t_n) / sum(PV_n), n >= 1."""
    pv = _pv_or_raise(discounted)
    n = np.arange(len(discounted), dtype=float)
    weighted = discounted[1:] * n[1:] * (period_days / day_count_basis)
    return float(np.sum(weighted) / pv)


def modified_duration(macaulay: float, periodic_discount_rate: float) -> float:
    return macaulay / (1.0 + periodic_discount_rate)


def convexity(
    discounted: np.ndarray,
    periodic_discount_rate: float,
    period_days: int,
    day_count_basis: int,
) -> float:
    """
    sum(PV_n * n * (n+1)) / ((1+d)^2 * sum(PV_n) * (basis/period_days)^2), n >= 1.
    """
    pv = _pv_or_raise(discounted)
    n = np.arange(len(discounted), dtype=float)
    num = np.sum(discounted[1:] * n[1:] * (n[1:] + 1.0))
    den = (1.0 + periodic_discount_rate) ** 2 * pv * (day_count_basis / period_days) ** 2
    return float(num / den)


def aggregate(
    periods: Sequence[CashFlowPeriod],
    periodic_discount_rate: float,
    period_days: int,
    day_count_basis: int,
) -> Valuation:
    """
    Price, duration, modified duration and convexity of a full schedule.

    Holder flows with zero present value (e.g. total grace to maturity and
    no premium) have no defined sensitivities; they are reported as 0 with a
    warning.
    """
    if len(periods) < 2:
        raise CalculationError("Schedule must contain period 0 and at least one payment period.")

    disc = discount_flows([p.holder_flow for p in periods], periodic_discount_rate)
    n = np.arange(len(disc), dtype=float)

    dur_terms = disc * n * (period_days / day_count_basis)
    conv_terms = disc * n * (n + 1.0)
    dur_terms[0] = 0.0
    conv_terms[0] = 0.0

    pv = price(disc)
    if pv == 0.0:
        logger.warning("Holder flows have zero present value; duration and convexity reported as 0.")
        mac, conv = 0.0, 0.0
    else:
        mac = duration(disc, period_days, day_count_basis)
        conv = convexity(disc, periodic_discount_rate, period_days, day_count_basis)

    return Valuation(
        price=pv,
        duration=mac,
        modified_duration=modified_duration(mac, periodic_discount_rate),
        convexity=conv,
        discounted=disc,
        duration_terms=dur_terms,
        convexity_terms=conv_terms,
    )


def annotate_periods(periods: Sequence[CashFlowPeriod], valuation: Valuation) -> List[CashFlowPeriod]:
    """Copy discounted flow and duration/convexity terms onto each period."""
    return [
        replace(
            p,
            discounted_flow=float(valuation.discounted[i]),
            duration_term=float(valuation.duration_terms[i]),
            convexity_term=float(valuation.convexity_terms[i]),
        )
        for i, p in enumerate(periods)
    ]
