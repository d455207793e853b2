from __future__ import annotations

import logging
import math
from typing import Optional, Tuple

from .bonds import (
    CalculationInputs,
    CapitalizationFrequency,
    CouponFrequency,
    IntermediateComputations,
    RateType,
)
from .config import DEFAULT_CONFIG, EngineConfig

logger = logging.getLogger(__name__)


def period_days(frequency: CouponFrequency) -> int:
    """Coupon period length in days (30/60/90/120/180/360)."""
    return CouponFrequency(frequency).days


def capitalization_days(frequency: Optional[CapitalizationFrequency]) -> Optional[int]:
    if frequency is None:
        return None
    return CapitalizationFrequency(frequency).days


def periods_per_year(day_count_basis: int, coupon_days: int) -> float:
    return day_count_basis / coupon_days


def total_periods(ppy: float, term_years: int) -> int:
    """
    Whole number of coupon periods over the term.

    With a 365-day basis periods_per_year is fractional (e.g. 365/180); the
    trailing partial period is dropped.
    """
    # guard against 2.0000000001 * 5 style noise before flooring
    return int(math.floor(round(ppy * term_years, 9)))


def effective_annual_rate(
    rate_type: RateType,
    annual_rate: float,
    day_count_basis: int,
    cap_days: Optional[int],
) -> float:
    """
    TEA from the quoted annual rate.

    Nominal rates compound m = basis / cap_days times a year:
        TEA = (1 + j/m)^m - 1
    """
    if rate_type is RateType.EFFECTIVE:
        return float(annual_rate)

    if not cap_days:
        raise ValueError("Nominal rate requires a capitalization period.")
    m = day_count_basis / cap_days
    return (1.0 + annual_rate / m) ** m - 1.0


def compound_to_period(annual_rate: float, coupon_days: int, day_count_basis: int) -> float:
    """Annual effective rate re-expressed over one coupon period: (1+r)^(days/basis) - 1."""
    return (1.0 + annual_rate) ** (coupon_days / day_count_basis) - 1.0


def issuer_initial_costs(inputs: CalculationInputs) -> float:
    rate = (
        inputs.structuring_cost_rate
        + inputs.placement_cost_rate
        + inputs.floatation_cost_rate
        + inputs.custody_cost_rate
    )
    return rate * inputs.commercial_value


def holder_cost_rates(inputs: CalculationInputs, config: EngineConfig = DEFAULT_CONFIG) -> Tuple[float, float]:
    """
    Holder-side (floatation, custody) cost rates.

    Explicit holder rates on the inputs win; otherwise the holder pays what is
    left of the regulatory cap after the issuer's share, floored at zero.
    """
    floatation = inputs.holder_floatation_cost_rate
    if floatation is None:
        floatation = max(0.0, config.floatation_cap - inputs.floatation_cost_rate)

    custody = inputs.holder_custody_cost_rate
    if custody is None:
        custody = max(0.0, config.custody_cap - inputs.custody_cost_rate)

    return float(floatation), float(custody)


def holder_initial_costs(inputs: CalculationInputs, config: EngineConfig = DEFAULT_CONFIG) -> float:
    floatation, custody = holder_cost_rates(inputs, config)
    return (floatation + custody) * inputs.commercial_value


def normalize(inputs: CalculationInputs, config: EngineConfig = DEFAULT_CONFIG) -> IntermediateComputations:
    """
    Derive the per-period rate basis and initial costs of a bond.

    Inputs are assumed validated (see bonds.validate_inputs).
    """
    coupon_days = period_days(inputs.coupon_frequency)
    cap_days = capitalization_days(inputs.capitalization_frequency)

    ppy = periods_per_year(inputs.day_count_basis, coupon_days)
    n_periods = total_periods(ppy, inputs.term_years)
    if n_periods < 1:
        raise ValueError("Term is shorter than one coupon period.")

    tea = effective_annual_rate(inputs.rate_type, inputs.annual_rate, inputs.day_count_basis, cap_days)
    coupon_rate = compound_to_period(tea, coupon_days, inputs.day_count_basis)
    discount_rate = compound_to_period(inputs.discount_rate, coupon_days, inputs.day_count_basis)

    h_floatation, h_custody = holder_cost_rates(inputs, config)

    out = IntermediateComputations(
        period_days=coupon_days,
        capitalization_days=cap_days,
        periods_per_year=ppy,
        total_periods=n_periods,
        effective_annual_rate=tea,
        periodic_coupon_rate=coupon_rate,
        periodic_discount_rate=discount_rate,
        issuer_initial_costs=issuer_initial_costs(inputs),
        holder_initial_costs=holder_initial_costs(inputs, config),
        holder_floatation_cost_rate=h_floatation,
        holder_custody_cost_rate=h_custody,
    )
    logger.debug(
        "Normalized rates: periods=%s/%s TEA=%s coupon=%s discount=%s",
        out.total_periods, out.periods_per_year, tea, coupon_rate, discount_rate,
    )
    return out
