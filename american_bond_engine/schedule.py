from __future__ import annotations

import logging
from typing import List, Optional

from .bonds import CalculationInputs, CashFlowPeriod, GraceType, IntermediateComputations
from .config import DEFAULT_CONFIG, EngineConfig
from .rates import compound_to_period
from .utils import period_dates, expand_yearly_series

logger = logging.getLogger(__name__)


def capital_before_indexation(
    period: int,
    nominal_value: float,
    prev: Optional[CashFlowPeriod],
    capitalize_total_grace_interest: bool = False,
) -> float:
    """
    Outstanding capital at the start of a period, before indexation.

    - period 1: nominal value
    - previous period under total grace: previous indexed balance carried
      unchanged (plus the unpaid coupon when capitalizing grace interest)
    - otherwise: previous indexed balance + previous amortization
      (amortization is stored negative)
    """
    if period == 1:
        return float(nominal_value)
    if prev is None or prev.indexed_balance is None:
        raise ValueError(f"Period {period} needs the previous period's state.")

    if prev.grace is GraceType.TOTAL:
        if capitalize_total_grace_interest:
            return prev.indexed_balance - prev.coupon
        return prev.indexed_balance
    return prev.indexed_balance + prev.amortization


def amortization(period: int, total_periods: int, grace: GraceType, indexed_balance: float) -> float:
    """Bullet repayment: only a no-grace final period amortizes, and fully."""
    if period > total_periods:
        return 0.0
    if grace is GraceType.TOTAL or grace is GraceType.PARTIAL:
        return 0.0
    if grace is GraceType.NONE:
        return -indexed_balance if period == total_periods else 0.0
    raise ValueError(f"Unknown grace marker: {grace!r}")


def installment(grace: GraceType, coupon: float, amort: float) -> float:
    if grace is GraceType.TOTAL:
        return 0.0
    if grace is GraceType.PARTIAL:
        return coupon
    if grace is GraceType.NONE:
        return coupon + amort
    raise ValueError(f"Unknown grace marker: {grace!r}")


def premium(period: int, total_periods: int, premium_rate: float, nominal_value: float) -> float:
    return -premium_rate * nominal_value if period == total_periods else 0.0


def tax_shield(coupon: float, income_tax_rate: float) -> float:
    return -coupon * income_tax_rate


def issuer_flow(
    period: int,
    total_periods: int,
    commercial_value: float,
    issuer_costs: float,
    installment_amt: float,
    premium_amt: float,
) -> float:
    """Issuer's signed flow: net proceeds at 0, installment + premium after, 0 beyond maturity."""
    if period == 0:
        return commercial_value - issuer_costs
    if period <= total_periods:
        return installment_amt + premium_amt
    return 0.0


def opening_period(
    inputs: CalculationInputs,
    intermediates: IntermediateComputations,
    config: EngineConfig = DEFAULT_CONFIG,
) -> CashFlowPeriod:
    """Period 0: proceeds only, no coupon/amortization/grace semantics."""
    flow = issuer_flow(0, intermediates.total_periods, inputs.commercial_value,
                       intermediates.issuer_initial_costs, 0.0, 0.0)
    if config.holder_pays_initial_costs:
        holder = -(inputs.commercial_value + intermediates.holder_initial_costs)
    else:
        holder = -flow

    return CashFlowPeriod(
        period=0,
        date=inputs.issuance_date,
        annual_inflation=None,
        period_inflation=None,
        grace=None,
        capital=None,
        indexed_balance=None,
        coupon=None,
        installment=None,
        amortization=None,
        premium=None,
        tax_shield=None,
        issuer_flow=flow,
        issuer_flow_with_shield=flow,
        holder_flow=holder,
    )


def build_schedule(
    inputs: CalculationInputs,
    intermediates: IntermediateComputations,
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[CashFlowPeriod]:
    """
    Walk periods 0..total_periods and return one CashFlowPeriod each.

    Yearly inflation/grace series are expanded to period granularity here:
    period n uses year floor((n - 1) / periods_per_year).
    Discounting fields are left at zero; see valuation.annotate_periods.
    """
    n_total = intermediates.total_periods
    ppy = intermediates.periods_per_year

    inflation = expand_yearly_series(inputs.inflation_series, n_total, ppy)
    grace = expand_yearly_series(inputs.grace_series, n_total, ppy)
    dates = period_dates(inputs.issuance_date, n_total, intermediates.period_days)

    periods: List[CashFlowPeriod] = [opening_period(inputs, intermediates, config)]
    prev: Optional[CashFlowPeriod] = None

    for n in range(1, n_total + 1):
        g = grace[n - 1]
        infl_annual = float(inflation[n - 1])
        infl_period = compound_to_period(infl_annual, intermediates.period_days, inputs.day_count_basis)

        capital = capital_before_indexation(n, inputs.nominal_value, prev, config.capitalize_total_grace_interest)
        indexed = capital * (1.0 + infl_period)
        coupon = -indexed * intermediates.periodic_coupon_rate
        amort = amortization(n, n_total, g, indexed)
        inst = installment(g, coupon, amort)
        prem = premium(n, n_total, inputs.premium_rate, inputs.nominal_value)
        shield = tax_shield(coupon, inputs.income_tax_rate)
        flow = issuer_flow(n, n_total, inputs.commercial_value, intermediates.issuer_initial_costs, inst, prem)

        row = CashFlowPeriod(
            period=n,
            date=dates[n],
            annual_inflation=infl_annual,
            period_inflation=infl_period,
            grace=g,
            capital=capital,
            indexed_balance=indexed,
            coupon=coupon,
            installment=inst,
            amortization=amort,
            premium=prem,
            tax_shield=shield,
            issuer_flow=flow,
            issuer_flow_with_shield=flow + shield,
            holder_flow=-flow,
        )
        periods.append(row)
        prev = row

    if n_total and grace[-1] is not GraceType.NONE:
        logger.warning(
            "Final period is under %s grace; principal is never repaid within the schedule.",
            grace[-1].name,
        )
    logger.debug("Built schedule with %s periods", len(periods))
    return periods
