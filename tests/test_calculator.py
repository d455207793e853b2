import logging
import math
from dataclasses import replace

import pandas as pd
import pytest

from american_bond_engine import BondCalculator, PrecisionConfig, calculate, calculate_quick_metrics
from american_bond_engine.bonds import CapitalizationFrequency, CouponFrequency, GraceType, RateType
from american_bond_engine.config import EngineConfig
from american_bond_engine.errors import ValidationError


@pytest.fixture(scope="module")
def result(worked_inputs):
    return calculate(worked_inputs)


def test_worked_example_metrics(result):
    m = result.metrics
    assert m.price == pytest.approx(1753.34, rel=1e-3)
    assert m.duration == pytest.approx(4.45, rel=1e-3)
    assert m.convexity == pytest.approx(22.39, rel=1e-3)
    assert m.decision_ratio == pytest.approx(26.84, rel=1e-3)
    assert m.modified_duration == pytest.approx(4.35, rel=1e-3)
    assert m.tcea_issuer == pytest.approx(0.1845, rel=1e-3)
    assert m.tcea_issuer_with_shield == pytest.approx(0.1579, rel=1e-3)
    assert m.trea_holder == pytest.approx(0.1756, rel=1e-3)


def test_gain_loss_is_price_net_of_outlay(result):
    m = result.metrics
    assert m.gain_loss == pytest.approx(m.price - 1059.975, abs=1e-5)
    assert m.gain_loss == pytest.approx(693.37, rel=1e-3)


def test_yields_report_convergence(result):
    assert set(result.yields) == {"tcea_issuer", "tcea_issuer_with_shield", "trea_holder"}
    assert result.converged
    for y in result.yields.values():
        assert y.converged and not y.degenerate
        assert abs(y.residual) < 1e-6


def test_tax_shield_lowers_issuer_cost(result):
    assert result.metrics.tcea_issuer_with_shield < result.metrics.tcea_issuer


def test_intermediates(result):
    inter = result.intermediates
    assert inter.total_periods == 10
    assert inter.periodic_coupon_rate == pytest.approx(0.0392305, abs=1e-7)
    assert inter.periodic_discount_rate == pytest.approx(0.0222524, abs=1e-7)
    assert inter.issuer_initial_costs == pytest.approx(23.10, abs=1e-9)
    assert inter.holder_initial_costs == pytest.approx(9.975, abs=1e-9)


def test_idempotent(worked_inputs, result):
    again = calculate(worked_inputs)
    assert again.periods == result.periods
    assert again.metrics == result.metrics
    assert again.intermediates == result.intermediates


def test_quick_metrics_match_full(worked_inputs, result):
    assert calculate_quick_metrics(worked_inputs) == result.metrics
    assert BondCalculator().calculate_quick_metrics(worked_inputs) == result.metrics


def test_recalculate_flows(worked_inputs, result):
    flows = BondCalculator().recalculate_flows(worked_inputs, result.intermediates)
    assert len(flows) == len(result.periods)
    assert flows[-1].holder_flow == pytest.approx(result.periods[-1].holder_flow, abs=1e-6)


def test_precision_rounding(worked_inputs):
    two = calculate(worked_inputs, PrecisionConfig(decimal_places=2))
    assert two.metrics.price == round(two.metrics.price, 2)
    assert two.periods[0].holder_flow == pytest.approx(-1059.98, abs=1e-12), "-1059.975 rounds half away from zero"
    assert two.periods[0].issuer_flow == 1026.9


def test_precision_does_not_change_yields(worked_inputs, result):
    two = calculate(worked_inputs, PrecisionConfig(decimal_places=2))
    assert two.yields["trea_holder"].periodic_rate == result.yields["trea_holder"].periodic_rate


def test_day_count_year_basis(worked_inputs, result):
    calc = BondCalculator(EngineConfig(yield_year_basis="day_count"))
    commercial = calc.calculate(worked_inputs)
    periodic = result.yields["tcea_issuer"].periodic_rate
    assert commercial.metrics.tcea_issuer == pytest.approx((1.0 + periodic) ** 2 - 1.0, abs=1e-6)
    assert commercial.metrics.price == result.metrics.price


def test_to_frame(result):
    frame = result.to_frame()
    assert isinstance(frame, pd.DataFrame)
    assert len(frame) == 11
    assert frame.loc[1, "grace"] == "S"
    assert frame.loc[0, "grace"] is None
    assert frame["holder_flow"].iloc[0] == result.periods[0].holder_flow
    assert frame["discounted_flow"].iloc[1:].sum() == pytest.approx(result.metrics.price, rel=1e-6)


def test_validation_runs_first(worked_inputs):
    bad = replace(worked_inputs, nominal_value=0.0, inflation_series=(0.1,) * 4)
    with pytest.raises(ValidationError) as exc:
        calculate(bad)
    assert set(exc.value.codes) == {"INVALID_NOMINAL_VALUE", "INVALID_INFLATION_SERIES_LENGTH"}


def test_constant_flows_have_no_nan(make_inputs):
    res = calculate(make_inputs(inflation_series=(0.0,) * 5))
    for value in (res.metrics.price, res.metrics.trea_holder, res.metrics.tcea_issuer):
        assert not math.isnan(value)


def test_zero_present_value_is_reported_not_raised(make_inputs, caplog):
    inputs = make_inputs(grace_series=(GraceType.TOTAL,) * 5, premium_rate=0.0)
    with caplog.at_level(logging.WARNING, logger="american_bond_engine.valuation"):
        res = calculate(inputs)
    m = res.metrics
    assert m.price == 0.0
    assert (m.duration, m.modified_duration, m.convexity, m.decision_ratio) == (0.0, 0.0, 0.0, 0.0)
    assert m.gain_loss == pytest.approx(-1059.975, abs=1e-9)
    assert all(y.degenerate for y in res.yields.values())
    assert m.trea_holder == 0.0 and not math.isnan(m.tcea_issuer)
    assert "zero present value" in caplog.text


def test_long_monthly_nominal_bond_on_365_basis(make_inputs):
    inputs = make_inputs(
        term_years=30,
        coupon_frequency=CouponFrequency.MONTHLY,
        day_count_basis=365,
        rate_type=RateType.NOMINAL,
        capitalization_frequency=CapitalizationFrequency.DAILY,
        annual_rate=0.09,
        discount_rate=0.06,
        inflation_series=(0.03,) * 30,
        grace_series=(GraceType.NONE,) * 30,
    )
    res = calculate(inputs)
    inter = res.intermediates
    assert inter.total_periods == 365
    assert len(res.periods) == 366
    assert inter.effective_annual_rate == pytest.approx((1.0 + 0.09 / 365) ** 365 - 1.0, rel=1e-12)

    m = res.metrics
    assert m.price > 0.0
    horizon = inter.total_periods * inter.period_days / inputs.day_count_basis
    assert 0.0 < m.duration <= horizon, "duration must lie within the schedule horizon"
    assert res.converged
    for value in (m.tcea_issuer, m.tcea_issuer_with_shield, m.trea_holder):
        assert math.isfinite(value) and value > 0.0
    assert res.periods[-1].amortization == pytest.approx(-res.periods[-1].indexed_balance, rel=1e-9)
