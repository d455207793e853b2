import pytest

from american_bond_engine.bonds import CapitalizationFrequency, CouponFrequency, RateType
from american_bond_engine.config import EngineConfig
from american_bond_engine.rates import (
    capitalization_days,
    compound_to_period,
    effective_annual_rate,
    holder_cost_rates,
    holder_initial_costs,
    issuer_initial_costs,
    normalize,
    period_days,
    periods_per_year,
    total_periods,
)



def test_period_and_capitalization_days():
    assert period_days(CouponFrequency.SEMIANNUAL) == 180
    assert period_days(CouponFrequency.FOUR_MONTHLY) == 120
    assert capitalization_days(CapitalizationFrequency.BIMONTHLY) == 60
    assert capitalization_days(CapitalizationFrequency.DAILY) == 1
    assert capitalization_days(None) is None


def test_total_periods_floors_fractional_years():
    assert periods_per_year(360, 180) == 2.0
    assert total_periods(2.0, 5) == 10
    assert total_periods(365 / 180, 5) == 10, "365/180 * 5 = 10.14 -> 10 whole periods"
    assert total_periods(365 / 30, 1) == 12
    assert total_periods(360 / 90, 3) == 12


def test_effective_rate_passes_through():
    assert effective_annual_rate(RateType.EFFECTIVE, 0.08, 360, None) == 0.08


def test_nominal_to_effective():
    tea = effective_annual_rate(RateType.NOMINAL, 0.12, 360, 30)
    assert tea == pytest.approx(1.01 ** 12 - 1.0, rel=1e-12)

    daily = effective_annual_rate(RateType.NOMINAL, 0.12, 360, 1)
    assert daily > tea, "more frequent capitalization must give a higher TEA"


def test_nominal_requires_capitalization():
    with pytest.raises(ValueError):
        effective_annual_rate(RateType.NOMINAL, 0.12, 360, None)


def test_periodic_rates():
    assert compound_to_period(0.08, 180, 360) == pytest.approx(0.0392305, abs=1e-7)
    assert compound_to_period(0.045, 180, 360) == pytest.approx(0.0222524, abs=1e-7)
    assert compound_to_period(0.10, 360, 360) == pytest.approx(0.10, abs=1e-15)


def test_initial_costs(worked_inputs):
    assert issuer_initial_costs(worked_inputs) == pytest.approx(23.10, abs=1e-9)

    assert holder_initial_costs(worked_inputs) == pytest.approx(9.975, abs=1e-9)

    inter = normalize(worked_inputs)
    assert inter.holder_initial_costs == pytest.approx(9.975, abs=1e-9)
    assert inter.total_periods == 10
    assert inter.period_days == 180
    assert inter.capitalization_days == 60
    assert inter.effective_annual_rate == 0.08


def test_holder_rates_derived_from_caps(make_inputs):
    inputs = make_inputs(
        floatation_cost_rate=0.002,
        custody_cost_rate=0.005,
        holder_floatation_cost_rate=None,
        holder_custody_cost_rate=None,
    )
    floatation, custody = holder_cost_rates(inputs)
    assert floatation == pytest.approx(0.0025, abs=1e-12)
    assert custody == 0.0, "issuer already pays the whole custody cap"

    cfg = EngineConfig(custody_cap=0.008)
    assert holder_cost_rates(inputs, cfg)[1] == pytest.approx(0.003, abs=1e-12)


def test_holder_share_never_negative(make_inputs):
    inputs = make_inputs(floatation_cost_rate=0.01, holder_floatation_cost_rate=None)
    assert holder_cost_rates(inputs)[0] == 0.0


def test_normalize_365_basis(make_inputs):
    inter = normalize(make_inputs(day_count_basis=365))
    assert inter.periods_per_year == pytest.approx(365 / 180)
    assert inter.total_periods == 10
    assert inter.periodic_coupon_rate == pytest.approx(1.08 ** (180 / 365) - 1.0, rel=1e-12)
