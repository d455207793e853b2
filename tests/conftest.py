import pandas as pd
import pytest

from american_bond_engine.bonds import (
    CalculationInputs,
    CapitalizationFrequency,
    CouponFrequency,
    GraceType,
    RateType,
)


def _build_inputs(**overrides):
    """Five-year semiannual bond indexed at 10% a year, no grace."""
    base = dict(
        nominal_value=1000.0,
        commercial_value=1050.0,
        term_years=5,
        coupon_frequency=CouponFrequency.SEMIANNUAL,
        day_count_basis=360,
        rate_type=RateType.EFFECTIVE,
        annual_rate=0.08,
        discount_rate=0.045,
        income_tax_rate=0.30,
        premium_rate=0.01,
        issuance_date=pd.Timestamp("2025-06-01"),
        structuring_cost_rate=0.01,
        placement_cost_rate=0.0025,
        floatation_cost_rate=0.0045,
        custody_cost_rate=0.005,
        inflation_series=(0.10,) * 5,
        grace_series=(GraceType.NONE,) * 5,
        capitalization_frequency=CapitalizationFrequency.BIMONTHLY,
        holder_floatation_cost_rate=0.0045,
        holder_custody_cost_rate=0.005,
    )
    base.update(overrides)
    return CalculationInputs(**base)


@pytest.fixture(scope="module")
def worked_inputs():
    return _build_inputs()


@pytest.fixture(scope="module")
def make_inputs():
    """Factory: worked-example inputs with field overrides."""
    return _build_inputs
