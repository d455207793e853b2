from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple

import pandas as pd

from .errors import ValidationError, ValidationIssue


class CouponFrequency(Enum):
    """Coupon frequency; the value is the period length in days."""
    MONTHLY = 30
    BIMONTHLY = 60
    QUARTERLY = 90
    FOUR_MONTHLY = 120
    SEMIANNUAL = 180
    ANNUAL = 360

    @property
    def days(self) -> int:
        return self.value


class CapitalizationFrequency(Enum):
    """Capitalization period of a nominal rate; the value is in days."""
    DAILY = 1
    BIWEEKLY = 15
    MONTHLY = 30
    BIMONTHLY = 60
    QUARTERLY = 90
    FOUR_MONTHLY = 120
    SEMIANNUAL = 180
    ANNUAL = 360

    @property
    def days(self) -> int:
        return self.value


class RateType(Enum):
    EFFECTIVE = "effective"
    NOMINAL = "nominal"


class GraceType(Enum):
    NONE = "S"
    PARTIAL = "P"
    TOTAL = "T"

    @classmethod
    def parse(cls, raw: Any) -> "GraceType":
        """Accepts a GraceType, its name ("partial") or its code ("P")."""
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, str):
            key = raw.strip().upper()
            for g in cls:
                if key in (g.name, g.value):
                    return g
        raise ValueError(f"Unknown grace marker: {raw!r}")


DAY_COUNT_BASES = (360, 365)


def _parse_enum(kind, raw: Any):
    if isinstance(raw, kind):
        return raw
    if isinstance(raw, str):
        key = raw.strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return kind[key]
        except KeyError:
            pass
        for member in kind:
            if isinstance(member.value, str) and member.value == raw.strip().lower():
                return member
    raise ValueError(f"Unknown {kind.__name__}: {raw!r}")


@dataclass(frozen=True)
class CalculationInputs:
    nominal_value: float
    commercial_value: float
    term_years: int
    coupon_frequency: CouponFrequency
    day_count_basis: int
    rate_type: RateType
    annual_rate: float
    discount_rate: float
    income_tax_rate: float
    premium_rate: float
    issuance_date: pd.Timestamp
    structuring_cost_rate: float
    placement_cost_rate: float
    floatation_cost_rate: float
    custody_cost_rate: float
    inflation_series: Tuple[float, ...]
    grace_series: Tuple[GraceType, ...]
    capitalization_frequency: Optional[CapitalizationFrequency] = None
    holder_floatation_cost_rate: Optional[float] = None  # None -> cap minus issuer share
    holder_custody_cost_rate: Optional[float] = None

    def __post_init__(self):
        # normalise containers so equal inputs compare and hash equal
        object.__setattr__(self, "issuance_date", pd.Timestamp(self.issuance_date))
        object.__setattr__(self, "inflation_series", tuple(self.inflation_series))
        object.__setattr__(self, "grace_series", tuple(self.grace_series))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CalculationInputs":
        """
        Build inputs from a plain mapping (stored record, JSON payload).

        Enum fields accept member names ("semiannual"); grace markers also
        accept the single-letter codes "S", "P", "T".
        """
        d = dict(data)
        try:
            d["coupon_frequency"] = _parse_enum(CouponFrequency, d["coupon_frequency"])
            d["rate_type"] = _parse_enum(RateType, d["rate_type"])
            cap = d.get("capitalization_frequency")
            d["capitalization_frequency"] = None if cap is None else _parse_enum(CapitalizationFrequency, cap)
            d["grace_series"] = tuple(GraceType.parse(g) for g in d.get("grace_series", ()))
            d["inflation_series"] = tuple(float(x) for x in d.get("inflation_series", ()))
            d["issuance_date"] = pd.Timestamp(d["issuance_date"])
        except (KeyError, ValueError) as exc:
            raise ValidationError([ValidationIssue("inputs", str(exc), "INVALID_FIELD")]) from exc
        try:
            return cls(**d)
        except TypeError as exc:
            raise ValidationError([ValidationIssue("inputs", str(exc), "INVALID_FIELD")]) from exc


@dataclass(frozen=True)
class IntermediateComputations:
    period_days: int
    capitalization_days: Optional[int]
    periods_per_year: float
    total_periods: int
    effective_annual_rate: float
    periodic_coupon_rate: float
    periodic_discount_rate: float
    issuer_initial_costs: float
    holder_initial_costs: float
    holder_floatation_cost_rate: float
    holder_custody_cost_rate: float


@dataclass(frozen=True)
class CashFlowPeriod:
    period: int
    date: pd.Timestamp
    annual_inflation: Optional[float]
    period_inflation: Optional[float]
    grace: Optional[GraceType]
    capital: Optional[float]
    indexed_balance: Optional[float]
    coupon: Optional[float]
    installment: Optional[float]
    amortization: Optional[float]
    premium: Optional[float]
    tax_shield: Optional[float]
    issuer_flow: float
    issuer_flow_with_shield: float
    holder_flow: float
    discounted_flow: float = 0.0
    duration_term: float = 0.0
    convexity_term: float = 0.0


@dataclass(frozen=True)
class FinancialMetrics:
    price: float
    gain_loss: float
    duration: float
    modified_duration: float
    convexity: float
    decision_ratio: float
    tcea_issuer: float
    tcea_issuer_with_shield: float
    trea_holder: float


PERIOD_COLUMNS = [
    "period", "date", "annual_inflation", "period_inflation", "grace",
    "capital", "indexed_balance", "coupon", "installment", "amortization",
    "premium", "tax_shield", "issuer_flow", "issuer_flow_with_shield",
    "holder_flow", "discounted_flow", "duration_term", "convexity_term",
]


@dataclass(frozen=True)
class CalculationResult:
    inputs: CalculationInputs
    intermediates: IntermediateComputations
    periods: Tuple[CashFlowPeriod, ...]
    metrics: FinancialMetrics
    yields: Mapping[str, Any] = field(default_factory=dict)
    version: str = "1.0.0"

    def to_frame(self) -> pd.DataFrame:
        """Schedule as a DataFrame, one row per period, grace as its code."""
        rows = []
        for p in self.periods:
            row = {c: getattr(p, c) for c in PERIOD_COLUMNS}
            row["grace"] = p.grace.value if p.grace is not None else None
            rows.append(row)
        return pd.DataFrame(rows, columns=PERIOD_COLUMNS)

    @property
    def converged(self) -> bool:
        """True when every yield solve converged (degenerate series count as not converged)."""
        return all(getattr(y, "converged", False) for y in self.yields.values())


# ---------- validation ----------

_RATE_FIELDS = (
    ("annual_rate", "INVALID_ANNUAL_RATE"),
    ("discount_rate", "INVALID_DISCOUNT_RATE"),
    ("income_tax_rate", "INVALID_INCOME_TAX_RATE"),
    ("premium_rate", "INVALID_PREMIUM_RATE"),
    ("structuring_cost_rate", "INVALID_STRUCTURING_COST"),
    ("placement_cost_rate", "INVALID_PLACEMENT_COST"),
    ("floatation_cost_rate", "INVALID_FLOATATION_COST"),
    ("custody_cost_rate", "INVALID_CUSTODY_COST"),
    ("holder_floatation_cost_rate", "INVALID_HOLDER_FLOATATION_COST"),
    ("holder_custody_cost_rate", "INVALID_HOLDER_CUSTODY_COST"),
)


def _is_number(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool) and math.isfinite(x)


def collect_issues(inputs: CalculationInputs) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []

    def bad(field_name: str, message: str, code: str) -> None:
        issues.append(ValidationIssue(field_name, message, code))

    if not _is_number(inputs.nominal_value) or inputs.nominal_value <= 0:
        bad("nominal_value", "nominal value must be greater than 0", "INVALID_NOMINAL_VALUE")
    if not _is_number(inputs.commercial_value) or inputs.commercial_value <= 0:
        bad("commercial_value", "commercial value must be greater than 0", "INVALID_COMMERCIAL_VALUE")

    term_ok = isinstance(inputs.term_years, int) and not isinstance(inputs.term_years, bool) and inputs.term_years > 0
    if not term_ok:
        bad("term_years", "term must be a positive whole number of years", "INVALID_YEARS")

    if not isinstance(inputs.coupon_frequency, CouponFrequency):
        bad("coupon_frequency", f"unknown coupon frequency {inputs.coupon_frequency!r}", "INVALID_COUPON_FREQUENCY")
    if inputs.day_count_basis not in DAY_COUNT_BASES:
        bad("day_count_basis", "day-count basis must be 360 or 365", "INVALID_DAY_COUNT_BASIS")
    if not isinstance(inputs.rate_type, RateType):
        bad("rate_type", f"unknown rate type {inputs.rate_type!r}", "INVALID_RATE_TYPE")
    elif inputs.rate_type is RateType.NOMINAL and not isinstance(inputs.capitalization_frequency, CapitalizationFrequency):
        bad("capitalization_frequency", "capitalization frequency is required for a nominal rate",
            "MISSING_CAPITALIZATION_FREQUENCY")

    for name, code in _RATE_FIELDS:
        v = getattr(inputs, name)
        if v is None and name.startswith("holder_"):
            continue
        if not _is_number(v) or v < 0 or v > 1:
            bad(name, f"{name} must be between 0% and 100%", code)

    if pd.isna(inputs.issuance_date):
        bad("issuance_date", "issuance date is required", "INVALID_ISSUANCE_DATE")

    if term_ok:
        if len(inputs.inflation_series) != inputs.term_years:
            bad("inflation_series",
                f"inflation series must have {inputs.term_years} entries (got {len(inputs.inflation_series)})",
                "INVALID_INFLATION_SERIES_LENGTH")
        if len(inputs.grace_series) != inputs.term_years:
            bad("grace_series",
                f"grace series must have {inputs.term_years} entries (got {len(inputs.grace_series)})",
                "INVALID_GRACE_SERIES_LENGTH")

    for i, x in enumerate(inputs.inflation_series):
        if not _is_number(x) or x <= -1:
            bad(f"inflation_series[{i}]", "inflation must be a number greater than -100%", "INVALID_INFLATION_VALUE")
    for i, g in enumerate(inputs.grace_series):
        if not isinstance(g, GraceType):
            bad(f"grace_series[{i}]", f"grace marker must be S, P or T, got {g!r}", "INVALID_GRACE_VALUE")

    return issues


def validate_inputs(inputs: CalculationInputs) -> None:
    """Raise ValidationError listing every problem; never partial."""
    issues = collect_issues(inputs)
    if issues:
        raise ValidationError(issues)
