"""
American (bullet) Bond Engine

Modules:
- bonds: input/result records, grace/frequency enums, input validation
- rates: nominal/effective conversion, periodic rates, initial costs
- schedule: period-by-period cash-flow recurrence with grace periods
- valuation: price, duration, modified duration, convexity
- yields: IRR solver for TCEA (issuer) and TREA (holder)
- calculator: calculate / calculate_quick_metrics entry points
- portfolio: batch metrics for many bonds
- repair: opt-in repair of yearly series with the wrong length
- config: precision, solver and engine settings (YAML loadable)
- utils: period dates, year mapping, day count helpers
"""
from .bonds import (
    CalculationInputs,
    CalculationResult,
    CapitalizationFrequency,
    CashFlowPeriod,
    CouponFrequency,
    FinancialMetrics,
    GraceType,
    IntermediateComputations,
    RateType,
)
from .calculator import BondCalculator, calculate, calculate_quick_metrics
from .config import EngineConfig, PrecisionConfig, SolverConfig
from .errors import BondEngineError, CalculationError, ConfigError, ValidationError

__version__ = "1.0.0"
