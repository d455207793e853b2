from __future__ import annotations

import logging
from dataclasses import fields, replace
from typing import Dict, List, Optional

from .bonds import (
    CalculationInputs,
    CalculationResult,
    CashFlowPeriod,
    FinancialMetrics,
    IntermediateComputations,
    validate_inputs,
)
from .config import DEFAULT_CONFIG, EngineConfig, PrecisionConfig
from .rates import normalize
from .schedule import build_schedule
from .utils import day_count_convention
from .valuation import aggregate, annotate_periods
from .yields import YieldResult, annualized_yield

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def _round_floats(record, precision: PrecisionConfig):
    changes = {}
    for f in fields(record):
        v = getattr(record, f.name)
        if isinstance(v, float):
            changes[f.name] = precision.quantize(v)
    return replace(record, **changes)


class BondCalculator:
    """
    Runs the full pipeline for one bond:

        validate -> normalize rates -> schedule -> valuation -> yields

    Holds only immutable configuration, so one instance can serve any number
    of concurrent calls.
    """

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG, validate: bool = True):
        self.config = config
        self.validate = validate

    def _config_for(self, precision: Optional[PrecisionConfig]) -> EngineConfig:
        return self.config.with_precision(precision)

    def _yield_convention(self, inputs: CalculationInputs, config: EngineConfig) -> str:
        if config.yield_year_basis == "calendar":
            return "ACT/365"
        return day_count_convention(inputs.day_count_basis)

    def recalculate_flows(
        self,
        inputs: CalculationInputs,
        intermediates: IntermediateComputations,
    ) -> List[CashFlowPeriod]:
        """Rebuild the undiscounted schedule from already-derived intermediates."""
        return build_schedule(inputs, intermediates, self.config)

    def calculate(self, inputs: CalculationInputs, precision: Optional[PrecisionConfig] = None) -> CalculationResult:
        config = self._config_for(precision)
        if self.validate:
            validate_inputs(inputs)

        inter = normalize(inputs, config)
        periods = build_schedule(inputs, inter, config)

        val = aggregate(periods, inter.periodic_discount_rate, inter.period_days, inputs.day_count_basis)
        periods = annotate_periods(periods, val)

        dates = [p.date for p in periods]
        convention = self._yield_convention(inputs, config)
        series = {
            "tcea_issuer": [p.issuer_flow for p in periods],
            "tcea_issuer_with_shield": [p.issuer_flow_with_shield for p in periods],
            "trea_holder": [p.holder_flow for p in periods],
        }
        yields: Dict[str, YieldResult] = {}
        for name, flows in series.items():
            res = annualized_yield(flows, dates, convention, config.solver, config.precision.tolerance)
            if not res.converged:
                logger.warning("%s: %s yield (method=%s, residual=%s)", name,
                               "degenerate" if res.degenerate else "unconverged", res.method, res.residual)
            elif abs(res.residual) > config.precision.tolerance:
                logger.warning("%s: converged with residual %s above tolerance %s",
                               name, res.residual, config.precision.tolerance)
            yields[name] = res

        metrics = FinancialMetrics(
            price=val.price,
            gain_loss=val.price + periods[0].holder_flow,
            duration=val.duration,
            modified_duration=val.modified_duration,
            convexity=val.convexity,
            decision_ratio=val.duration + val.convexity,
            tcea_issuer=yields["tcea_issuer"].annual_rate,
            tcea_issuer_with_shield=yields["tcea_issuer_with_shield"].annual_rate,
            trea_holder=yields["trea_holder"].annual_rate,
        )

        precision_cfg = config.precision
        result = CalculationResult(
            inputs=inputs,
            intermediates=inter,
            periods=tuple(_round_floats(p, precision_cfg) for p in periods),
            metrics=_round_floats(metrics, precision_cfg),
            yields=yields,
            version=VERSION,
        )
        logger.debug(
            "Calculated bond: price=%s duration=%s TCEA=%s TREA=%s",
            result.metrics.price, result.metrics.duration,
            result.metrics.tcea_issuer, result.metrics.trea_holder,
        )
        return result

    def calculate_quick_metrics(
        self,
        inputs: CalculationInputs,
        precision: Optional[PrecisionConfig] = None,
    ) -> FinancialMetrics:
        """Metrics only; the schedule is still built (every metric depends on it)."""
        return self.calculate(inputs, precision).metrics


def calculate(
    inputs: CalculationInputs,
    precision: Optional[PrecisionConfig] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> CalculationResult:
    return BondCalculator(config).calculate(inputs, precision)


def calculate_quick_metrics(
    inputs: CalculationInputs,
    precision: Optional[PrecisionConfig] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> FinancialMetrics:
    return BondCalculator(config).calculate_quick_metrics(inputs, precision)
