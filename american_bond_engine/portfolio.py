from __future__ import annotations

import logging
from dataclasses import asdict, fields
from typing import Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .bonds import CalculationInputs, FinancialMetrics
from .calculator import BondCalculator
from .config import DEFAULT_CONFIG, EngineConfig, PrecisionConfig
from .errors import BondEngineError

logger = logging.getLogger(__name__)

BondBook = Union[Mapping[str, CalculationInputs], Iterable[Tuple[str, CalculationInputs]]]

METRIC_COLUMNS = [f.name for f in fields(FinancialMetrics)]


def _items(bonds: BondBook) -> List[Tuple[str, CalculationInputs]]:
    if isinstance(bonds, Mapping):
        return [(str(k), v) for k, v in bonds.items()]
    return [(str(k), v) for k, v in bonds]


def calculate_portfolio(
    bonds: BondBook,
    precision: Optional[PrecisionConfig] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> pd.DataFrame:
    """
    Metrics for many bonds, one row each.

    A bond that fails validation or calculation gets NaN metrics, an "ERROR"
    flag and the message in `error`; the rest of the book still runs.
    Other flags: NO_YIELD (a flow series without sign change),
    NOT_CONVERGED (a yield solve ran out of iterations).
    """
    calc = BondCalculator(config)
    rows = []

    for bond_id, inputs in _items(bonds):
        flags: List[str] = []
        error = ""
        try:
            result = calc.calculate(inputs, precision)
        except BondEngineError as exc:
            logger.warning("Bond %s failed: %s", bond_id, exc)
            metrics = {c: np.nan for c in METRIC_COLUMNS}
            n_periods = 0
            flags.append("ERROR")
            error = str(exc)
        else:
            metrics = asdict(result.metrics)
            n_periods = len(result.periods) - 1
            if any(y.degenerate for y in result.yields.values()):
                flags.append("NO_YIELD")
            if any(not y.converged and not y.degenerate for y in result.yields.values()):
                flags.append("NOT_CONVERGED")

        rows.append({"bond_id": bond_id, **metrics, "periods": n_periods,
                     "flags": "|".join(flags), "error": error})

    return pd.DataFrame(rows, columns=["bond_id", *METRIC_COLUMNS, "periods", "flags", "error"])
