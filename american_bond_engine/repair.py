from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Sequence, Tuple, TypeVar

from .bonds import CalculationInputs, GraceType

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _resize(series: Sequence[T], length: int, empty_default: T) -> Tuple[T, ...]:
    # an empty series is filled with the default, otherwise the first value is replicated
    fill = series[0] if len(series) else empty_default
    return tuple([fill] * length)


def repair_series(inputs: CalculationInputs) -> Tuple[CalculationInputs, List[str]]:
    """
    Opt-in fix for yearly series whose length does not match term_years.

    For callers whose input producers are known to be unreliable about series
    length. Returns the (possibly) repaired inputs and one note per repaired
    series; well-formed inputs come back unchanged with no notes. The
    calculation itself never repairs anything.
    """
    years = inputs.term_years
    notes: List[str] = []
    changes = {}

    if len(inputs.inflation_series) != years:
        changes["inflation_series"] = _resize(inputs.inflation_series, years, 0.0)
        notes.append(f"inflation_series: {len(inputs.inflation_series)} -> {years} entries")

    if len(inputs.grace_series) != years:
        changes["grace_series"] = _resize(inputs.grace_series, years, GraceType.NONE)
        notes.append(f"grace_series: {len(inputs.grace_series)} -> {years} entries")

    if not changes:
        return inputs, notes

    for note in notes:
        logger.warning("Repaired series %s", note)
    return replace(inputs, **changes), notes
