"""Internal rate of return (TCEA / TREA) via Newton-Raphson with a bracketed fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.optimize import brentq

from .config import SolverConfig
from .utils import yearfrac

logger = logging.getLogger(__name__)

DEFAULT_SOLVER = SolverConfig()


@dataclass(frozen=True)
class RootResult:
    root: float
    iterations: int
    converged: bool
    method: str
    residual: float


@dataclass(frozen=True)
class YieldResult:
    periodic_rate: float
    annual_rate: float
    converged: bool
    iterations: int
    residual: float
    method: str

    @property
    def degenerate(self) -> bool:
        """No sign change in the flows: no meaningful yield exists."""
        return self.method == "degenerate"


def npv_and_derivative(flows: np.ndarray, rate: float) -> Tuple[float, float]:
    """
    NPV of period-indexed flows at a periodic rate and its derivative in rate.

    Period 0 is undiscounted, so it adds to the NPV but not to the derivative.
    """
    n = np.arange(len(flows), dtype=float)
    disc = (1.0 + rate) ** (-n)
    npv = float(np.sum(flows * disc))
    deriv = float(np.sum(-n * flows * disc / (1.0 + rate)))
    return npv, deriv


def has_sign_change(flows: Sequence[float], tolerance: float = 0.0) -> bool:
    arr = np.asarray(flows, dtype=float)
    significant = arr[np.abs(arr) > tolerance]
    return bool(np.any(significant > 0) and np.any(significant < 0))


def _bracketed_root(flows: np.ndarray, solver: SolverConfig) -> Optional[RootResult]:
    def npv(r: float) -> float:
        return npv_and_derivative(flows, r)[0]

    lo, hi = solver.lower_bound, solver.upper_bound
    with np.errstate(over="ignore", invalid="ignore"):
        f_lo, f_hi = npv(lo), npv(hi)
    if not (np.isfinite(f_lo) and np.isfinite(f_hi)) or f_lo * f_hi > 0:
        logger.debug("No usable bracket on [%s, %s]: f=(%s, %s)", lo, hi, f_lo, f_hi)
        return None

    root, info = brentq(npv, lo, hi, xtol=solver.step_tolerance, maxiter=solver.max_iterations,
                        full_output=True, disp=False)
    return RootResult(float(root), int(info.iterations), bool(info.converged), "brentq", npv(root))


def solve_periodic_irr(
    flows: Sequence[float],
    solver: SolverConfig = DEFAULT_SOLVER,
    tolerance: float = 1e-8,
) -> RootResult:
    """
    Periodic rate r with sum(flow_n / (1+r)^n) = 0.

    Never raises on non-convergence: the best available estimate is returned
    with converged=False. A series without a sign change returns 0.
    """
    f = np.asarray(flows, dtype=float)

    if not has_sign_change(f, tolerance):
        logger.warning("Flow series has no sign change; yield reported as 0.")
        return RootResult(0.0, 0, False, "degenerate", float(np.sum(f)))

    # the solver expects period 0 to be the investment (outflow)
    if f[0] > 0:
        f = -f

    r = solver.initial_guess
    converged = False
    iteration = 0
    for iteration in range(1, solver.max_iterations + 1):
        value, deriv = npv_and_derivative(f, r)
        logger.debug("Newton iter %s: r=%s npv=%s deriv=%s", iteration, r, value, deriv)

        if abs(value) < solver.npv_tolerance:
            converged = True
            break
        if abs(deriv) < solver.derivative_tolerance:
            logger.debug("Derivative too small at iter %s; stopping at r=%s", iteration, r)
            break

        r_new = r - value / deriv
        r_new = max(solver.lower_bound, min(solver.upper_bound, r_new))
        if abs(r_new - r) < solver.step_tolerance:
            # a step stalled against a clamp bound is not a root
            converged = solver.lower_bound < r_new < solver.upper_bound
            r = r_new
            break
        r = r_new

    residual = npv_and_derivative(f, r)[0]
    if converged:
        return RootResult(r, iteration, True, "newton", residual)

    if solver.bracket_fallback:
        fallback = _bracketed_root(f, solver)
        if fallback is not None and fallback.converged:
            logger.debug("Newton stalled after %s iterations; brentq root %s", iteration, fallback.root)
            return RootResult(fallback.root, iteration + fallback.iterations, True, "brentq", fallback.residual)

    logger.warning(
        "IRR did not converge after %s iterations (r=%s, residual=%s); returning best estimate.",
        iteration, r, residual,
    )
    return RootResult(r, iteration, False, "newton", residual)


def annualize(periodic_rate: float, year_days: float, period_days: float) -> float:
    """(1 + r)^(year_days / period_days) - 1."""
    return (1.0 + periodic_rate) ** (year_days / period_days) - 1.0


def annualized_yield(
    flows: Sequence[float],
    dates: Sequence[pd.Timestamp],
    year_convention: str = "ACT/365",
    solver: SolverConfig = DEFAULT_SOLVER,
    tolerance: float = 1e-8,
) -> YieldResult:
    """
    Annual effective yield of evenly spaced, dated flows.

    The periodic IRR is compounded over one year measured with
    year_convention: ACT/365 gives the date-based (XIRR-like) figure, ACT/360
    the 360-day commercial year.
    """
    if len(flows) != len(dates):
        raise ValueError("flows and dates must have the same length")
    if len(dates) < 2:
        raise ValueError("Need at least two dated flows")

    stamps = [pd.Timestamp(d) for d in dates]
    gaps = {(b - a).days for a, b in zip(stamps[:-1], stamps[1:])}
    if len(gaps) != 1 or min(gaps) <= 0:
        raise ValueError("Yield solver requires evenly spaced, increasing dates")

    period_fraction = yearfrac(stamps[0], stamps[1], year_convention)
    res = solve_periodic_irr(flows, solver, tolerance)

    annual = 0.0 if res.method == "degenerate" else annualize(res.root, 1.0, period_fraction)
    return YieldResult(
        periodic_rate=res.root,
        annual_rate=annual,
        converged=res.converged,
        iterations=res.iterations,
        residual=res.residual,
        method=res.method,
    )
