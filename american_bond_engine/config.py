from __future__ import annotations

import decimal
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError


_ROUNDING_MODES = (
    decimal.ROUND_HALF_UP,
    decimal.ROUND_HALF_EVEN,
    decimal.ROUND_HALF_DOWN,
    decimal.ROUND_DOWN,
    decimal.ROUND_UP,
    decimal.ROUND_FLOOR,
    decimal.ROUND_CEILING,
)

YIELD_YEAR_BASES = ("calendar", "day_count")


@dataclass(frozen=True)
class PrecisionConfig:
    """
    Rounding applied to every reported figure.

    Passed explicitly to each calculation; the engine never touches the
    process-wide decimal context.
    """
    decimal_places: int = 6
    rounding_mode: str = decimal.ROUND_HALF_UP
    tolerance: float = 1e-8

    def __post_init__(self):
        if not isinstance(self.decimal_places, int) or self.decimal_places < 0:
            raise ConfigError(f"decimal_places must be a non-negative int, got {self.decimal_places!r}")
        if self.rounding_mode not in _ROUNDING_MODES:
            raise ConfigError(f"Unsupported rounding mode: {self.rounding_mode!r}")
        if not (self.tolerance > 0):
            raise ConfigError(f"tolerance must be positive, got {self.tolerance!r}")

    def quantize(self, value: Optional[float]) -> Optional[float]:
        """Round one value with a private context (None passes through)."""
        if value is None:
            return None
        ctx = decimal.Context(prec=40, rounding=self.rounding_mode)
        exp = decimal.Decimal(1).scaleb(-self.decimal_places)
        # shortest repr, so 2.675 rounds as written rather than as stored
        rounded = decimal.Decimal(repr(float(value))).quantize(exp, context=ctx)
        out = float(rounded)
        # avoid -0.0 leaking into reports
        return out + 0.0


MONETARY_DISPLAY = PrecisionConfig(decimal_places=2)


@dataclass(frozen=True)
class SolverConfig:
    initial_guess: float = 0.05
    npv_tolerance: float = 1e-10
    derivative_tolerance: float = 1e-15
    step_tolerance: float = 1e-10
    max_iterations: int = 200
    lower_bound: float = -0.99
    upper_bound: float = 2.0
    bracket_fallback: bool = True

    def __post_init__(self):
        if self.max_iterations <= 0:
            raise ConfigError("max_iterations must be positive")
        if not (-1.0 < self.lower_bound < self.upper_bound):
            raise ConfigError("Solver bounds must satisfy -1 < lower < upper")
        if not (self.lower_bound <= self.initial_guess <= self.upper_bound):
            raise ConfigError("initial_guess must lie inside the solver bounds")


@dataclass(frozen=True)
class EngineConfig:
    """
    Top-level engine configuration.

    - precision: rounding of reported figures
    - solver: Newton-Raphson settings for TCEA/TREA
    - floatation_cap / custody_cap: regulatory totals split between issuer
      and holder; the holder share defaults to cap - issuer share
    - holder_pays_initial_costs: holder outlay at period 0 includes the
      holder's own costs (off = strict mirror of the issuer flow)
    - capitalize_total_grace_interest: unpaid coupon of a total-grace period
      is added to the next period's capital
    - yield_year_basis: "calendar" annualizes yields over a 365-day year
      (date-based IRR), "day_count" over the bond's day-count basis
    """
    precision: PrecisionConfig = field(default_factory=PrecisionConfig)
    solver: SolverConfig = field(default_factory=SolverConfig)
    floatation_cap: float = 0.0045
    custody_cap: float = 0.005
    holder_pays_initial_costs: bool = True
    capitalize_total_grace_interest: bool = False
    yield_year_basis: str = "calendar"

    def __post_init__(self):
        if self.yield_year_basis not in YIELD_YEAR_BASES:
            raise ConfigError(f"yield_year_basis must be one of {YIELD_YEAR_BASES}, got {self.yield_year_basis!r}")
        for name in ("floatation_cap", "custody_cap"):
            v = getattr(self, name)
            if not (0.0 <= v <= 1.0):
                raise ConfigError(f"{name} must be in [0, 1], got {v!r}")

    def with_precision(self, precision: Optional[PrecisionConfig]) -> "EngineConfig":
        if precision is None or precision == self.precision:
            return self
        return replace(self, precision=precision)

    # ---------- constructors ----------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EngineConfig":
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown engine config keys: {sorted(unknown)}")

        precision = _section(PrecisionConfig, data.pop("precision", None), "precision")
        solver = _section(SolverConfig, data.pop("solver", None), "solver")
        try:
            return cls(precision=precision, solver=solver, **data)
        except TypeError as exc:
            raise ConfigError(str(exc)) from exc

    @classmethod
    def from_yaml(cls, cfg_path: Path) -> "EngineConfig":
        """
        Load configuration from a YAML file, e.g.

            precision:
              decimal_places: 6
              tolerance: 1.0e-8
            solver:
              max_iterations: 200
            yield_year_basis: calendar
        """
        text = Path(cfg_path).read_text(encoding="utf-8")
        data: Dict[str, Any] = yaml.safe_load(text) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{cfg_path}: top-level YAML must be a mapping")
        return cls.from_dict(data)


def _section(kind, raw: Optional[Mapping[str, Any]], name: str):
    if raw is None:
        return kind()
    if not isinstance(raw, Mapping):
        raise ConfigError(f"'{name}' section must be a mapping")
    defaults = {f.name: f.default for f in fields(kind)}
    unknown = set(raw) - set(defaults)
    if unknown:
        raise ConfigError(f"Unknown keys in '{name}': {sorted(unknown)}")

    values = {}
    for key, value in raw.items():
        # YAML 1.1 reads "1e-8" as a string
        if isinstance(defaults[key], float) and isinstance(value, (str, int)) and not isinstance(value, bool):
            try:
                value = float(value)
            except ValueError as exc:
                raise ConfigError(f"'{name}.{key}' must be numeric, got {value!r}") from exc
        values[key] = value
    return kind(**values)


DEFAULT_CONFIG = EngineConfig()
