from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List


class BondEngineError(Exception):
    """Base class for every error raised by the engine."""


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str
    code: str


class ValidationError(BondEngineError, ValueError):
    """
    Malformed or out-of-range calculation inputs.

    Carries every issue found, so the caller can report them all at once.
    Raised before any computation starts.
    """

    def __init__(self, issues: Iterable[ValidationIssue]):
        self.issues: List[ValidationIssue] = list(issues)
        detail = "; ".join(f"{i.field}: {i.message}" for i in self.issues)
        super().__init__(f"Validation failed: {detail}")

    @property
    def codes(self) -> List[str]:
        return [i.code for i in self.issues]

    @property
    def fields(self) -> List[str]:
        return [i.field for i in self.issues]


class CalculationError(BondEngineError):
    """Numerically undefined state (e.g. zero present value for duration)."""


class ConfigError(BondEngineError, ValueError):
    """Invalid engine configuration."""
