"""Threshold evaluators for alert conditions.

An evaluator is built from the condition's JSON model, e.g.::

    {"type": "gt", "params": [80]}
    {"type": "within_range", "params": [10, 20]}

and answers whether a series' reduced value breaches it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from numbers import Real
from typing import Any, Optional

from dashstore.alerting.models import TimeSeries
from dashstore.errors import ValidationError

DEFAULT_TYPES = ("gt", "lt")
RANGED_TYPES = ("within_range", "outside_range")


class AlertEvaluator(ABC):
    @abstractmethod
    def eval(self, series: Optional[TimeSeries], reduced_value: float) -> bool:
        """Return ``True`` when *reduced_value* breaches the condition."""


class ThresholdEvaluator(AlertEvaluator):
    """``gt`` / ``lt`` against a single threshold."""

    def __init__(self, type: str, threshold: float) -> None:
        self.type = type
        self.threshold = threshold

    def eval(self, series: Optional[TimeSeries], reduced_value: float) -> bool:
        if self.type == "gt":
            return reduced_value > self.threshold
        if self.type == "lt":
            return reduced_value < self.threshold
        return False

    def __repr__(self) -> str:
        return f"ThresholdEvaluator(type={self.type!r}, threshold={self.threshold!r})"


class RangedEvaluator(AlertEvaluator):
    """``within_range`` / ``outside_range`` between two bounds.

    The bounds may be given in either order; both comparisons are strict.
    """

    def __init__(self, type: str, lower: float, upper: float) -> None:
        self.type = type
        self.lower = lower
        self.upper = upper

    def eval(self, series: Optional[TimeSeries], reduced_value: float) -> bool:
        lower, upper = self.lower, self.upper
        if self.type == "within_range":
            return (lower < reduced_value < upper) or (upper < reduced_value < lower)
        if self.type == "outside_range":
            return (reduced_value > upper and reduced_value > lower) or (
                reduced_value < upper and reduced_value < lower
            )
        return False

    def __repr__(self) -> str:
        return (
            f"RangedEvaluator(type={self.type!r}, lower={self.lower!r}, upper={self.upper!r})"
        )


def _as_number(value: Any) -> Optional[float]:
    # bool is an int subclass but never a valid threshold
    if isinstance(value, bool) or not isinstance(value, Real):
        return None
    return float(value)


def new_alert_evaluator(model: dict[str, Any]) -> AlertEvaluator:
    """Build the evaluator described by a condition's ``evaluator`` model.

    Raises:
        ValidationError: The model has no type, no params, a non-numeric
            param, or an unknown type.
    """
    typ = model.get("type") or ""
    if not isinstance(typ, str) or not typ:
        raise ValidationError("Evaluator missing type property")

    params = model.get("params") or []
    if not isinstance(params, list) or not params:
        raise ValidationError("Evaluator missing threshold parameter")

    first = _as_number(params[0])
    if first is None:
        raise ValidationError("Evaluator has invalid parameter")

    if typ in DEFAULT_TYPES:
        return ThresholdEvaluator(typ, first)

    if typ in RANGED_TYPES:
        second = _as_number(params[1]) if len(params) > 1 else None
        if second is None:
            raise ValidationError("Evaluator has invalid second parameter")
        return RangedEvaluator(typ, first, second)

    raise ValidationError("Evaluator invalid evaluator type")
