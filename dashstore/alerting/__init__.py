"""Alert condition evaluation package."""

from dashstore.alerting.evaluator import (
    AlertEvaluator,
    RangedEvaluator,
    ThresholdEvaluator,
    new_alert_evaluator,
)
from dashstore.alerting.models import TimeSeries

__all__ = [
    "AlertEvaluator",
    "RangedEvaluator",
    "ThresholdEvaluator",
    "TimeSeries",
    "new_alert_evaluator",
]
