"""Data models for alert evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

# (value, unix-ms timestamp); value is None for gaps.
Point = Tuple[Optional[float], int]


@dataclass
class TimeSeries:
    """A named series of points, as handed to an evaluator after reduction."""

    name: str
    points: List[Point] = field(default_factory=list)
