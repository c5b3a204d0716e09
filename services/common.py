"""
Small numeric helpers shared by the aggregation and analytics services.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Any

import numpy as np


def round_half_up(value: Optional[float], places: int = 2) -> Optional[float]:
    """
    Rounds half away from zero at `places` decimals, so 0.125 -> 0.13
    regardless of the binary float representation. None passes through.
    """
    if value is None:
        return None
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


def round_score(value: Optional[float]) -> Optional[float]:
    return round_half_up(value, 2)


def round_pct(value: Optional[float]) -> Optional[float]:
    return round_half_up(value, 1)


def numeric_values(values: Iterable[Any]) -> List[float]:
    """Keeps only real numbers (bools and None are dropped)."""
    return [
        float(v)
        for v in values
        if isinstance(v, (int, float)) and not isinstance(v, bool)
    ]


def safe_mean(values: Iterable[float]) -> float:
    """Mean of the values, 0.0 when there are none."""
    arr = np.array(list(values), dtype=np.float64)
    if arr.size == 0:
        return 0.0
    return float(arr.mean())


def safe_min(values: Iterable[float]) -> Optional[float]:
    arr = np.array(list(values), dtype=np.float64)
    return float(arr.min()) if arr.size else None


def safe_max(values: Iterable[float]) -> Optional[float]:
    arr = np.array(list(values), dtype=np.float64)
    return float(arr.max()) if arr.size else None


def percentage(part: float, whole: float) -> float:
    """part / whole * 100, 0.0 for an empty denominator."""
    if not whole:
        return 0.0
    return (part / whole) * 100


def id_str(value: Any) -> str:
    """Stable string form of an identifier ('' for None)."""
    return "" if value is None else str(value)
