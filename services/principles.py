"""
The seven fixed ethical principles and the risk-tier thresholds on the
0-4 score scale.
"""
from typing import List, Iterable

PRINCIPLES: List[str] = [
    "TRANSPARENCY",
    "HUMAN AGENCY & OVERSIGHT",
    "TECHNICAL ROBUSTNESS & SAFETY",
    "PRIVACY & DATA GOVERNANCE",
    "DIVERSITY, NON-DISCRIMINATION & FAIRNESS",
    "SOCIETAL & INTERPERSONAL WELL-BEING",
    "ACCOUNTABILITY",
]

SCALE = {"min": 0, "max": 4}

# Inclusive upper bound of each tier; the first tier also includes 0.
THRESHOLDS = [
    {"label": "Low risk", "range": [0, 1]},
    {"label": "Moderate", "range": [1, 2]},
    {"label": "High", "range": [2, 3]},
    {"label": "Critical", "range": [3, 4]},
]

# An evaluator's principle average at or above this counts as "safe" in reports.
SAFE_THRESHOLD = 3.0


def status_bucket(avg_score: float) -> str:
    """[0,1] Low risk, (1,2] Moderate, (2,3] High, (3,4] Critical."""
    if avg_score > 3:
        return "Critical"
    if avg_score > 2:
        return "High"
    if avg_score > 1:
        return "Moderate"
    return "Low risk"


def principle_index(principle: str) -> int:
    try:
        return PRINCIPLES.index(principle)
    except ValueError:
        return len(PRINCIPLES)


def sort_principles(principles: Iterable[str]) -> List[str]:
    """Canonical order first, unknown principles after them alphabetically."""
    return sorted(principles, key=lambda p: (principle_index(p), p))


def is_known_principle(principle: str) -> bool:
    return principle in PRINCIPLES
