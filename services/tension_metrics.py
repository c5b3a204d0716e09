"""
Read-side helpers over Tension records: evidence, severity and review-state
tallies shared by the analytics dashboard and the report metrics.
"""
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping

from services.common import percentage, round_pct
from services.tension_consensus import (
    compute_review_state,
    ACCEPTED,
    UNDER_REVIEW,
    DISPUTED,
)

RESOLVED = "Resolved"


def review_state_of(tension) -> str:
    """Manual 'resolved' status wins; otherwise the state derived from votes."""
    if (getattr(tension, "status", None) or "").lower() == "resolved":
        return RESOLVED
    return compute_review_state(getattr(tension, "votes", None), getattr(tension, "created_by", None))


def evidence_of(tension) -> List[Any]:
    evidence = getattr(tension, "evidence", None)
    if isinstance(evidence, list):
        return evidence
    return [evidence] if evidence else []


def attachments_of(tension) -> List[Any]:
    attachments = getattr(tension, "attachments", None)
    return attachments if isinstance(attachments, list) else []


def evidence_type(item: Any) -> str:
    if isinstance(item, Mapping):
        return item.get("type") or item.get("evidenceType") or "Other"
    return "Other"


def has_evidence(tension) -> bool:
    return bool(evidence_of(tension)) or bool(attachments_of(tension))


def severity_bucket(tension) -> str:
    """low / medium / high, where critical folds into high and unknown into medium."""
    severity = (getattr(tension, "severity", None) or "medium").lower()
    if severity == "low":
        return "low"
    if severity in ("high", "critical"):
        return "high"
    return "medium"


def evidence_type_counts(tensions: Iterable[Any]) -> "OrderedDict":
    counts = OrderedDict()
    for tension in tensions:
        for item in evidence_of(tension):
            kind = evidence_type(item)
            counts[kind] = counts.get(kind, 0) + 1
    return counts


def summarize_tensions(tensions: List[Any]) -> Dict[str, Any]:
    """Counts by review state and severity bucket, plus evidence coverage."""
    summary = {
        "total": len(tensions),
        "accepted": 0,
        "under_review": 0,
        "disputed": 0,
        "resolved": 0,
        "proposed_or_single_review": 0,
        "by_severity": {"low": 0, "medium": 0, "high": 0},
    }
    for tension in tensions:
        state = review_state_of(tension)
        if state == ACCEPTED:
            summary["accepted"] += 1
        elif state == UNDER_REVIEW:
            summary["under_review"] += 1
        elif state == DISPUTED:
            summary["disputed"] += 1
        elif state == RESOLVED:
            summary["resolved"] += 1
        else:
            summary["proposed_or_single_review"] += 1
        summary["by_severity"][severity_bucket(tension)] += 1
    return summary


def evidence_metrics(tensions: List[Any]) -> Dict[str, Any]:
    with_evidence = sum(1 for t in tensions if has_evidence(t))
    counts = evidence_type_counts(tensions)
    return {
        "coverage_pct": round_pct(percentage(with_evidence, len(tensions))),
        "total_evidence_count": sum(counts.values()),
        "type_distribution": [{"type": kind, "count": count} for kind, count in counts.items()],
    }
