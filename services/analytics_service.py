"""
Dashboard analytics for a project/questionnaire.

CRITICAL: every score-bearing element (evaluators, principle bars, heatmap,
risky questions) is derived from Score documents only. Assignments feed
participation counts and nothing else.
"""
import logging
from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

import config
from services.common import safe_mean, percentage, round_score, round_pct, numeric_values, id_str
from services.errors import NotFoundError
from services.principles import PRINCIPLES, SCALE, THRESHOLDS, status_bucket, sort_principles
from services.report_metrics_service import get_project_evaluators
from services.risk_ranker import rank_with_context
from services.tension_consensus import vote_counts
from services.tension_metrics import (
    review_state_of,
    evidence_of,
    attachments_of,
    evidence_type,
    summarize_tensions,
    evidence_metrics,
)

logger = logging.getLogger(__name__)


def _participation(evaluators) -> Dict[str, Any]:
    started_ids = set(evaluators["started"])
    scored_ids = {e["user_id"] for e in evaluators["with_scores"]}

    by_role = OrderedDict()
    for person in evaluators["assigned"]:
        stats = by_role.setdefault(
            person["role"], {"role": person["role"], "assigned": 0, "started": 0, "submitted": 0}
        )
        stats["assigned"] += 1
        if person["user_id"] in started_ids:
            stats["started"] += 1
        if person["user_id"] in scored_ids:
            stats["submitted"] += 1

    return {
        "assigned_count": len(evaluators["assigned"]),
        "started_count": len(started_ids),
        "submitted_count": len(scored_ids),
        "submission_pct": round_pct(percentage(len(scored_ids), len(evaluators["assigned"]))),
        "by_role": list(by_role.values()),
    }


def _principle_frame(scores) -> pd.DataFrame:
    """One row per (score, principle) with the evaluator's principle average."""
    rows = []
    for score in scores:
        for principle, data in (score.by_principle or {}).items():
            if not isinstance(data, dict) or not numeric_values([data.get("avg")]):
                continue
            rows.append({
                "role": score.role or "unknown",
                "user_id": id_str(score.user_id),
                "principle": principle,
                "avg": float(data["avg"]),
            })
    return pd.DataFrame(rows, columns=["role", "user_id", "principle", "avg"])


def principle_bar(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    if frame.empty:
        return []
    grouped = frame.groupby("principle", sort=False)["avg"].agg(["mean", "count"])
    bars = []
    for principle in sort_principles(grouped.index):
        avg = float(grouped.loc[principle, "mean"])
        bars.append({
            "principle_key": principle,
            "avg_score": round_score(avg),
            "n": int(grouped.loc[principle, "count"]),
            "status_bucket": status_bucket(avg),
        })
    return bars


def role_principle_heatmap(frame: pd.DataFrame) -> Dict[str, Any]:
    """
    Rows are the roles seen in Scores, columns the seven principles in
    canonical order. A cell with no Score is None, never 0.
    """
    roles = sorted(frame["role"].unique().tolist()) if not frame.empty else []
    if not roles:
        return {"roles": [], "principles": list(PRINCIPLES), "matrix": [], "n_matrix": []}

    means = frame.pivot_table(index="role", columns="principle", values="avg", aggfunc="mean")
    counts = frame.pivot_table(index="role", columns="principle", values="avg", aggfunc="count")
    means = means.reindex(index=roles, columns=PRINCIPLES)
    counts = counts.reindex(index=roles, columns=PRINCIPLES).fillna(0)

    matrix = [
        [None if pd.isna(value) else round_score(float(value)) for value in means.loc[role].tolist()]
        for role in roles
    ]
    n_matrix = [[int(value) for value in counts.loc[role].tolist()] for role in roles]
    return {"roles": roles, "principles": list(PRINCIPLES), "matrix": matrix, "n_matrix": n_matrix}


def _tension_row(tension) -> Dict[str, Any]:
    counts = vote_counts(tension.votes, tension.created_by)
    types = OrderedDict()
    for item in evidence_of(tension):
        kind = evidence_type(item)
        types[kind] = types.get(kind, 0) + 1
    return {
        "tension_id": id_str(tension.id),
        "created_at": tension.created_at.isoformat() if tension.created_at else None,
        "created_by_role": tension.created_by_role or "unknown",
        "conflict": {"principle1": tension.principle1 or "", "principle2": tension.principle2 or ""},
        "severity_level": tension.severity or "Unknown",
        "review_state": review_state_of(tension),
        "agree_count": counts["agree"],
        "disagree_count": counts["disagree"],
        "agree_pct": round_pct(counts["agree_pct"] * 100),
        "evidence_count": len(evidence_of(tension)) + len(attachments_of(tension)),
        "evidence_types": dict(types),
        "comment_count": len(tension.comments or []),
    }


def build_analytics(stores, project_id: Any, questionnaire_key: Optional[str] = None) -> Dict[str, Any]:
    """
    buildAnalytics(projectId, questionnaireKey) -> dashboard payload.
    Side-effect free. Raises NotFoundError only for an unknown project; a
    project without scores or tensions gets zeroed/empty sections.
    """
    questionnaire_key = questionnaire_key or config.DEFAULT_QUESTIONNAIRE_KEY

    if stores.projects.get(project_id) is None:
        raise NotFoundError(f"Project {project_id} not found")

    scores = stores.scores.find(project_id, questionnaire_key=questionnaire_key)
    responses = stores.responses.find(project_id, questionnaire_key=questionnaire_key, statuses=["submitted"])
    tensions = stores.tensions.find(project_id)
    evaluators = get_project_evaluators(stores, project_id, questionnaire_key)

    frame = _principle_frame(scores)
    heatmap = role_principle_heatmap(frame)
    heatmap["evaluators"] = evaluators["with_scores"]

    risky, context = rank_with_context(
        stores, project_id, questionnaire_key, scores=scores, responses=responses
    )

    payload = {
        "project_id": id_str(project_id),
        "questionnaire_key": questionnaire_key,
        "updated_at": datetime.utcnow().isoformat(),
        "scale": dict(SCALE),
        "thresholds": THRESHOLDS,
        "participation": _participation(evaluators),
        "evaluators": evaluators["with_scores"],
        "overall_average": overall_average(scores),
        "principle_bar": principle_bar(frame),
        "role_principle_heatmap": heatmap,
        "top_risky_questions": [
            {
                "question_id": entry.question_id,
                "question_code": entry.question_code,
                "principle_key": entry.principle_key,
                "avg_risk_score": round_score(entry.avg_risk_score),
                "n": entry.n,
                "roles_involved": entry.roles_involved,
                "weight": entry.weight,
            }
            for entry in risky
        ],
        "top_risky_question_context": context,
        "tensions_summary": summarize_tensions(tensions),
        "tensions_table": [_tension_row(t) for t in tensions],
        "evidence_metrics": evidence_metrics(tensions),
    }
    logger.debug("Analytics for project=%s: %d evaluators", project_id, len(payload["evaluators"]))
    return payload


# Name used by the dashboard handlers
get_project_analytics = build_analytics


def overall_average(scores) -> float:
    """Mean of the evaluators' overall averages (0.0 with no scores)."""
    return round_score(safe_mean(
        numeric_values((s.totals or {}).get("avg") for s in scores if (s.totals or {}).get("n"))
    ))

