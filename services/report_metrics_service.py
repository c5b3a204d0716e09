"""
Report metrics: the deterministic numeric payload a downloadable report is
built from. No LLM computation happens here; every figure comes from stored
Scores, Responses, Tensions and Assignments, and the narrative layer must
treat this payload as the only numeric ground truth.
"""
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from services.common import (
    safe_mean,
    safe_min,
    safe_max,
    percentage,
    round_score,
    round_pct,
    numeric_values,
    id_str,
)
from services.errors import NotFoundError
from services.principles import SAFE_THRESHOLD, sort_principles
from services.risk_ranker import rank_with_context
from services.tension_consensus import vote_counts
from services.tension_metrics import (
    review_state_of,
    evidence_of,
    evidence_type,
    evidence_type_counts,
    has_evidence,
    summarize_tensions,
)

logger = logging.getLogger(__name__)

CORE_QUESTION_MAX_ORDER = 12


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value is not None and hasattr(value, "isoformat") else value


def _person(user_id, user, role=None) -> Dict[str, Any]:
    return {
        "user_id": id_str(user_id),
        "name": getattr(user, "name", None) or "Unknown",
        "email": getattr(user, "email", None) or "",
        "role": role or getattr(user, "role", None) or "unknown",
    }


def get_project_evaluators(stores, project_id: Any, questionnaire_key: Optional[str] = None) -> Dict[str, Any]:
    """
    Single source of truth for who evaluates a project.

    - assigned:    users from the assignment store, plus anyone who has a
                   Response without an assignment (participation only)
    - started:     user ids with any Response, whatever its status
    - submitted:   users with a submitted Response
    - with_scores: users present in Score documents; the only list that
                   score-bearing tables and charts may use
    """
    assignments = stores.assignments.find(project_id)
    responses = stores.responses.find(project_id, questionnaire_key=questionnaire_key)
    scores = stores.scores.find(project_id, questionnaire_key=questionnaire_key)

    user_ids = (
        [a.user_id for a in assignments]
        + [r.user_id for r in responses]
        + [s.user_id for s in scores]
    )
    users = {id_str(u.id): u for u in stores.users.find_by_ids(user_ids)}

    assigned = []
    seen = set()
    for assignment in assignments:
        uid = id_str(assignment.user_id)
        if uid in seen:
            continue
        seen.add(uid)
        person = _person(assignment.user_id, users.get(uid), assignment.role)
        person.update({
            "assignment_status": assignment.status or "assigned",
            "assigned_at": _isoformat(assignment.assigned_at),
            "questionnaires": list(assignment.questionnaires or []),
        })
        assigned.append(person)

    for response in responses:
        uid = id_str(response.user_id)
        if uid in seen:
            continue
        seen.add(uid)
        person = _person(response.user_id, users.get(uid), response.role)
        person.update({"assignment_status": "unassigned", "assigned_at": None, "questionnaires": []})
        assigned.append(person)

    started = []
    for response in responses:
        uid = id_str(response.user_id)
        if uid not in started:
            started.append(uid)

    submitted = []
    submitted_ids = set()
    for response in responses:
        uid = id_str(response.user_id)
        if response.status != "submitted" or uid in submitted_ids:
            continue
        submitted_ids.add(uid)
        person = _person(response.user_id, users.get(uid), response.role)
        person.update({
            "submitted_at": _isoformat(response.submitted_at),
            "questionnaire_key": response.questionnaire_key,
        })
        submitted.append(person)

    with_scores = []
    scored_ids = set()
    for score in scores:
        uid = id_str(score.user_id)
        if uid in scored_ids:
            continue
        scored_ids.add(uid)
        with_scores.append(_person(score.user_id, users.get(uid), score.role))

    return {
        "assigned": assigned,
        "started": started,
        "submitted": submitted,
        "with_scores": with_scores,
    }


def _coverage(evaluators, responses, questions) -> Dict[str, Any]:
    started_ids = set(evaluators["started"])
    scored_ids = {e["user_id"] for e in evaluators["with_scores"]}
    assigned = evaluators["assigned"]

    roles = OrderedDict()
    for person in assigned:
        stats = roles.setdefault(person["role"], {"assigned": 0, "started": 0, "submitted": 0})
        stats["assigned"] += 1
        if person["user_id"] in started_ids:
            stats["started"] += 1
        if person["user_id"] in scored_ids:
            stats["submitted"] += 1

    core_ids = {id_str(q.id) for q in questions if (q.order or 0) <= CORE_QUESTION_MAX_ORDER}
    core_started, core_submitted = set(), set()
    for response in responses:
        if any(id_str(a.question_id) in core_ids for a in response.answers or []):
            core_started.add(id_str(response.user_id))
            if response.status == "submitted":
                core_submitted.add(id_str(response.user_id))

    return {
        "assigned_experts_count": len(assigned),
        "experts_started_count": len(started_ids),
        "experts_submitted_count": len(scored_ids),
        "roles": dict(roles),
        "core12_completion": {
            "started_pct": round_pct(percentage(len(core_started), len(assigned))),
            "submitted_pct": round_pct(percentage(len(core_submitted), len(assigned))),
        },
    }


def _principle_averages(scores) -> "OrderedDict":
    values = OrderedDict()
    for score in scores:
        for principle, data in (score.by_principle or {}).items():
            if isinstance(data, dict) and numeric_values([data.get("avg")]):
                values.setdefault(principle, []).append(float(data["avg"]))
    return values


def _scoring(scores, evaluators_with_scores) -> Dict[str, Any]:
    scoring = {
        "totals_overall": {},
        "by_principle_overall": {},
        "by_role": {},
        "by_principle_table": {},
    }
    if not scores:
        return scoring

    total_avgs = numeric_values((s.totals or {}).get("avg") for s in scores if (s.totals or {}).get("n"))
    if total_avgs:
        scoring["totals_overall"] = {
            "avg": round_score(safe_mean(total_avgs)),
            "min": round_score(safe_min(total_avgs)),
            "max": round_score(safe_max(total_avgs)),
            "count": len(total_avgs),
        }

    principle_values = _principle_averages(scores)
    for principle in sort_principles(principle_values):
        values = principle_values[principle]
        safe_count = sum(1 for v in values if v >= SAFE_THRESHOLD)
        scoring["by_principle_overall"][principle] = {
            "avg_score": round_score(safe_mean(values)),
            "risk_pct": round_pct(percentage(len(values) - safe_count, len(values))),
            "safe_pct": round_pct(percentage(safe_count, len(values))),
            "safe_count": safe_count,
            "not_safe_count": len(values) - safe_count,
            "count": len(values),
        }

    role_groups = OrderedDict()
    for score in scores:
        group = role_groups.setdefault(score.role or "unknown", {"totals": [], "by_principle": OrderedDict()})
        totals = score.totals or {}
        if totals.get("n"):
            group["totals"].append(float(totals.get("avg") or 0))
        for principle, data in (score.by_principle or {}).items():
            if isinstance(data, dict) and numeric_values([data.get("avg")]):
                group["by_principle"].setdefault(principle, []).append(float(data["avg"]))
    for role, group in role_groups.items():
        scoring["by_role"][role] = {
            "totals": {"avg": round_score(safe_mean(group["totals"])), "count": len(group["totals"])},
            "by_principle": {
                p: {"avg": round_score(safe_mean(v)), "count": len(v)}
                for p, v in group["by_principle"].items()
            },
        }

    for principle in sort_principles(principle_values):
        row = {"principle": principle, "evaluators": [], "range": {"min": None, "max": None}, "average": 0.0, "count": 0}
        # One entry per Score, so an evaluator with several questionnaires
        # appears once per questionnaire and the row agrees with by_principle_overall
        raw = []
        for evaluator in evaluators_with_scores:
            for score in scores:
                data = (score.by_principle or {}).get(principle)
                if id_str(score.user_id) != evaluator["user_id"]:
                    continue
                if not isinstance(data, dict) or not numeric_values([data.get("avg")]):
                    continue
                raw.append(float(data["avg"]))
                row["evaluators"].append({
                    "user_id": evaluator["user_id"],
                    "name": evaluator["name"],
                    "role": evaluator["role"],
                    "questionnaire_key": score.questionnaire_key,
                    "score": round_score(float(data["avg"])),
                })
        if raw:
            row["range"] = {"min": round_score(min(raw)), "max": round_score(max(raw))}
            row["average"] = round_score(safe_mean(raw))
            row["count"] = len(raw)
        scoring["by_principle_table"][principle] = row

    return scoring


def _tension_entry(tension, assigned_count: int) -> Dict[str, Any]:
    counts = vote_counts(tension.votes, tension.created_by)
    mitigation = tension.mitigation or {}
    tradeoff = mitigation.get("tradeoff") or {}
    impact = tension.impact or {}
    items = [
        {
            "evidence_type": evidence_type(item),
            "text": ((item.get("description") or item.get("title") or "") if isinstance(item, dict) else str(item))[:200],
            "attachments_count": 1 if isinstance(item, dict) and item.get("fileName") else 0,
            "created_at": item.get("uploadedAt") or item.get("createdAt") if isinstance(item, dict) else None,
            "created_by": (item.get("uploadedBy") or item.get("createdBy") or "") if isinstance(item, dict) else "",
        }
        for item in evidence_of(tension)
    ]
    types = []
    for item in items:
        if item["evidence_type"] not in types:
            types.append(item["evidence_type"])

    return {
        "tension_id": id_str(tension.id),
        "created_at": _isoformat(tension.created_at),
        "created_by": id_str(tension.created_by),
        "conflict": {"principle1": tension.principle1 or "", "principle2": tension.principle2 or ""},
        "severity_level": tension.severity or "Unknown",
        "claim": tension.claim_statement or "",
        "argument": tension.argument or "",
        "impact_area": impact.get("areas") or [],
        "affected_groups": impact.get("affectedGroups") or [],
        "impact_description": impact.get("description") or "",
        "mitigation": {
            "proposed_mitigations": mitigation.get("proposed") or "",
            "trade_off_decision": tradeoff.get("decision") or "",
            "trade_off_rationale": tradeoff.get("rationale") or "",
        },
        "evidence": {"count": len(items), "types": types, "items": items},
        "consensus": {
            "assigned_experts_count": assigned_count,
            "votes_total": counts["total"],
            "participation_pct": round_pct(percentage(counts["total"], assigned_count)),
            "agree_count": counts["agree"],
            "disagree_count": counts["disagree"],
            "agree_pct": round_pct(counts["agree_pct"] * 100),
            "review_state": review_state_of(tension),
        },
    }


def _tensions(tensions, assigned_count: int) -> Dict[str, Any]:
    entries = [_tension_entry(t, assigned_count) for t in tensions]
    summary = summarize_tensions(tensions)

    with_mitigation = sum(
        1 for t in tensions
        if (t.mitigation or {}).get("proposed") or ((t.mitigation or {}).get("tradeoff") or {}).get("decision")
    )
    total = len(tensions)
    summary.update({
        "avg_participation_pct": round_pct(
            safe_mean(e["consensus"]["participation_pct"] for e in entries)
        ),
        "evidence_coverage_pct": round_pct(percentage(sum(1 for t in tensions if has_evidence(t)), total)),
        "evidence_type_distribution": dict(evidence_type_counts(tensions)),
        "mitigation_filled_pct": round_pct(percentage(with_mitigation, total)),
    })
    return {"summary": summary, "list": entries}


def build_report_metrics(stores, project_id: Any, questionnaire_key: Optional[str] = None) -> Dict[str, Any]:
    """
    buildReportMetrics(projectId, questionnaireKey) -> ReportMetrics.
    Raises NotFoundError for an unknown project; absent scores or tensions
    yield empty sections.
    """
    project = stores.projects.get(project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")

    evaluators = get_project_evaluators(stores, project_id, questionnaire_key)
    scores = stores.scores.find(project_id, questionnaire_key=questionnaire_key)
    responses = stores.responses.find(project_id, questionnaire_key=questionnaire_key)
    submitted = [r for r in responses if r.status == "submitted"]
    tensions = stores.tensions.find(project_id)
    questions = stores.questions.find(questionnaire_key)

    risk_entries, _ = rank_with_context(
        stores, project_id, questionnaire_key, scores=scores, responses=submitted
    )

    metrics = {
        "project": {
            "project_id": id_str(project.id),
            "title": project.title or "Untitled Project",
            "category": project.category or "",
            "owner_id": id_str(project.owner_id),
            "created_at": _isoformat(project.created_at),
            "questionnaire_key": questionnaire_key,
            "questionnaire_version": responses[0].questionnaire_version if responses else 1,
        },
        "evaluators": {
            "assigned": [
                {k: e[k] for k in ("user_id", "name", "role", "email")} for e in evaluators["assigned"]
            ],
            "submitted": [
                {k: e[k] for k in ("user_id", "name", "role", "email", "questionnaire_key")}
                for e in evaluators["submitted"]
            ],
            "with_scores": evaluators["with_scores"],
        },
        "coverage": _coverage(evaluators, responses, questions),
        "scoring": _scoring(scores, evaluators["with_scores"]),
        "top_risk_drivers": {
            "questions": [entry.to_dict() for entry in risk_entries],
            "method": "derived from scores + joined answer snippets from responses",
        },
        "tensions": _tensions(tensions, len(evaluators["assigned"])),
    }
    logger.info(
        "Built report metrics for project=%s questionnaire=%s (%d scores, %d tensions)",
        project_id, questionnaire_key, len(scores), len(tensions),
    )
    return metrics
