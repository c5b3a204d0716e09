"""
Answer-level rollups computed straight from submitted Responses with pandas:
project-level and role-level principle statistics, grouped hotspots and
expert completion status. These complement the per-evaluator Score rollups.
"""
from typing import Any, Dict, List, Optional

import pandas as pd

from services.common import round_score, percentage, round_pct, id_str

ANSWER_COLUMNS = [
    "user_id", "role", "questionnaire_key", "question_id",
    "question_code", "principle", "score",
]


def answers_frame(stores, project_id: Any, questionnaire_key: Optional[str] = None) -> pd.DataFrame:
    """One row per scored, non-N/A answer of a submitted Response whose question is known."""
    questions = {id_str(q.id): q for q in stores.questions.find(questionnaire_key)}
    rows = []
    for response in stores.responses.find(project_id, questionnaire_key=questionnaire_key, statuses=["submitted"]):
        for answer in response.answers or []:
            question = questions.get(id_str(answer.question_id))
            if question is None or answer.is_na:
                continue
            rows.append({
                "user_id": id_str(response.user_id),
                "role": response.role,
                "questionnaire_key": response.questionnaire_key,
                "question_id": id_str(answer.question_id),
                "question_code": answer.question_code,
                "principle": question.principle,
                "score": float(answer.score),
            })
    return pd.DataFrame(rows, columns=ANSWER_COLUMNS)


def _stats_frame(frame: pd.DataFrame, keys: List[str]) -> pd.DataFrame:
    return frame.groupby(keys, sort=True).agg(
        avg_score=("score", "mean"),
        min_score=("score", "min"),
        max_score=("score", "max"),
        answer_count=("score", "size"),
        question_codes=("question_code", lambda codes: sorted(set(codes))),
    ).reset_index()


def project_level_scores_by_principle(stores, project_id: Any, questionnaire_key: Optional[str] = None) -> List[Dict[str, Any]]:
    """Average score by principle across all experts, sorted by principle name."""
    frame = answers_frame(stores, project_id, questionnaire_key)
    if frame.empty:
        return []
    return [
        {
            "principle": row.principle,
            "avg_score": round_score(row.avg_score),
            "min_score": float(row.min_score),
            "max_score": float(row.max_score),
            "count": int(row.answer_count),
            "question_codes": list(row.question_codes),
        }
        for row in _stats_frame(frame, ["principle"]).itertuples(index=False)
    ]


def role_level_scores_by_principle(stores, project_id: Any, questionnaire_key: Optional[str] = None) -> List[Dict[str, Any]]:
    """Per role, the average score of each principle; roles sorted by name."""
    frame = answers_frame(stores, project_id, questionnaire_key)
    if frame.empty:
        return []
    stats = _stats_frame(frame, ["role", "principle"])
    result = []
    for role, group in stats.groupby("role", sort=True):
        result.append({
            "role": role,
            "principles": [
                {
                    "principle": row.principle,
                    "avg_score": round_score(row.avg_score),
                    "min_score": float(row.min_score),
                    "max_score": float(row.max_score),
                    "count": int(row.answer_count),
                }
                for row in group.itertuples(index=False)
            ],
        })
    return result


def hotspot_questions(stores, project_id: Any, questionnaire_key: Optional[str] = None, threshold: float = 1.0) -> List[Dict[str, Any]]:
    """
    Questions answered at or below the threshold, grouped by question.
    Sorted by average ascending, then by how often they were flagged.
    """
    frame = answers_frame(stores, project_id, questionnaire_key)
    frame = frame[frame["score"] <= threshold]
    if frame.empty:
        return []
    grouped = frame.groupby(["question_code", "principle"], sort=False).agg(
        answer_count=("score", "size"),
        avg_score=("score", "mean"),
        min_score=("score", "min"),
        roles=("role", lambda roles: sorted(set(roles))),
        affected_users=("user_id", "nunique"),
    ).reset_index()
    grouped = grouped.sort_values(["avg_score", "answer_count"], ascending=[True, False], kind="mergesort")
    return [
        {
            "question_code": row.question_code,
            "principle": row.principle,
            "count": int(row.answer_count),
            "avg_score": round_score(row.avg_score),
            "min_score": float(row.min_score),
            "roles": list(row.roles),
            "affected_users": int(row.affected_users),
        }
        for row in grouped.itertuples(index=False)
    ]


def expert_completion_status(stores, project_id: Any) -> List[Dict[str, Any]]:
    """Submitted vs assigned questionnaires for every assigned expert with responses."""
    assignments = {id_str(a.user_id): a for a in stores.assignments.find(project_id)}
    rows = [
        {
            "user_id": id_str(r.user_id),
            "role": r.role,
            "questionnaire_key": r.questionnaire_key,
            "submitted": r.status == "submitted",
        }
        for r in stores.responses.find(project_id)
        if id_str(r.user_id) in assignments
    ]
    if not rows:
        return []

    frame = pd.DataFrame(rows)
    result = []
    for (user_id, role), group in frame.groupby(["user_id", "role"], sort=False):
        assigned = list(assignments[user_id].questionnaires or [])
        submitted_count = int(group["submitted"].sum())
        result.append({
            "user_id": user_id,
            "role": role,
            "submitted_questionnaires": sorted(set(group.loc[group["submitted"], "questionnaire_key"])),
            "assigned_questionnaires": assigned,
            "submitted_count": submitted_count,
            "draft_count": int((~group["submitted"]).sum()),
            "completion_rate": round_pct(percentage(submitted_count, len(assigned))),
        })
    result.sort(key=lambda item: (item["role"], -item["completion_rate"]))
    return result
