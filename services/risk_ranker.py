"""
Risk ranker: finds the questions with the weakest scores across all
evaluators of a project.

The 0-4 scale runs worst -> best, so a LOWER average means HIGHER risk and
entries are always ordered ascending by avg_risk_score, whichever source
the per-question scores come from.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, List, Optional

import config
from services.common import safe_mean, round_score, id_str
from services.answer_normalizer import answer_text_of

logger = logging.getLogger(__name__)

MAX_EXCERPTS = 2
MIN_EXCERPT_LENGTH = 20
MAX_EXCERPT_LENGTH = 160
MAX_CONTEXT_SNIPPETS = 20


@dataclass
class RiskEntry:
    question_id: str
    question_code: str
    principle_key: str
    avg_risk_score: float
    n: int
    roles_involved: List[str] = field(default_factory=list)
    roles_most_at_risk: List[str] = field(default_factory=list)
    severity_label: str = "Low"
    weight: float = 1
    answer_excerpts: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["avg_risk_score"] = round_score(self.avg_risk_score)
        return data


def severity_label(avg_score: float) -> str:
    if avg_score < 1.5:
        return "Critical"
    if avg_score < 2.0:
        return "High"
    if avg_score < 2.5:
        return "Medium"
    return "Low"


def _new_bucket(question_id, question_code, principle_key, weight=1):
    return {
        "question_id": question_id,
        "question_code": question_code,
        "principle_key": principle_key,
        "weight": weight,
        "contributions": [],  # (score, role, user_id)
    }


def collect_from_scores(scores: Iterable[Any]) -> "OrderedDict":
    buckets = OrderedDict()
    for score in scores:
        for entry in score.by_question or []:
            if entry.get("is_na"):
                continue
            value = entry.get("score")
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                continue
            qid = id_str(entry.get("question_id"))
            bucket = buckets.get(qid)
            if bucket is None:
                bucket = buckets[qid] = _new_bucket(
                    qid,
                    entry.get("question_code") or qid,
                    entry.get("principle_key") or "Unknown",
                    entry.get("weight") or 1,
                )
            bucket["contributions"].append((float(value), score.role, id_str(score.user_id)))
    return buckets


def collect_from_responses(responses: Iterable[Any], questions_by_id: Dict[str, Any]) -> "OrderedDict":
    """Fallback when no Score carries by_question entries."""
    buckets = OrderedDict()
    for response in responses:
        for answer in response.answers or []:
            if getattr(answer, "is_na", False):
                continue
            if not isinstance(answer.score, (int, float)):
                continue
            qid = id_str(answer.question_id)
            question = questions_by_id.get(qid)
            if question is None:
                continue
            bucket = buckets.get(qid)
            if bucket is None:
                bucket = buckets[qid] = _new_bucket(
                    qid, question.code, question.principle or "Unknown", getattr(question, "weight", None) or 1
                )
            bucket["contributions"].append((float(answer.score), response.role, id_str(response.user_id)))
    return buckets


def _roles_most_at_risk(contributions) -> List[str]:
    per_role = OrderedDict()
    for value, role, _ in contributions:
        per_role.setdefault(role or "unknown", []).append(value)
    averaged = sorted(per_role.items(), key=lambda item: safe_mean(item[1]))
    return [role for role, _ in averaged[:2]]


def rank_buckets(buckets: "OrderedDict", limit: Optional[int] = None) -> List[RiskEntry]:
    if limit is None:
        limit = config.TOP_RISK_LIMIT

    entries = []
    for bucket in buckets.values():
        contributions = bucket["contributions"]
        if not contributions:
            continue
        avg = safe_mean(value for value, _, _ in contributions)
        roles = []
        for _, role, _ in contributions:
            if role and role not in roles:
                roles.append(role)
        entries.append(RiskEntry(
            question_id=bucket["question_id"],
            question_code=bucket["question_code"],
            principle_key=bucket["principle_key"],
            avg_risk_score=avg,
            n=len(contributions),
            roles_involved=roles,
            roles_most_at_risk=_roles_most_at_risk(contributions),
            severity_label=severity_label(avg),
            weight=bucket["weight"],
        ))

    # sorted() is stable, so ties keep first-seen order
    entries = sorted(entries, key=lambda e: e.avg_risk_score)
    return entries[:limit]


def _excerpt_source(answer) -> Optional[str]:
    return answer_text_of(getattr(answer, "answer", None), getattr(answer, "answer_text", None))


def _excerpt(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    text = text.strip()
    if len(text) < MIN_EXCERPT_LENGTH:
        return None
    return text[:MAX_EXCERPT_LENGTH]


def attach_evidence(entries: List[RiskEntry], responses: Iterable[Any]) -> List[Dict[str, Any]]:
    """
    Adds up to two free-text excerpts to each ranked entry and returns the
    flat snippet list used as report context. Scores and order are untouched.
    """
    by_id = {entry.question_id: entry for entry in entries}
    context = []
    for response in responses:
        for answer in response.answers or []:
            entry = by_id.get(id_str(answer.question_id))
            if entry is None:
                continue
            snippet = _excerpt(_excerpt_source(answer))
            if snippet is None:
                continue
            if len(entry.answer_excerpts) < MAX_EXCERPTS:
                entry.answer_excerpts.append(snippet)
            context.append({
                "question_id": entry.question_id,
                "role": response.role or "unknown",
                "user_id": id_str(response.user_id),
                "answer_snippet": snippet,
                "score": answer.score,
            })
    return context[:MAX_CONTEXT_SNIPPETS]


def rank_with_context(
    stores,
    project_id: Any,
    questionnaire_key: Optional[str] = None,
    limit: Optional[int] = None,
    scores: Optional[List[Any]] = None,
    responses: Optional[List[Any]] = None,
):
    """
    Ranks questions by average score, lowest (riskiest) first, and joins
    answer excerpts as evidence. Score.by_question is the primary source;
    submitted Response answers are used when no Score carries it.
    Preloaded scores/responses may be passed to avoid re-reading them.
    """
    if scores is None:
        scores = stores.scores.find(project_id, questionnaire_key=questionnaire_key)
    if responses is None:
        responses = stores.responses.find(
            project_id, questionnaire_key=questionnaire_key, statuses=["submitted"]
        )

    buckets = collect_from_scores(scores)
    if not buckets:
        questions_by_id = {id_str(q.id): q for q in stores.questions.find(questionnaire_key)}
        buckets = collect_from_responses(responses, questions_by_id)
        if buckets:
            logger.info("Risk ranking for project=%s used response answers", project_id)

    entries = rank_buckets(buckets, limit=limit)
    context = attach_evidence(entries, responses)
    return entries, context


def rank_risky_questions(
    stores,
    project_id: Any,
    questionnaire_key: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[RiskEntry]:
    """rank_risky_questions(project, questionnaire?) -> RiskEntry list, riskiest first."""
    entries, _ = rank_with_context(stores, project_id, questionnaire_key, limit=limit)
    return entries
