"""
Score aggregator: rolls submitted answers up into one Score per
(project, user, questionnaire) triple.

Every call re-derives the rollup from the stored Responses and fully
replaces the prior Score; nothing is merged incrementally.
"""
import logging
from collections import OrderedDict
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

import config
from services.common import safe_mean, safe_min, safe_max
from services.principles import is_known_principle

logger = logging.getLogger(__name__)


def _stats(values: List[float]) -> Dict[str, Any]:
    return {
        "avg": safe_mean(values),
        "n": len(values),
        "min": safe_min(values),
        "max": safe_max(values),
    }


def aggregate_answers(answers: Iterable[Any], resolve_question: Callable[[Any], Any]) -> Dict[str, Any]:
    """
    Computes totals, per-principle stats and per-question entries for a pool
    of answers. Answers whose question cannot be resolved are skipped;
    N/A answers appear in by_question only.
    """
    by_principle_scores: Dict[str, List[float]] = OrderedDict()
    all_scores: List[float] = []
    by_question: List[Dict[str, Any]] = []

    for answer in answers:
        question = resolve_question(answer.question_id)
        if question is None:
            logger.warning(
                "Question %s (%s) not found, answer skipped",
                answer.question_id, getattr(answer, "question_code", "?"),
            )
            continue

        principle = question.principle
        if not is_known_principle(principle):
            logger.warning("Question %s has unknown principle %r", question.code, principle)

        is_na = bool(getattr(answer, "is_na", False))
        by_question.append({
            "question_id": question.id,
            "question_code": question.code,
            "principle_key": principle,
            "score": answer.score,
            "weight": getattr(question, "weight", None) or 1,
            "is_na": is_na,
        })
        if is_na:
            continue

        by_principle_scores.setdefault(principle, []).append(float(answer.score))
        all_scores.append(float(answer.score))

    totals = _stats(all_scores)
    return {
        "totals": {"avg": totals["avg"], "min": totals["min"], "max": totals["max"], "n": totals["n"]},
        "by_principle": {p: _stats(scores) for p, scores in by_principle_scores.items()},
        "by_question": by_question,
    }


def _latest_only(responses: List[Any]) -> List[Any]:
    latest = OrderedDict()
    for response in responses:
        key = (response.user_id, response.role, response.questionnaire_key)
        current = latest.get(key)
        stamp = (response.submitted_at or datetime.min, response.id or 0)
        if current is None or stamp > (current.submitted_at or datetime.min, current.id or 0):
            latest[key] = response
    return list(latest.values())


def group_responses(responses: Iterable[Any], dedupe: bool = False) -> "OrderedDict":
    """
    Groups responses by (user_id, role, questionnaire_key). Without dedupe the
    answers of every matching response are pooled, resubmissions included.
    """
    responses = list(responses)
    if dedupe:
        responses = _latest_only(responses)

    grouped = OrderedDict()
    for response in responses:
        key = (response.user_id, response.role, response.questionnaire_key)
        group = grouped.setdefault(key, {
            "user_id": response.user_id,
            "role": response.role,
            "questionnaire_key": response.questionnaire_key,
            "answers": [],
        })
        group["answers"].extend(response.answers or [])
    return grouped


def compute_scores(
    stores,
    project_id: Any,
    user_id: Any = None,
    questionnaire_key: Optional[str] = None,
    dedupe: Optional[bool] = None,
) -> Optional[List[Dict[str, Any]]]:
    """
    Recomputes and upserts the Score of every (user, role, questionnaire)
    group found among the project's submitted Responses matching the filter.

    Returns the list of written score documents, or None when no submitted
    Response matches (nothing to do, not a failure).
    """
    if dedupe is None:
        dedupe = config.DEDUPE_RESUBMISSIONS

    responses = stores.responses.find(
        project_id,
        user_id=user_id,
        questionnaire_key=questionnaire_key,
        statuses=["submitted"],
    )
    if not responses:
        logger.info(
            "No submitted responses for project=%s user=%s questionnaire=%s",
            project_id, user_id, questionnaire_key,
        )
        return None

    question_cache: Dict[Any, Any] = {}

    def resolve_question(question_id):
        if question_id not in question_cache:
            question_cache[question_id] = stores.questions.get(question_id)
        return question_cache[question_id]

    results = []
    for group in group_responses(responses, dedupe=dedupe).values():
        rollup = aggregate_answers(group["answers"], resolve_question)
        values = {
            "role": group["role"],
            "computed_at": datetime.utcnow(),
            "totals": rollup["totals"],
            "by_principle": rollup["by_principle"],
            "by_question": rollup["by_question"],
        }
        stores.scores.upsert(project_id, group["user_id"], group["questionnaire_key"], values)

        doc = {
            "project_id": project_id,
            "user_id": group["user_id"],
            "questionnaire_key": group["questionnaire_key"],
        }
        doc.update(values)
        results.append(doc)

    logger.info("Computed %d score(s) for project=%s", len(results), project_id)
    return results
