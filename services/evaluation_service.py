"""
Evaluation service: the questionnaire workflow around the scoring engine.
Saves drafts (normalizing every answer), submits them, and recomputes the
evaluator's Score once a submission lands.
"""
import logging
from typing import Any, Dict, List, Optional

from services.answer_normalizer import normalize_answer, answer_text_of, has_content
from services.errors import NotFoundError, ValidationError
from services.questionnaire_helper import get_questionnaires_for_role
from services.score_aggregator import compute_scores

logger = logging.getLogger(__name__)


def create_assignment(stores, project_id: Any, user_id: Any, role: str, questionnaires: Optional[List[str]] = None):
    """
    Creates or resets a project assignment. Without an explicit list the
    role's default questionnaires are assigned.
    """
    if questionnaires is None:
        questionnaires = get_questionnaires_for_role(role)
    try:
        assignment = stores.assignments.upsert(project_id, user_id, role, questionnaires)
        stores.commit()
    except Exception:
        stores.rollback()
        raise
    return assignment


def validate_and_map_answers(stores, questionnaire_key: str, answers: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Normalizes a whole batch of submitted answers. Any unknown question code
    or invalid answer fails the batch; nothing is returned partially.
    """
    questions = {q.code: q for q in stores.questions.find(questionnaire_key)}

    mapped = []
    for entry in answers:
        code = entry.get("questionCode")
        question = questions.get(code)
        if question is None:
            raise NotFoundError(f"Question {code} not found in questionnaire {questionnaire_key}")

        payload = entry.get("answer")
        normalized = normalize_answer(question, payload, entry)
        mapped.append({
            "question_id": question.id,
            "question_code": code,
            "answer": payload,
            "answer_text": answer_text_of(payload, entry.get("answerText")),
            "score": normalized.score,
            "score_suggested": entry.get("scoreSuggested"),
            "score_final": entry.get("scoreFinal"),
            "is_na": normalized.is_na,
            "reviewer_id": entry.get("reviewerId"),
            "notes": entry.get("notes"),
            "evidence": entry.get("evidence") or [],
        })
    return mapped


def save_draft_response(stores, project_id: Any, user_id: Any, questionnaire_key: str, answers: List[Dict[str, Any]]):
    """
    Validates the answers and replaces the user's draft with them. A failed
    validation leaves the previously stored answers untouched.
    """
    assignment = stores.assignments.get(project_id, user_id)
    if assignment is None:
        raise NotFoundError("Assignment not found. Please create assignment first.")

    questionnaire = stores.questionnaires.get_active(questionnaire_key)
    if questionnaire is None:
        raise NotFoundError(f"Questionnaire {questionnaire_key} not found or inactive")

    mapped = validate_and_map_answers(stores, questionnaire_key, answers)

    try:
        response = stores.responses.save_draft(
            project_id, user_id, assignment.role, questionnaire_key, questionnaire.version, mapped
        )
        if assignment.status == "assigned":
            assignment.status = "in_progress"
        stores.commit()
    except Exception:
        stores.rollback()
        logger.exception("Error saving draft for project=%s user=%s", project_id, user_id)
        raise
    return response


def validate_submission(stores, response) -> bool:
    """Every required question must carry an answer with actual content."""
    answered = {a.question_code for a in response.answers or [] if has_content(a.answer)}
    missing = [
        q.code
        for q in stores.questions.find(response.questionnaire_key)
        if q.required and q.code not in answered
    ]
    if missing:
        raise ValidationError(f"Missing required questions: {', '.join(missing)}")
    return True


def submit_response(stores, project_id: Any, user_id: Any, questionnaire_key: str):
    """
    Finalizes the user's draft, completes the assignment when all of its
    questionnaires are submitted, then recomputes the user's Score.
    """
    response = stores.responses.find_one(project_id, user_id, questionnaire_key, status="draft")
    if response is None:
        raise NotFoundError("Draft response not found")

    validate_submission(stores, response)

    try:
        stores.responses.mark_submitted(response)
        assignment = stores.assignments.get(project_id, user_id)
        if assignment is not None:
            assigned_keys = list(assignment.questionnaires or [])
            submitted_keys = {
                r.questionnaire_key
                for r in stores.responses.find(project_id, user_id=user_id, statuses=["submitted"])
            }
            submitted_keys.add(questionnaire_key)
            if all(key in submitted_keys for key in assigned_keys):
                assignment.status = "submitted"
                assignment.completed_at = response.submitted_at
        stores.commit()
    except Exception:
        stores.rollback()
        raise

    compute_scores(stores, project_id, user_id, questionnaire_key)
    return response


def get_hotspot_questions(stores, project_id: Any, questionnaire_key: Optional[str] = None, threshold: float = 1.0) -> List[Dict[str, Any]]:
    """Submitted answers scoring at or below the threshold (N/A answers excluded)."""
    hotspots = []
    responses = stores.responses.find(project_id, questionnaire_key=questionnaire_key, statuses=["submitted"])
    for response in responses:
        for answer in response.answers or []:
            if answer.is_na or answer.score > threshold:
                continue
            hotspots.append({
                "project_id": response.project_id,
                "user_id": response.user_id,
                "role": response.role,
                "questionnaire_key": response.questionnaire_key,
                "question_code": answer.question_code,
                "score": answer.score,
                "answer": answer.answer,
            })
    return hotspots
