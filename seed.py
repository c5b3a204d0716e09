import contextlib
import logging

import config
from db.session import get_db, init_db
from models.question import Question
from models.questionnaire import Questionnaire

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

YES_PARTIAL_NO = [
    {"key": "yes", "label": "Yes", "score": 4},
    {"key": "partially", "label": "Partially", "score": 2},
    {"key": "no", "label": "No", "score": 0},
    {"key": "na", "label": "Not applicable", "score": 0, "na": True},
]

RISK_SCALE = [
    {"key": "risk_1", "label": "1 - Low risk", "score": 4},
    {"key": "risk_2", "label": "2", "score": 3},
    {"key": "risk_3", "label": "3", "score": 2},
    {"key": "risk_4", "label": "4", "score": 1},
    {"key": "risk_5", "label": "5 - High risk", "score": 0},
]

# --- CONFIGURE THE GENERAL QUESTIONNAIRE ---
GENERAL_QUESTIONNAIRE = {"key": "general-v1", "title": "General ethical assessment", "version": 1}

GENERAL_QUESTIONS = [
    ("T1", "TRANSPARENCY", "single_choice", YES_PARTIAL_NO,
     "Are users informed that they are interacting with an AI system?"),
    ("T2", "TRANSPARENCY", "open_text", None,
     "Describe how the system's decisions can be explained to affected people."),
    ("H1", "HUMAN AGENCY & OVERSIGHT", "single_choice", YES_PARTIAL_NO,
     "Can a human override or reverse the system's outputs?"),
    ("H2", "HUMAN AGENCY & OVERSIGHT", "single_choice", RISK_SCALE,
     "How likely is over-reliance on the system by its operators?"),
    ("S1", "TECHNICAL ROBUSTNESS & SAFETY", "single_choice", YES_PARTIAL_NO,
     "Has the system been tested against adversarial or out-of-distribution inputs?"),
    ("S2", "TECHNICAL ROBUSTNESS & SAFETY", "numeric", None,
     "Rate the maturity of the fallback plan if the system fails (0-4)."),
    ("P1", "PRIVACY & DATA GOVERNANCE", "single_choice", YES_PARTIAL_NO,
     "Is personal data minimised and processed on a documented legal basis?"),
    ("P2", "PRIVACY & DATA GOVERNANCE", "multi_choice", [
        {"key": "encryption", "label": "Encryption at rest", "score": 4},
        {"key": "access_logs", "label": "Access logging", "score": 3},
        {"key": "retention", "label": "Retention limits", "score": 3},
        {"key": "none", "label": "None of these", "score": 0},
    ], "Which data protection measures are in place?"),
    ("F1", "DIVERSITY, NON-DISCRIMINATION & FAIRNESS", "single_choice", YES_PARTIAL_NO,
     "Has performance been evaluated across relevant demographic groups?"),
    ("F2", "DIVERSITY, NON-DISCRIMINATION & FAIRNESS", "single_choice", RISK_SCALE,
     "How likely is the system to disadvantage a protected group?"),
    ("W1", "SOCIETAL & INTERPERSONAL WELL-BEING", "single_choice", RISK_SCALE,
     "How likely is the system to harm the social relationships of its users?"),
    ("A1", "ACCOUNTABILITY", "single_choice", YES_PARTIAL_NO,
     "Is there a named owner accountable for the system's outcomes?"),
    ("A2", "ACCOUNTABILITY", "open_text", None,
     "Describe the audit trail available for decisions made with the system."),
    ("W2", "SOCIETAL & INTERPERSONAL WELL-BEING", "open_text", None,
     "Describe the expected environmental impact of operating the system."),
]


def seed_questionnaire(db, questionnaire=GENERAL_QUESTIONNAIRE, questions=GENERAL_QUESTIONS) -> int:
    """
    Inserts the questionnaire and its questions. Existing question codes are
    left untouched so the script can be re-run safely. Returns the number of
    questions inserted.
    """
    existing = db.query(Questionnaire).filter(Questionnaire.key == questionnaire["key"]).first()
    if existing is None:
        db.add(Questionnaire(**questionnaire, is_active=True))

    known_codes = {
        code for (code,) in db.query(Question.code).filter(Question.questionnaire_key == questionnaire["key"])
    }

    inserted = 0
    for order, (code, principle, answer_type, options, text) in enumerate(questions, start=1):
        if code in known_codes:
            logger.warning(f"Question '{code}' already exists in {questionnaire['key']}. Skipping.")
            continue
        db.add(Question(
            questionnaire_key=questionnaire["key"],
            code=code,
            principle=principle,
            answer_type=answer_type,
            options=options,
            required=answer_type != "open_text",
            order=order,
            text=text,
        ))
        inserted += 1

    db.commit()
    return inserted


def seed_database():
    """One-time build script: creates the tables and the general questionnaire."""
    logger.info("Starting database seed...")
    init_db()
    with contextlib.closing(next(get_db())) as db:
        inserted = seed_questionnaire(db)
        logger.info(f"Successfully saved {inserted} new questions for {GENERAL_QUESTIONNAIRE['key']}.")
    logger.info("Database seeding complete!")


if __name__ == "__main__":
    seed_database()
