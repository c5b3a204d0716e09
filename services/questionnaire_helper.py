"""
Helper functions for questionnaire management: which questionnaires a role
is expected to fill.
"""
from typing import List

GENERAL_QUESTIONNAIRE = "general-v1"

ROLE_QUESTIONNAIRES = {
    "ethical-expert": "ethical-expert-v1",
    "medical-expert": "medical-expert-v1",
    "technical-expert": "technical-expert-v1",
    "legal-expert": "legal-expert-v1",
    "education-expert": "education-expert-v1",
}


def get_questionnaire_key_for_role(role: str) -> str:
    """Role-specific questionnaire key, general-v1 for roles without one."""
    return ROLE_QUESTIONNAIRES.get(role, GENERAL_QUESTIONNAIRE)


def get_questionnaires_for_role(role: str) -> List[str]:
    """Every role gets general-v1, plus its role-specific questionnaire if any."""
    role_key = get_questionnaire_key_for_role(role)
    if role_key == GENERAL_QUESTIONNAIRE:
        return [GENERAL_QUESTIONNAIRE]
    return [GENERAL_QUESTIONNAIRE, role_key]


def is_valid_questionnaire_for_role(questionnaire_key: str, role: str) -> bool:
    return questionnaire_key in get_questionnaires_for_role(role)
