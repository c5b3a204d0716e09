"""
Answer normalizer: turns a raw submitted answer plus its Question definition
into a single score on the 0-4 scale.

The raw payload has no tag of its own; its shape is decided by the sibling
Question's answer_type. parse_answer() resolves the payload into one of the
typed variants below, and normalize() scores the variant.

Out-of-range scores (open_text overrides, numeric answers) are rejected with
ValidationError rather than clamped, so every stored score stays in [0, 4].
"""
import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple, Union

from services.common import round_score
from services.errors import ValidationError

MIN_SCORE = 0.0
MAX_SCORE = 4.0


@dataclass(frozen=True)
class SingleChoiceAnswer:
    choice_key: str


@dataclass(frozen=True)
class MultiChoiceAnswer:
    choice_keys: Tuple[str, ...]


@dataclass(frozen=True)
class OpenTextAnswer:
    text: str = ""
    score: Optional[float] = None
    score_suggested: Optional[float] = None
    score_final: Optional[float] = None


@dataclass(frozen=True)
class NumericAnswer:
    value: Optional[float] = None


AnswerValue = Union[SingleChoiceAnswer, MultiChoiceAnswer, OpenTextAnswer, NumericAnswer]


@dataclass(frozen=True)
class NormalizedAnswer:
    value: AnswerValue
    score: float
    is_na: bool = False


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _optional_number(value: Any, field: str, code: str) -> Optional[float]:
    if value is None:
        return None
    if not _is_number(value):
        raise ValidationError(f"{field} must be a number for question {code}", code)
    if not math.isfinite(value):
        raise ValidationError(f"{field} must be a finite number for question {code}", code)
    return float(value)


def parse_answer(question, payload: Optional[Mapping], overrides: Optional[Mapping] = None) -> AnswerValue:
    """
    Resolves the raw payload into the variant selected by question.answer_type.
    `overrides` holds the human score fields (score, scoreSuggested, scoreFinal)
    that only open_text answers consume.
    """
    payload = payload or {}
    overrides = overrides or {}
    code = question.code
    answer_type = question.answer_type

    if answer_type == "single_choice":
        choice_key = payload.get("choiceKey")
        if not choice_key:
            raise ValidationError(f"Missing choiceKey for question {code}", code)
        return SingleChoiceAnswer(choice_key=choice_key)

    if answer_type == "multi_choice":
        keys = payload.get("multiChoiceKeys")
        if not keys or not isinstance(keys, (list, tuple)):
            raise ValidationError(f"Missing multiChoiceKeys for question {code}", code)
        return MultiChoiceAnswer(choice_keys=tuple(keys))

    if answer_type == "open_text":
        return OpenTextAnswer(
            text=payload.get("text") or "",
            score=_optional_number(overrides.get("score"), "score", code),
            score_suggested=_optional_number(overrides.get("scoreSuggested"), "scoreSuggested", code),
            score_final=_optional_number(overrides.get("scoreFinal"), "scoreFinal", code),
        )

    if answer_type == "numeric":
        return NumericAnswer(value=_optional_number(payload.get("numeric"), "numeric", code))

    raise ValidationError(f"Unsupported answer type {answer_type!r} for question {code}", code)


def _score_value(question, value: AnswerValue) -> Tuple[float, bool]:
    if isinstance(value, SingleChoiceAnswer):
        option = question.option(value.choice_key)
        if option is None:
            raise ValidationError(
                f"Invalid choiceKey {value.choice_key} for question {question.code}",
                question.code,
            )
        return float(option.get("score") or 0), bool(option.get("na"))

    if isinstance(value, MultiChoiceAnswer):
        # Unknown keys are ignored, not scored as zero
        selected = [opt for opt in question.options or [] if opt.get("key") in value.choice_keys]
        if not selected:
            return 0.0, False
        scored = [opt for opt in selected if not opt.get("na")]
        if not scored:
            return 0.0, True
        total = sum(float(opt.get("score") or 0) for opt in scored)
        return total / len(scored), False

    if isinstance(value, OpenTextAnswer):
        for candidate in (value.score_final, value.score_suggested, value.score):
            if candidate is not None:
                return candidate, False
        return 0.0, False

    if isinstance(value, NumericAnswer):
        return (value.value if value.value is not None else 0.0), False

    raise ValidationError(f"Unsupported answer value for question {question.code}", question.code)


def normalize_answer(question, payload: Optional[Mapping], overrides: Optional[Mapping] = None) -> NormalizedAnswer:
    value = parse_answer(question, payload, overrides)
    score, is_na = _score_value(question, value)
    if not math.isfinite(score) or score < MIN_SCORE or score > MAX_SCORE:
        raise ValidationError(
            f"Score {score} for question {question.code} is outside the "
            f"{MIN_SCORE:g}-{MAX_SCORE:g} scale",
            question.code,
        )
    return NormalizedAnswer(value=value, score=round_score(score), is_na=is_na)


def normalize(question, payload: Optional[Mapping], overrides: Optional[Mapping] = None) -> float:
    """normalize(question, rawAnswer) -> score in [0, 4], rounded to 2 decimals."""
    return normalize_answer(question, payload, overrides).score


def answer_text_of(payload: Optional[Mapping], fallback: Optional[str] = None) -> Optional[str]:
    """Free text carried by an answer, used only as report evidence."""
    if fallback:
        return fallback
    if isinstance(payload, Mapping):
        text = payload.get("text")
        if isinstance(text, str) and text.strip():
            return text
    return None


def has_content(payload: Optional[Mapping]) -> bool:
    """True when a payload actually answers its question (used for submission checks)."""
    if not isinstance(payload, Mapping):
        return False
    if payload.get("choiceKey") is not None:
        return True
    text = payload.get("text")
    if isinstance(text, str) and text.strip():
        return True
    if payload.get("numeric") is not None:
        return True
    return bool(payload.get("multiChoiceKeys"))
