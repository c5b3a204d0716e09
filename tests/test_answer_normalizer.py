import pytest

from models.question import Question
from services.answer_normalizer import (
    normalize,
    normalize_answer,
    parse_answer,
    has_content,
    SingleChoiceAnswer,
    MultiChoiceAnswer,
    OpenTextAnswer,
    NumericAnswer,
)
from services.errors import ValidationError


def make_question(answer_type, options=None, code="Q1"):
    return Question(code=code, principle="TRANSPARENCY", answer_type=answer_type, options=options)


def test_single_choice_uses_option_score():
    q = make_question("single_choice", [{"key": "a", "score": 4}, {"key": "b", "score": 0}])
    assert normalize(q, {"choiceKey": "b"}) == 0
    assert normalize(q, {"choiceKey": "a"}) == 4


def test_single_choice_missing_or_unknown_key_is_rejected():
    q = make_question("single_choice", [{"key": "a", "score": 4}])
    with pytest.raises(ValidationError):
        normalize(q, {})
    with pytest.raises(ValidationError) as exc:
        normalize(q, {"choiceKey": "zzz"})
    assert exc.value.question_code == "Q1"


def test_multi_choice_averages_matched_options():
    q = make_question("multi_choice", [{"key": "x", "score": 2}, {"key": "y", "score": 4}])
    assert normalize(q, {"multiChoiceKeys": ["x", "y"]}) == 3.0


def test_multi_choice_ignores_unknown_keys():
    q = make_question("multi_choice", [{"key": "x", "score": 2}, {"key": "y", "score": 4}])
    assert normalize(q, {"multiChoiceKeys": ["y", "ghost"]}) == 4.0


def test_multi_choice_requires_selection():
    q = make_question("multi_choice", [{"key": "x", "score": 2}])
    with pytest.raises(ValidationError):
        normalize(q, {"multiChoiceKeys": []})
    with pytest.raises(ValidationError):
        normalize(q, None)


def test_open_text_override_priority():
    q = make_question("open_text")
    payload = {"text": "Some justification"}
    assert normalize(q, payload) == 0
    assert normalize(q, payload, {"score": 1}) == 1
    assert normalize(q, payload, {"score": 1, "scoreSuggested": 2}) == 2
    assert normalize(q, payload, {"score": 1, "scoreSuggested": 2, "scoreFinal": 3.5}) == 3.5


def test_open_text_out_of_range_override_is_rejected():
    q = make_question("open_text")
    with pytest.raises(ValidationError):
        normalize(q, {"text": "x"}, {"scoreFinal": 7})


def test_numeric_passes_value_through():
    q = make_question("numeric")
    assert normalize(q, {"numeric": 2.5}) == 2.5
    assert normalize(q, {}) == 0


@pytest.mark.parametrize("value", [-1, 4.01, 10])
def test_numeric_out_of_range_is_rejected(value):
    q = make_question("numeric")
    with pytest.raises(ValidationError):
        normalize(q, {"numeric": value})


def test_numeric_must_be_a_number():
    q = make_question("numeric")
    with pytest.raises(ValidationError):
        normalize(q, {"numeric": "three"})


def test_scores_round_half_up_to_two_decimals():
    q = make_question("multi_choice", [
        {"key": "a", "score": 1}, {"key": "b", "score": 1}, {"key": "c", "score": 2},
    ])
    # 4 / 3 = 1.333...
    assert normalize(q, {"multiChoiceKeys": ["a", "b", "c"]}) == 1.33
    assert normalize(make_question("numeric"), {"numeric": 1.005}) == 1.01


def test_na_option_is_flagged():
    q = make_question("single_choice", [{"key": "yes", "score": 4}, {"key": "na", "score": 0, "na": True}])
    result = normalize_answer(q, {"choiceKey": "na"})
    assert result.is_na is True
    assert normalize_answer(q, {"choiceKey": "yes"}).is_na is False


def test_parse_answer_returns_variant_for_answer_type():
    assert parse_answer(make_question("single_choice"), {"choiceKey": "a"}) == SingleChoiceAnswer("a")
    assert parse_answer(make_question("multi_choice"), {"multiChoiceKeys": ["a"]}) == MultiChoiceAnswer(("a",))
    assert isinstance(parse_answer(make_question("open_text"), {"text": "t"}), OpenTextAnswer)
    assert parse_answer(make_question("numeric"), {"numeric": 1}) == NumericAnswer(1.0)


def test_unsupported_answer_type():
    with pytest.raises(ValidationError):
        normalize(make_question("likert"), {"value": 3})


def test_has_content():
    assert has_content({"choiceKey": "a"})
    assert has_content({"text": "hello"})
    assert has_content({"numeric": 0})
    assert has_content({"multiChoiceKeys": ["x"]})
    assert not has_content({"text": "   "})
    assert not has_content(None)
    assert not has_content({})


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_numbers_are_rejected(value):
    with pytest.raises(ValidationError):
        normalize(make_question("numeric"), {"numeric": value})
    with pytest.raises(ValidationError):
        normalize(make_question("open_text"), {"text": "x"}, {"scoreFinal": value})


def test_multi_choice_excludes_na_options_from_average():
    q = make_question("multi_choice", [
        {"key": "yes", "score": 4}, {"key": "na", "score": 0, "na": True},
    ])
    result = normalize_answer(q, {"multiChoiceKeys": ["yes", "na"]})
    assert result.score == 4.0
    assert result.is_na is False

    only_na = normalize_answer(q, {"multiChoiceKeys": ["na"]})
    assert only_na.is_na is True
    assert only_na.score == 0
