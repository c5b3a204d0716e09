from types import SimpleNamespace

import pytest

from services.risk_ranker import (
    RiskEntry,
    attach_evidence,
    collect_from_scores,
    rank_buckets,
    rank_risky_questions,
    rank_with_context,
    severity_label,
)
from services.score_aggregator import compute_scores


def fake_score(user_id, role, entries):
    return SimpleNamespace(user_id=user_id, role=role, by_question=entries)


def entry(qid, score, principle="TRANSPARENCY", is_na=False):
    return {"question_id": qid, "question_code": f"Q{qid}", "principle_key": principle,
            "score": score, "weight": 1, "is_na": is_na}


@pytest.mark.parametrize("avg,label", [
    (0.0, "Critical"), (1.49, "Critical"), (1.5, "High"),
    (1.99, "High"), (2.0, "Medium"), (2.49, "Medium"), (2.5, "Low"), (4.0, "Low"),
])
def test_severity_label(avg, label):
    assert severity_label(avg) == label


def test_lower_average_ranks_first():
    scores = [
        fake_score(1, "ethical-expert", [entry(1, 4), entry(2, 1), entry(3, 2)]),
        fake_score(2, "legal-expert", [entry(1, 2), entry(2, 0), entry(3, 3)]),
    ]
    ranked = rank_buckets(collect_from_scores(scores))

    assert [e.question_id for e in ranked] == ["2", "3", "1"]
    assert ranked[0].avg_risk_score == 0.5
    assert ranked[0].n == 2
    assert ranked[0].roles_involved == ["ethical-expert", "legal-expert"]
    assert ranked[0].roles_most_at_risk == ["legal-expert", "ethical-expert"]
    assert ranked[0].severity_label == "Critical"


def test_ties_keep_first_seen_order_and_limit_applies():
    scores = [fake_score(1, "ethical-expert", [entry(5, 2), entry(3, 2), entry(9, 2)])]
    ranked = rank_buckets(collect_from_scores(scores), limit=2)
    assert [e.question_id for e in ranked] == ["5", "3"]


def test_na_and_non_numeric_entries_are_ignored():
    scores = [fake_score(1, "ethical-expert", [entry(1, 0, is_na=True), entry(2, None), entry(3, True), entry(4, 3)])]
    ranked = rank_buckets(collect_from_scores(scores))
    assert [e.question_id for e in ranked] == ["4"]


def test_attach_evidence_caps_and_truncates():
    ranked = [RiskEntry(question_id="1", question_code="Q1", principle_key="TRANSPARENCY", avg_risk_score=1, n=3)]
    long_text = "x" * 300
    answers = [
        SimpleNamespace(question_id=1, score=1, answer={"text": long_text}, answer_text=None),
        SimpleNamespace(question_id=1, score=1, answer={"text": "too short"}, answer_text=None),
        SimpleNamespace(question_id=1, score=0, answer=None, answer_text="  Logs are not retained long enough to audit.  "),
        SimpleNamespace(question_id=1, score=2, answer={"text": "A third usable excerpt for the same question."}, answer_text=None),
        SimpleNamespace(question_id=7, score=2, answer={"text": "Belongs to a question that was not ranked."}, answer_text=None),
    ]
    responses = [SimpleNamespace(role="legal-expert", user_id=4, answers=answers)]

    context = attach_evidence(ranked, responses)

    assert ranked[0].answer_excerpts == ["x" * 160, "Logs are not retained long enough to audit."]
    assert len(context) == 3
    assert context[0]["role"] == "legal-expert"
    assert context[0]["user_id"] == "4"


def test_ranking_from_stored_scores(stores, factory):
    project = factory.project()
    factory.questionnaire()
    q1 = factory.question("T1", principle="TRANSPARENCY")
    q2 = factory.question("A1", principle="ACCOUNTABILITY")
    expert = factory.user(role="ethical-expert")
    factory.response(project, expert, [
        (q1, 4),
        (q2, 0, {"answer": {"choiceKey": "no"}, "answer_text": "No one owns the model once it is deployed."}),
    ])
    compute_scores(stores, project.id)

    entries, context = rank_with_context(stores, project.id, "general-v1")

    assert [e.question_code for e in entries] == ["A1", "T1"]
    assert entries[0].answer_excerpts == ["No one owns the model once it is deployed."]
    assert context[0]["question_id"] == str(q2.id)


def test_falls_back_to_responses_without_scores(stores, factory):
    project = factory.project()
    factory.questionnaire()
    q1 = factory.question("T1")
    q2 = factory.question("T2")
    expert = factory.user()
    factory.response(project, expert, [(q1, 2), (q2, 1)])

    entries = rank_risky_questions(stores, project.id, "general-v1")

    assert [e.question_code for e in entries] == ["T2", "T1"]


def test_to_dict_rounds_average():
    data = RiskEntry("1", "Q1", "TRANSPARENCY", 1.0 / 3, 3).to_dict()
    assert data["avg_risk_score"] == 0.33
    assert data["answer_excerpts"] == []
