from types import SimpleNamespace

import pytest

from services.analytics_service import build_analytics, get_project_analytics, overall_average
from services.errors import NotFoundError
from services.principles import PRINCIPLES, status_bucket
from services.score_aggregator import compute_scores


@pytest.fixture
def project_with_scores(factory, stores):
    project = factory.project()
    factory.questionnaire()
    t1 = factory.question("T1", principle="TRANSPARENCY")
    p1 = factory.question("P1", principle="PRIVACY & DATA GOVERNANCE")
    a1 = factory.question("A1", principle="ACCOUNTABILITY")

    ethicist = factory.user(role="ethical-expert")
    lawyer = factory.user(role="legal-expert")
    idle = factory.user(role="technical-expert")
    for user in (ethicist, lawyer, idle):
        factory.assignment(project, user)

    factory.response(project, ethicist, [(t1, 4), (p1, 2)])
    factory.response(project, lawyer, [(t1, 2), (a1, 0)])
    compute_scores(stores, project.id)
    return SimpleNamespace(project=project, ethicist=ethicist, lawyer=lawyer, idle=idle)


def test_unknown_project_raises(stores):
    with pytest.raises(NotFoundError):
        build_analytics(stores, 404)


def test_empty_project_is_zeroed(stores, factory):
    project = factory.project()
    factory.assignment(project, factory.user())

    payload = get_project_analytics(stores, project.id)

    assert compute_scores(stores, project.id) is None
    assert payload["questionnaire_key"] == "general-v1"
    assert payload["principle_bar"] == []
    assert payload["evaluators"] == []
    assert payload["overall_average"] == 0.0
    assert payload["participation"]["assigned_count"] == 1
    assert payload["participation"]["submitted_count"] == 0
    assert payload["participation"]["submission_pct"] == 0.0
    assert payload["role_principle_heatmap"]["matrix"] == []
    assert payload["top_risky_questions"] == []
    assert payload["tensions_summary"]["total"] == 0
    assert payload["evidence_metrics"]["coverage_pct"] == 0.0


def test_evaluators_only_include_scored_users(stores, project_with_scores):
    payload = build_analytics(stores, project_with_scores.project.id, "general-v1")

    scored = {e["user_id"] for e in payload["evaluators"]}
    assert scored == {str(project_with_scores.ethicist.id), str(project_with_scores.lawyer.id)}
    assert payload["role_principle_heatmap"]["evaluators"] == payload["evaluators"]
    assert payload["participation"]["assigned_count"] == 3
    assert payload["participation"]["submitted_count"] == 2
    assert payload["participation"]["submission_pct"] == 66.7


def test_principle_bar_is_in_canonical_order(stores, project_with_scores):
    bars = build_analytics(stores, project_with_scores.project.id)["principle_bar"]

    assert [b["principle_key"] for b in bars] == [
        "TRANSPARENCY", "PRIVACY & DATA GOVERNANCE", "ACCOUNTABILITY",
    ]
    transparency = bars[0]
    assert transparency["avg_score"] == 3.0
    assert transparency["n"] == 2
    assert transparency["status_bucket"] == "High"
    assert bars[2]["status_bucket"] == "Low risk"


def test_heatmap_uses_none_for_missing_cells(stores, project_with_scores):
    heatmap = build_analytics(stores, project_with_scores.project.id)["role_principle_heatmap"]

    assert heatmap["roles"] == ["ethical-expert", "legal-expert"]
    assert heatmap["principles"] == PRINCIPLES
    ethical_row = dict(zip(PRINCIPLES, heatmap["matrix"][0]))
    legal_row = dict(zip(PRINCIPLES, heatmap["matrix"][1]))
    assert ethical_row["TRANSPARENCY"] == 4.0
    assert ethical_row["ACCOUNTABILITY"] is None
    assert legal_row["ACCOUNTABILITY"] == 0.0
    assert legal_row["PRIVACY & DATA GOVERNANCE"] is None
    assert dict(zip(PRINCIPLES, heatmap["n_matrix"][1]))["ACCOUNTABILITY"] == 1


def test_risky_questions_lowest_first(stores, project_with_scores):
    risky = build_analytics(stores, project_with_scores.project.id)["top_risky_questions"]
    assert [r["question_code"] for r in risky] == ["A1", "P1", "T1"]
    assert risky[0]["avg_risk_score"] == 0.0


def test_tensions_table_and_summary(stores, factory, project_with_scores):
    project = project_with_scores.project
    author = project_with_scores.ethicist
    factory.tension(project, author, votes=[
        {"userId": author.id, "voteType": "agree"},
        {"userId": project_with_scores.lawyer.id, "voteType": "agree"},
        {"userId": project_with_scores.idle.id, "voteType": "agree"},
    ], evidence=[{"type": "Policy", "description": "Data retention policy"}], severity="critical")
    factory.tension(project, author, status="resolved", severity="low")

    payload = build_analytics(stores, project.id)

    summary = payload["tensions_summary"]
    assert summary["total"] == 2
    assert summary["accepted"] == 1
    assert summary["resolved"] == 1
    assert summary["by_severity"] == {"low": 1, "medium": 0, "high": 1}
    row = payload["tensions_table"][0]
    assert row["review_state"] == "Accepted"
    assert row["agree_count"] == 2
    assert row["agree_pct"] == 100.0
    assert row["evidence_types"] == {"Policy": 1}
    assert payload["evidence_metrics"]["coverage_pct"] == 50.0
    assert payload["evidence_metrics"]["type_distribution"] == [{"type": "Policy", "count": 1}]


class _Empty:
    def find(self, *args, **kwargs):
        return []


def test_works_with_in_memory_stores():
    score = SimpleNamespace(
        user_id="u1", role="ethical-expert",
        totals={"avg": 1.5, "n": 2, "min": 1, "max": 2},
        by_principle={"ACCOUNTABILITY": {"avg": 1.5, "n": 2, "min": 1, "max": 2}},
        by_question=[{"question_id": "q1", "question_code": "A1", "principle_key": "ACCOUNTABILITY",
                      "score": 1.5, "weight": 1, "is_na": False}],
    )
    stores = SimpleNamespace(
        projects=SimpleNamespace(get=lambda pid: SimpleNamespace(id=pid)),
        scores=SimpleNamespace(find=lambda *a, **k: [score]),
        responses=_Empty(),
        tensions=_Empty(),
        assignments=_Empty(),
        questions=_Empty(),
        users=SimpleNamespace(find_by_ids=lambda ids: []),
    )

    payload = build_analytics(stores, "p1", "general-v1")

    assert payload["overall_average"] == 1.5
    assert payload["evaluators"] == [{"user_id": "u1", "name": "Unknown", "email": "", "role": "ethical-expert"}]
    assert payload["principle_bar"][0]["status_bucket"] == status_bucket(1.5)
    assert payload["top_risky_questions"][0]["question_code"] == "A1"


def test_overall_average_skips_empty_scores():
    scores = [
        SimpleNamespace(totals={"avg": 3.0, "n": 2}),
        SimpleNamespace(totals={"avg": 0.0, "n": 0}),
        SimpleNamespace(totals={"avg": 1.0, "n": 1}),
    ]
    assert overall_average(scores) == 2.0
