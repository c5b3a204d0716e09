from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db.session import init_db
from models.answer import Answer
from models.assignment import ProjectAssignment
from models.project import Project
from models.question import Question
from models.questionnaire import Questionnaire
from models.response import Response
from models.tension import Tension
from models.user import User
from services.repositories import SqlStores

YES_NO = [
    {"key": "yes", "score": 4},
    {"key": "partially", "score": 2},
    {"key": "no", "score": 0},
    {"key": "na", "score": 0, "na": True},
]


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    init_db(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, future=True)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def stores(db):
    return SqlStores(db)


class Factory:
    """Builds persisted test data with minimal boilerplate."""

    def __init__(self, db):
        self.db = db
        self._clock = datetime(2026, 1, 1, 9, 0, 0)

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def tick(self):
        self._clock += timedelta(minutes=1)
        return self._clock

    def project(self, title="Triage assistant", **kwargs):
        return self._save(Project(title=title, **kwargs))

    def user(self, role="ethical-expert", name=None, email=None):
        count = self.db.query(User).count() + 1
        return self._save(User(
            name=name or f"Evaluator {count}",
            email=email or f"user{count}@example.org",
            role=role,
        ))

    def questionnaire(self, key="general-v1", version=1, is_active=True):
        return self._save(Questionnaire(key=key, version=version, is_active=is_active))

    def question(self, code, principle="TRANSPARENCY", answer_type="single_choice",
                 options=None, required=True, order=None, key="general-v1"):
        if options is None and answer_type in ("single_choice", "multi_choice"):
            options = YES_NO
        if order is None:
            order = self.db.query(Question).count() + 1
        return self._save(Question(
            questionnaire_key=key,
            code=code,
            principle=principle,
            answer_type=answer_type,
            options=options,
            required=required,
            order=order,
        ))

    def assignment(self, project, user, role=None, questionnaires=("general-v1",), status="assigned"):
        return self._save(ProjectAssignment(
            project_id=project.id,
            user_id=user.id,
            role=role or user.role,
            questionnaires=list(questionnaires),
            status=status,
        ))

    def response(self, project, user, answers, key="general-v1", status="submitted", role=None):
        """answers: list of (question, score) or (question, score, extra-fields dict)."""
        response = Response(
            project_id=project.id,
            user_id=user.id,
            role=role or user.role,
            questionnaire_key=key,
            status=status,
            submitted_at=self.tick() if status == "submitted" else None,
        )
        for item in answers:
            question, score = item[0], item[1]
            extra = item[2] if len(item) > 2 else {}
            fields = {"answer": {"choiceKey": "yes"}}
            fields.update(extra)
            response.answers.append(Answer(
                question_id=question.id,
                question_code=question.code,
                score=score,
                **fields,
            ))
        return self._save(response)

    def tension(self, project, author, votes=(), evidence=(), severity="medium", status=None, **kwargs):
        return self._save(Tension(
            project_id=project.id,
            principle1=kwargs.pop("principle1", "TRANSPARENCY"),
            principle2=kwargs.pop("principle2", "PRIVACY & DATA GOVERNANCE"),
            claim_statement=kwargs.pop("claim_statement", "Explaining decisions exposes patient data."),
            severity=severity,
            votes=list(votes),
            evidence=list(evidence),
            status=status,
            created_by=author.id,
            created_by_role=author.role,
            **kwargs,
        ))


@pytest.fixture
def factory(db):
    return Factory(db)
