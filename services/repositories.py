"""
Repository interfaces consumed by the engine, and their SQLAlchemy
implementations.

Engine entry points receive a store bundle (see SqlStores) instead of
reaching for global model classes, so tests can hand in in-memory fakes
exposing the same methods.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.answer import Answer
from models.assignment import ProjectAssignment
from models.project import Project
from models.question import Question
from models.questionnaire import Questionnaire
from models.response import Response
from models.score import Score
from models.tension import Tension
from models.user import User

logger = logging.getLogger(__name__)


class ResponseStore(Protocol):
    def find(
        self,
        project_id: Any,
        user_id: Any = None,
        questionnaire_key: Optional[str] = None,
        statuses: Optional[Sequence[str]] = None,
    ) -> List[Any]: ...

    def find_one(self, project_id: Any, user_id: Any, questionnaire_key: str, status: Optional[str] = None) -> Optional[Any]: ...


class QuestionStore(Protocol):
    def find(self, questionnaire_key: Optional[str] = None) -> List[Any]: ...

    def get(self, question_id: Any) -> Optional[Any]: ...


class ScoreStore(Protocol):
    def find(self, project_id: Any, questionnaire_key: Optional[str] = None, user_id: Any = None) -> List[Any]: ...

    def upsert(self, project_id: Any, user_id: Any, questionnaire_key: str, values: Dict[str, Any]) -> Any: ...


class TensionStore(Protocol):
    def find(self, project_id: Any) -> List[Any]: ...


class AssignmentStore(Protocol):
    def find(self, project_id: Any) -> List[Any]: ...

    def get(self, project_id: Any, user_id: Any) -> Optional[Any]: ...


class ProjectStore(Protocol):
    def get(self, project_id: Any) -> Optional[Any]: ...


class UserStore(Protocol):
    def find_by_ids(self, user_ids: Iterable[Any]) -> List[Any]: ...


class QuestionnaireStore(Protocol):
    def get_active(self, key: str) -> Optional[Any]: ...


# ---------------------------------------------------------------------------
# SQLAlchemy implementations
# ---------------------------------------------------------------------------

class SqlResponseStore:
    def __init__(self, db: Session):
        self.db = db

    def find(self, project_id, user_id=None, questionnaire_key=None, statuses=None):
        query = self.db.query(Response).filter(Response.project_id == project_id)
        if user_id is not None:
            query = query.filter(Response.user_id == user_id)
        if questionnaire_key:
            query = query.filter(Response.questionnaire_key == questionnaire_key)
        if statuses:
            query = query.filter(Response.status.in_(list(statuses)))
        return query.order_by(Response.id.asc()).all()

    def find_one(self, project_id, user_id, questionnaire_key, status=None):
        query = (
            self.db.query(Response)
            .filter(Response.project_id == project_id)
            .filter(Response.user_id == user_id)
            .filter(Response.questionnaire_key == questionnaire_key)
        )
        if status:
            query = query.filter(Response.status == status)
        return query.order_by(Response.id.desc()).first()

    def save_draft(self, project_id, user_id, role, questionnaire_key, version, answers: List[Dict[str, Any]]):
        """
        Replaces the answers of the user's draft for this questionnaire,
        creating the draft if needed. Nothing is committed here.
        """
        response = self.find_one(project_id, user_id, questionnaire_key, status="draft")
        if response is None:
            response = Response(
                project_id=project_id,
                user_id=user_id,
                questionnaire_key=questionnaire_key,
                status="draft",
            )
            self.db.add(response)
        response.role = role
        response.questionnaire_version = version
        response.updated_at = datetime.utcnow()
        response.answers = [Answer(**fields) for fields in answers]
        return response

    def mark_submitted(self, response):
        response.status = "submitted"
        response.submitted_at = datetime.utcnow()
        self.db.add(response)
        return response


class SqlQuestionStore:
    def __init__(self, db: Session):
        self.db = db

    def find(self, questionnaire_key=None):
        query = self.db.query(Question)
        if questionnaire_key:
            query = query.filter(Question.questionnaire_key == questionnaire_key)
        return query.order_by(Question.order.asc(), Question.id.asc()).all()

    def get(self, question_id):
        return self.db.get(Question, question_id)


class SqlScoreStore:
    def __init__(self, db: Session):
        self.db = db

    def find(self, project_id, questionnaire_key=None, user_id=None):
        query = self.db.query(Score).filter(Score.project_id == project_id)
        if questionnaire_key:
            query = query.filter(Score.questionnaire_key == questionnaire_key)
        if user_id is not None:
            query = query.filter(Score.user_id == user_id)
        return query.order_by(Score.id.asc()).all()

    def _get(self, project_id, user_id, questionnaire_key):
        return (
            self.db.query(Score)
            .filter(Score.project_id == project_id)
            .filter(Score.user_id == user_id)
            .filter(Score.questionnaire_key == questionnaire_key)
            .first()
        )

    def _apply(self, score, values):
        for field, value in values.items():
            setattr(score, field, value)

    def upsert(self, project_id, user_id, questionnaire_key, values):
        """
        Writes the rollup for the triple in one commit. If a concurrent writer
        inserted the same triple first, the unique constraint fires and the
        write is retried once as an update, so the last upsert wins.
        """
        try:
            score = self._get(project_id, user_id, questionnaire_key)
            if score is None:
                score = Score(project_id=project_id, user_id=user_id, questionnaire_key=questionnaire_key)
                self.db.add(score)
            self._apply(score, values)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(
                "Concurrent score insert for project=%s user=%s questionnaire=%s, retrying as update",
                project_id, user_id, questionnaire_key,
            )
            score = self._get(project_id, user_id, questionnaire_key)
            if score is None:
                raise
            self._apply(score, values)
            self.db.commit()
        self.db.refresh(score)
        return score


class SqlTensionStore:
    def __init__(self, db: Session):
        self.db = db

    def find(self, project_id):
        return (
            self.db.query(Tension)
            .filter(Tension.project_id == project_id)
            .order_by(Tension.id.asc())
            .all()
        )


class SqlAssignmentStore:
    def __init__(self, db: Session):
        self.db = db

    def find(self, project_id):
        return (
            self.db.query(ProjectAssignment)
            .filter(ProjectAssignment.project_id == project_id)
            .order_by(ProjectAssignment.id.asc())
            .all()
        )

    def get(self, project_id, user_id):
        return (
            self.db.query(ProjectAssignment)
            .filter(ProjectAssignment.project_id == project_id)
            .filter(ProjectAssignment.user_id == user_id)
            .first()
        )

    def upsert(self, project_id, user_id, role, questionnaires):
        assignment = self.get(project_id, user_id)
        if assignment is None:
            assignment = ProjectAssignment(project_id=project_id, user_id=user_id)
            self.db.add(assignment)
        assignment.role = role
        assignment.questionnaires = list(questionnaires or [])
        assignment.status = "assigned"
        assignment.assigned_at = datetime.utcnow()
        assignment.completed_at = None
        return assignment


class SqlProjectStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, project_id):
        return self.db.get(Project, project_id)


class SqlUserStore:
    def __init__(self, db: Session):
        self.db = db

    def find_by_ids(self, user_ids):
        ids = list({uid for uid in user_ids if uid is not None})
        if not ids:
            return []
        return self.db.query(User).filter(User.id.in_(ids)).all()


class SqlQuestionnaireStore:
    def __init__(self, db: Session):
        self.db = db

    def get_active(self, key):
        return (
            self.db.query(Questionnaire)
            .filter(Questionnaire.key == key)
            .filter(Questionnaire.is_active.is_(True))
            .first()
        )


class SqlStores:
    """All repositories bound to one SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db
        self.responses = SqlResponseStore(db)
        self.questions = SqlQuestionStore(db)
        self.scores = SqlScoreStore(db)
        self.tensions = SqlTensionStore(db)
        self.assignments = SqlAssignmentStore(db)
        self.projects = SqlProjectStore(db)
        self.users = SqlUserStore(db)
        self.questionnaires = SqlQuestionnaireStore(db)

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
