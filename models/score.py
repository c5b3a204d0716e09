"""
Score model: the canonical rollup for one (project, user, questionnaire)
triple. A materialized view owned by the score aggregator; never hand-edited.

totals       -> {"avg": float, "min": float, "max": float, "n": int}
by_principle -> {principle: {"avg": float, "n": int, "min": float, "max": float}}
by_question  -> [{"question_id", "question_code", "principle_key", "score", "weight", "is_na"}]
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from db.session import Base
from datetime import datetime

class Score(Base):
    __tablename__ = "scores"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", "questionnaire_key", name="uq_score_triple"),
        Index("ix_scores_project_questionnaire", "project_id", "questionnaire_key"),
        Index("ix_scores_project_role", "project_id", "role"),
    )

    id = Column(Integer, primary_key=True, index=True)
    role = Column(String(50), nullable=False, index=True)
    questionnaire_key = Column(String(100), nullable=False, index=True)
    computed_at = Column(DateTime, default=datetime.utcnow, index=True)
    totals = Column(JSON, nullable=False)
    by_principle = Column(JSON, nullable=False, default=dict)
    by_question = Column(JSON, nullable=False, default=list)

    project_id = Column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    project = relationship("Project", back_populates="scores")

    def __repr__(self) -> str:
        return (
            f"<Score project={self.project_id} user={self.user_id} "
            f"{self.questionnaire_key} avg={(self.totals or {}).get('avg')}>"
        )
