"""
Question model: defines the scoring semantics of one questionnaire item.
Immutable once referenced by submitted answers.
"""
from sqlalchemy import Column, Integer, String, Text, Float, Boolean, DateTime, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from db.session import Base
from datetime import datetime

ANSWER_TYPES = ("single_choice", "multi_choice", "open_text", "numeric")


class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (
        UniqueConstraint("questionnaire_key", "code", name="uq_question_code"),
    )

    id = Column(Integer, primary_key=True, index=True)
    questionnaire_key = Column(String(100), nullable=False, index=True)
    code = Column(String(50), nullable=False, index=True)
    principle = Column(String(100), nullable=False, index=True)
    answer_type = Column(String(20), nullable=False)
    # [{"key": "yes", "label": "Yes", "score": 4}, {"key": "na", "score": 0, "na": true}]
    options = Column(JSON, nullable=True)
    required = Column(Boolean, nullable=False, default=False)
    order = Column(Integer, nullable=False, default=0)
    weight = Column(Float, nullable=False, default=1.0)
    text = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # If this Question is deleted, all Answers for it are deleted.
    answers = relationship(
        "Answer", back_populates="question", cascade="all, delete-orphan"
    )

    def option(self, key):
        """Returns the option dict whose key matches, or None."""
        for opt in self.options or []:
            if opt.get("key") == key:
                return opt
        return None

    def __repr__(self) -> str:
        return f"<Question {self.code} ({self.principle}) in {self.questionnaire_key}>"
