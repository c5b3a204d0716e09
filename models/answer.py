"""
Answer model: one evaluator's reply to one Question inside a Response.
The raw payload shape depends on the Question's answer_type.
"""
from sqlalchemy import Column, Integer, String, Text, Float, Boolean, ForeignKey, JSON
from sqlalchemy.orm import relationship
from db.session import Base


class Answer(Base):
    __tablename__ = "answers"

    id = Column(Integer, primary_key=True, index=True)
    question_code = Column(String(50), nullable=False)
    answer = Column(JSON, nullable=True)  # raw payload, e.g. {"choiceKey": "yes"}
    answer_text = Column(Text, nullable=True)
    score = Column(Float, nullable=False, default=0.0)  # 0-4
    score_suggested = Column(Float, nullable=True)
    score_final = Column(Float, nullable=True)
    is_na = Column(Boolean, nullable=False, default=False)
    reviewer_id = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    evidence = Column(JSON, nullable=True)

    response_id = Column(
        Integer, ForeignKey("responses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id = Column(
        Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True
    )

    response = relationship("Response", back_populates="answers")
    question = relationship("Question", back_populates="answers")

    def __repr__(self) -> str:
        return f"<Answer {self.id} {self.question_code} score={self.score}>"
