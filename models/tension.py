"""
Tension model: a claimed conflict between two ethical principles raised
by one evaluator. Votes, evidence and comments are embedded JSON lists.
The review state is never stored; it is recomputed from the votes.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from db.session import Base
from datetime import datetime

class Tension(Base):
    __tablename__ = "tensions"

    id = Column(Integer, primary_key=True, index=True)
    principle1 = Column(String(100), nullable=False)
    principle2 = Column(String(100), nullable=False)
    claim_statement = Column(Text, nullable=False)
    argument = Column(Text, nullable=True)
    severity = Column(String(20), nullable=True, default="medium")
    votes = Column(JSON, nullable=False, default=list)  # [{"userId": 3, "voteType": "agree"}]
    evidence = Column(JSON, nullable=False, default=list)  # [{"type": "Policy", "description": ...}]
    attachments = Column(JSON, nullable=False, default=list)
    comments = Column(JSON, nullable=False, default=list)
    impact = Column(JSON, nullable=True)  # {"areas": [...], "affectedGroups": [...], "description": ...}
    mitigation = Column(JSON, nullable=True)  # {"proposed": ..., "tradeoff": {"decision": ..., "rationale": ...}}
    # Manually set only, e.g. "resolved"
    status = Column(String(20), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by_role = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    project_id = Column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )

    project = relationship("Project", back_populates="tensions")

    def __repr__(self) -> str:
        return f"<Tension {self.id} {self.principle1} vs {self.principle2}>"
