"""
ProjectAssignment model: which evaluator is expected to fill which
questionnaires for a project. Read only for participation coverage.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from db.session import Base
from datetime import datetime

class ProjectAssignment(Base):
    __tablename__ = "project_assignments"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_assignment_project_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    role = Column(String(50), nullable=False)
    questionnaires = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default="assigned")  # assigned | in_progress | submitted
    assigned_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    project_id = Column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    project = relationship("Project", back_populates="assignments")
    user = relationship("User")

    def __repr__(self) -> str:
        return f"<ProjectAssignment project={self.project_id} user={self.user_id} {self.status}>"
