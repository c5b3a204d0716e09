"""
Response model: one evaluator's attempt at one questionnaire version
for one project. Links a User to a Project and owns the Answers.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from db.session import Base
from datetime import datetime

class Response(Base):
    __tablename__ = "responses"

    id = Column(Integer, primary_key=True, index=True)
    role = Column(String(50), nullable=False, index=True)
    questionnaire_key = Column(String(100), nullable=False, index=True)
    questionnaire_version = Column(Integer, nullable=False, default=1)
    status = Column(
        Enum("draft", "submitted", name="response_status_enum"),
        nullable=False,
        default="draft",
        server_default="draft",
        index=True,
    )
    submitted_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Database-level Links

    # Link to the Project. If the Project is deleted, this Response is deleted.
    project_id = Column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )

    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # ORM Relationships
    project = relationship("Project", back_populates="responses")
    user = relationship("User")

    # If this Response is deleted, all Answers associated with it are also deleted.
    answers = relationship(
        "Answer",
        back_populates="response",
        cascade="all, delete-orphan",
        order_by="Answer.id",
    )

    def __repr__(self) -> str:
        return (
            f"<Response {self.id} - Project {self.project_id} User {self.user_id} "
            f"{self.questionnaire_key} [{self.status}]>"
        )
