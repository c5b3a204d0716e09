"""
Project model: an AI system placed under ethical review.
This is a "parent" table to Responses, Scores, Tensions and Assignments.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from db.session import Base

class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    # ORM Relationships:
    # If a Project is deleted, all its Responses, Scores and Tensions are deleted.
    responses = relationship(
        "Response", back_populates="project", cascade="all, delete-orphan"
    )
    scores = relationship(
        "Score", back_populates="project", cascade="all, delete-orphan"
    )
    tensions = relationship(
        "Tension", back_populates="project", cascade="all, delete-orphan"
    )
    assignments = relationship(
        "ProjectAssignment", back_populates="project", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Project {self.id} - {self.title}>"
