from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from db.session import Base


class User(Base):
    """ORM model for evaluators and project owners."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    # e.g. 'ethical-expert', 'medical-expert', 'use-case-owner', 'viewer'
    role = Column(String(50), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email} ({self.role})>"
