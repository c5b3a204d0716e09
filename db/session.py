from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from typing import Generator

from config import DATABASE_URL

# SQLite-specific connection arguments
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

# Create engine
engine = create_engine(DATABASE_URL, connect_args=connect_args, future=True)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)

# Base class for models
Base = declarative_base()


def init_db(bind=None) -> None:
    """
    Ensure DB tables exist. Model modules are imported here so that every
    table is registered on Base.metadata before create_all runs.
    """
    import models.project  # noqa: F401
    import models.user  # noqa: F401
    import models.questionnaire  # noqa: F401
    import models.question  # noqa: F401
    import models.assignment  # noqa: F401
    import models.response  # noqa: F401
    import models.answer  # noqa: F401
    import models.score  # noqa: F401
    import models.tension  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


# Dependency for getting DB session
def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
