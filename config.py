"""
Environment-driven settings for the scoring & analytics engine.
Values are read once at import time; a .env file is honoured if present.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Default to SQLite if DATABASE_URL is not set
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///db/ethics_eval.db")

DEFAULT_QUESTIONNAIRE_KEY = os.getenv("DEFAULT_QUESTIONNAIRE_KEY", "general-v1")

# Pool every submitted Response of a (user, questionnaire) pair unless this is set,
# in which case only the latest submission feeds the Score.
DEDUPE_RESUBMISSIONS = _env_flag("DEDUPE_RESUBMISSIONS")

TOP_RISK_LIMIT = int(os.getenv("TOP_RISK_LIMIT", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
