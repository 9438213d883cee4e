"""Create all tables. Run on app startup."""
import logging

from sqlalchemy import text

from strukbot.db.base import Base
from strukbot.db.session import engine
from strukbot import models  # noqa: F401 - register models

logger = logging.getLogger(__name__)


def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables ensured")


def check_connection(bind=None) -> bool:
    """Run `SELECT 1` against the store. Used by startup and /health."""
    with (bind or engine).connect() as conn:
        conn.execute(text("SELECT 1"))
    return True
