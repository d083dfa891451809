from skillbot.db.client import (
    COMPETENCIES,
    PROFILES,
    QUESTIONS,
    USER_PROGRESS,
    StoreClient,
)
from skillbot.db.models import init_db, make_engine, make_session_factory
from skillbot.db.repository import SqlStoreClient

__all__ = [
    "COMPETENCIES",
    "PROFILES",
    "QUESTIONS",
    "USER_PROGRESS",
    "StoreClient",
    "SqlStoreClient",
    "init_db",
    "make_engine",
    "make_session_factory",
]
