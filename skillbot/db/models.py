import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Account(Base):
    """Login credentials. Not exposed as a collection."""

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    pw_hash = Column(String(128), nullable=False)
    pw_salt = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now)


class AuthSession(Base):
    """Which account is signed in on which device (Telegram user)."""

    __tablename__ = "auth_sessions"

    device_key = Column(String(64), primary_key=True)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now)


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)
    username = Column(String(100), nullable=True)
    total_score = Column(Integer, nullable=False, default=0)
    current_level = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)


class Competency(Base):
    __tablename__ = "competencies"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False)
    description = Column(Text, default="")
    icon = Column(String(50), default="")
    color = Column(String(20), default="")


class Question(Base):
    __tablename__ = "questions"

    id = Column(String(36), primary_key=True, default=_new_id)
    competency_id = Column(
        String(36), ForeignKey("competencies.id"), nullable=False, index=True
    )
    level = Column(Integer, nullable=False, default=1)
    type = Column(String(20), nullable=False)  # pattern, sequence, analogy, logic
    question_text = Column(Text, nullable=False)
    visual_data = Column(JSON, nullable=True)
    options = Column(JSON, nullable=False)
    correct_answer = Column(Integer, nullable=False)
    explanation = Column(Text, default="")
    points = Column(Integer, nullable=False, default=10)


class UserProgress(Base):
    __tablename__ = "user_progress"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), nullable=False, index=True)
    question_id = Column(String(36), ForeignKey("questions.id"), nullable=False)
    is_correct = Column(Boolean, nullable=False)
    attempts = Column(Integer, nullable=False, default=1)
    completed_at = Column(DateTime(timezone=True), default=_now)


# Collection name -> model, for the generic CRUD in the store client
COLLECTIONS = {
    "profiles": Profile,
    "competencies": Competency,
    "questions": Question,
    "user_progress": UserProgress,
}


def make_engine(url: str) -> Engine:
    """Create an engine. In-memory SQLite shares one connection."""
    if url.startswith("sqlite") and ":memory:" in url:
        return create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=False)


def init_db(engine: Engine) -> None:
    """Initialize the database and create tables."""
    Base.metadata.create_all(engine)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)
