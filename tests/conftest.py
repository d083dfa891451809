import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from skillbot.db import SqlStoreClient, init_db, make_engine, make_session_factory  # noqa: E402


@pytest.fixture
def session_factory():
    """Fresh in-memory database per test."""
    engine = make_engine("sqlite:///:memory:")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return SqlStoreClient(session_factory, device_key="1001")


def question_row(competency_id, level, correct_answer=0, points=10, **extra):
    row = {
        "competency_id": competency_id,
        "level": level,
        "type": "logic",
        "question_text": f"Question level {level}",
        "options": ["A", "B", "C", "D"],
        "correct_answer": correct_answer,
        "points": points,
    }
    row.update(extra)
    return row
