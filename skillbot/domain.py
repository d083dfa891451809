from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional

POINTS_PER_LEVEL = 100


def level_for_score(score: int) -> int:
    """Level is derived from the total score, never stored on its own."""
    if score < 0:
        raise ValueError(f"Score can't be negative: {score}")
    return score // POINTS_PER_LEVEL + 1


class QuestionKind(str, Enum):
    PATTERN = "pattern"
    SEQUENCE = "sequence"
    ANALOGY = "analogy"
    LOGIC = "logic"


@dataclass(frozen=True)
class Identity:
    """Authenticated account as returned by the store."""

    id: str
    email: str


@dataclass(frozen=True)
class Profile:
    id: str
    username: Optional[str]
    total_score: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def current_level(self) -> int:
        return level_for_score(self.total_score)

    @property
    def points_to_next_level(self) -> int:
        return POINTS_PER_LEVEL - self.total_score % POINTS_PER_LEVEL

    @property
    def level_progress(self) -> int:
        """Points earned inside the current level (0..99)."""
        return self.total_score % POINTS_PER_LEVEL

    def with_score(self, total_score: int) -> "Profile":
        return replace(self, total_score=total_score)

    @classmethod
    def from_row(cls, row: dict) -> "Profile":
        # current_level in the row is ignored, it is recomputed from the score
        return cls(
            id=row["id"],
            username=row.get("username"),
            total_score=int(row.get("total_score") or 0),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


@dataclass(frozen=True)
class Competency:
    id: str
    name: str
    description: str = ""
    icon: str = ""
    color: str = ""

    @classmethod
    def from_row(cls, row: dict) -> "Competency":
        return cls(
            id=row["id"],
            name=row["name"],
            description=row.get("description") or "",
            icon=row.get("icon") or "",
            color=row.get("color") or "",
        )


@dataclass(frozen=True)
class Question:
    id: str
    competency_id: str
    level: int
    kind: QuestionKind
    text: str
    options: tuple[str, ...]
    correct_answer: int
    points: int
    visual_data: dict[str, Any] = field(default_factory=dict)
    explanation: str = ""

    def is_correct(self, choice_index: int) -> bool:
        return choice_index == self.correct_answer

    @property
    def correct_option(self) -> Optional[str]:
        if 0 <= self.correct_answer < len(self.options):
            return self.options[self.correct_answer]
        return None

    @classmethod
    def from_row(cls, row: dict) -> "Question":
        return cls(
            id=row["id"],
            competency_id=row["competency_id"],
            level=int(row.get("level") or 1),
            kind=QuestionKind(row["type"]),
            text=row["question_text"],
            options=tuple(row.get("options") or ()),
            correct_answer=int(row["correct_answer"]),
            points=int(row.get("points") or 0),
            visual_data=dict(row.get("visual_data") or {}),
            explanation=row.get("explanation") or "",
        )


@dataclass
class Tally:
    """Running totals for one quiz attempt."""

    correct_count: int = 0
    total_answered: int = 0
    points_earned: int = 0

    def accuracy(self) -> float:
        if self.total_answered == 0:
            return 0.0
        return self.correct_count / self.total_answered


@dataclass(frozen=True)
class AnswerOutcome:
    is_correct: bool
    points_delta: int
    finished: bool


@dataclass(frozen=True)
class QuizResults:
    competency: Competency
    correct_count: int
    total_answered: int
    points_earned: int

    @property
    def accuracy(self) -> float:
        if self.total_answered == 0:
            return 0.0
        return self.correct_count / self.total_answered
