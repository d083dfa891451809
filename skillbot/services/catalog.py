import logging
from dataclasses import dataclass
from typing import Optional

from skillbot.db.client import QUESTIONS, USER_PROGRESS, StoreClient
from skillbot.domain import Competency
from skillbot.errors import FetchError

# Icon identifier -> glyph. Unknown identifiers fall back to the brain.
ICON_GLYPHS = {
    "Brain": "🧠",
    "Users": "👥",
    "MessageCircle": "💬",
    "Target": "🎯",
    "Lightbulb": "💡",
    "TrendingUp": "📈",
    "Puzzle": "🧩",
    "BarChart": "📊",
    "Shield": "🛡",
    "Compass": "🧭",
}
FALLBACK_GLYPH = ICON_GLYPHS["Brain"]


def glyph_for(icon: Optional[str]) -> str:
    """Get the glyph for a competency icon identifier."""
    return ICON_GLYPHS.get(icon or "", FALLBACK_GLYPH)


@dataclass(frozen=True)
class CatalogItem:
    competency: Competency
    progress: int  # percent, 0..100

    @property
    def glyph(self) -> str:
        return glyph_for(self.competency.icon)


async def load_catalog(
    store: StoreClient, user_id: str, competencies: list[Competency]
) -> list[CatalogItem]:
    """
    Pair each competency with the share of its questions the user has
    answered correctly at least once.
    """
    try:
        questions = await store.fetch_many(QUESTIONS)
        progress = await store.fetch_many(
            USER_PROGRESS, {"user_id": user_id, "is_correct": True}
        )
    except FetchError as e:
        logging.warning(f"Can't compute catalog progress: {e}")
        return [CatalogItem(competency=c, progress=0) for c in competencies]

    solved = {row["question_id"] for row in progress}
    per_competency: dict[str, list[str]] = {}
    for row in questions:
        per_competency.setdefault(row["competency_id"], []).append(row["id"])

    items = []
    for competency in competencies:
        question_ids = per_competency.get(competency.id, [])
        if question_ids:
            done = sum(1 for qid in question_ids if qid in solved)
            percent = done * 100 // len(question_ids)
        else:
            percent = 0
        items.append(CatalogItem(competency=competency, progress=percent))
    return items
