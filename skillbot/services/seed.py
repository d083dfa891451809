import json
import logging
from pathlib import Path
from typing import Union

from skillbot.db.client import COMPETENCIES, QUESTIONS, StoreClient


def load_seed(path: Union[str, Path]) -> list[dict]:
    """Load competencies (with nested questions) from a JSON file."""
    with Path(path).open(encoding="utf-8") as f:
        return json.load(f)["competencies"]


async def seed_store(store: StoreClient, competencies: list[dict]) -> tuple[int, int]:
    """
    Insert the catalog into an empty store.

    Returns (competencies, questions) inserted; nothing is inserted when
    the store already has competencies.
    """
    if await store.fetch_one(COMPETENCIES, {}):
        logging.info("Catalog already present, skipping seed")
        return 0, 0

    question_count = 0
    for item in competencies:
        row = await store.insert(
            COMPETENCIES,
            {
                "name": item["name"],
                "description": item.get("description", ""),
                "icon": item.get("icon", ""),
                "color": item.get("color", ""),
            },
        )
        for question in item.get("questions", []):
            await store.insert(
                QUESTIONS,
                {
                    "competency_id": row["id"],
                    "level": question.get("level", 1),
                    "type": question["type"],
                    "question_text": question["question_text"],
                    "visual_data": question.get("visual_data"),
                    "options": question["options"],
                    "correct_answer": question["correct_answer"],
                    "explanation": question.get("explanation", ""),
                    "points": question.get("points", 10),
                },
            )
            question_count += 1

    logging.info(f"Seeded {len(competencies)} competencies, {question_count} questions")
    return len(competencies), question_count
