import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from skillbot.db.client import QUESTIONS, USER_PROGRESS, StoreClient
from skillbot.domain import AnswerOutcome, Competency, Question, QuizResults, Tally
from skillbot.errors import FetchError, QuizStateError, WriteError

FinishCallback = Callable[[int], Awaitable[None]]


class QuizStatus(Enum):
    LOADING = "loading"
    ACTIVE = "active"
    FINISHED = "finished"
    EMPTY = "empty"  # competency has no questions, only "back" is possible


class QuizRunner:
    """
    One attempt at one competency.

    Questions are snapshotted at load time, ordered by difficulty. Each
    answer appends a progress record in the background; when the last
    question is answered the earned points are reported through on_finish.
    """

    def __init__(
        self,
        store: StoreClient,
        competency: Competency,
        user_id: str,
        on_finish: Optional[FinishCallback] = None,
    ):
        self.store = store
        self.competency = competency
        self.user_id = user_id
        self.on_finish = on_finish
        self.questions: list[Question] = []
        self.index = 0
        self.tally = Tally()
        self.status = QuizStatus.LOADING
        self._pending_writes: set[asyncio.Task] = set()

    async def load(self) -> None:
        try:
            rows = await self.store.fetch_many(
                QUESTIONS,
                {"competency_id": self.competency.id},
                order_by="level",
            )
        except FetchError as e:
            logging.error(f"Error loading questions for {self.competency.name}: {e}")
            rows = []
        self.questions = [Question.from_row(row) for row in rows]
        self.index = 0
        self.status = QuizStatus.ACTIVE if self.questions else QuizStatus.EMPTY

    @property
    def is_empty(self) -> bool:
        return self.status is QuizStatus.EMPTY

    @property
    def finished(self) -> bool:
        return self.status is QuizStatus.FINISHED

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Optional[Question]:
        if self.status is not QuizStatus.ACTIVE:
            return None
        return self.questions[self.index]

    async def submit_answer(self, choice_index: int) -> AnswerOutcome:
        """Grade the current question and advance (or finish) the quiz."""
        if self.status is not QuizStatus.ACTIVE:
            raise QuizStateError(f"Quiz is {self.status.value}, no answer expected")

        question = self.questions[self.index]
        if not 0 <= choice_index < len(question.options):
            raise ValueError(f"Choice {choice_index} out of range for {question.id}")

        is_correct = question.is_correct(choice_index)
        self._record_progress(question, is_correct)

        delta = question.points if is_correct else 0
        self.tally.total_answered += 1
        self.tally.correct_count += int(is_correct)
        self.tally.points_earned += delta

        if self.index == len(self.questions) - 1:
            self.status = QuizStatus.FINISHED
            if self.on_finish:
                await self.on_finish(self.tally.points_earned)
        else:
            self.index += 1

        return AnswerOutcome(
            is_correct=is_correct, points_delta=delta, finished=self.finished
        )

    def accuracy(self) -> float:
        return self.tally.accuracy()

    def results(self) -> QuizResults:
        return QuizResults(
            competency=self.competency,
            correct_count=self.tally.correct_count,
            total_answered=self.tally.total_answered,
            points_earned=self.tally.points_earned,
        )

    def _record_progress(self, question: Question, is_correct: bool) -> None:
        # Best effort: not awaited, a failed write doesn't block the quiz
        task = asyncio.create_task(self._write_progress(question, is_correct))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _write_progress(self, question: Question, is_correct: bool) -> None:
        try:
            await self.store.insert(
                USER_PROGRESS,
                {
                    "user_id": self.user_id,
                    "question_id": question.id,
                    "is_correct": is_correct,
                    "attempts": 1,
                },
            )
        except WriteError as e:
            logging.warning(f"Progress write failed for question {question.id}: {e}")

    async def drain(self) -> None:
        """Wait for progress writes that are still in flight."""
        if self._pending_writes:
            await asyncio.gather(*self._pending_writes, return_exceptions=True)
