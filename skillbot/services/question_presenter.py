import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from skillbot.domain import AnswerOutcome, Question
from skillbot.errors import PresenterStateError
from skillbot.services.quiz_runner import QuizRunner

DEFAULT_FEEDBACK_DELAY = 3.0

AdvanceCallback = Callable[[], Awaitable[None]]


class PresenterState(Enum):
    UNANSWERED = "unanswered"
    SUBMITTED = "submitted"
    FEEDBACK_SHOWN = "feedback_shown"
    CLOSED = "closed"


class QuestionPresenter:
    """
    Selection and feedback state for the question on screen.

    After confirm() the feedback stays up for feedback_delay seconds, then
    the presenter resets onto the runner's next question and calls
    on_advance. close() cancels a pending advance.
    """

    def __init__(
        self,
        runner: QuizRunner,
        on_advance: AdvanceCallback,
        feedback_delay: float = DEFAULT_FEEDBACK_DELAY,
    ):
        self.runner = runner
        self.on_advance = on_advance
        self.feedback_delay = feedback_delay
        self.state = PresenterState.UNANSWERED
        self.question: Optional[Question] = runner.current_question
        self.number = runner.index + 1
        self.selected: Optional[int] = None
        self.outcome: Optional[AnswerOutcome] = None
        self._timer: Optional[asyncio.Task] = None

    def select_choice(self, index: int) -> None:
        if self.state is not PresenterState.UNANSWERED or self.question is None:
            raise PresenterStateError(f"Can't change the answer while {self.state.value}")
        if not 0 <= index < len(self.question.options):
            raise PresenterStateError(f"No option {index} for this question")
        self.selected = index

    async def confirm(self) -> AnswerOutcome:
        if self.state is not PresenterState.UNANSWERED:
            raise PresenterStateError(f"Can't confirm while {self.state.value}")
        if self.selected is None:
            raise PresenterStateError("Pick an answer first")

        self.state = PresenterState.SUBMITTED
        try:
            self.outcome = await self.runner.submit_answer(self.selected)
        except Exception:
            if self.state is PresenterState.SUBMITTED:
                self.state = PresenterState.UNANSWERED
            raise
        if self.state is PresenterState.CLOSED:
            return self.outcome
        self.state = PresenterState.FEEDBACK_SHOWN
        self._timer = asyncio.create_task(self._advance_later())
        return self.outcome

    async def _advance_later(self) -> None:
        await asyncio.sleep(self.feedback_delay)
        if self.state is not PresenterState.FEEDBACK_SHOWN:
            return
        # The timer has fired; close() from inside on_advance must not cancel it
        self._timer = None
        self._reset()
        try:
            await self.on_advance()
        except Exception:
            logging.exception("Advance to the next question failed")

    def _reset(self) -> None:
        self.state = PresenterState.UNANSWERED
        self.question = self.runner.current_question
        self.number = self.runner.index + 1
        self.selected = None
        self.outcome = None

    def close(self) -> None:
        """Tear down: a pending advance is discarded."""
        self.state = PresenterState.CLOSED
        if self._timer and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    @property
    def closed(self) -> bool:
        return self.state is PresenterState.CLOSED

    async def wait_feedback(self) -> None:
        """Wait until the pending advance (if any) has run."""
        timer = self._timer
        if timer is None:
            return
        try:
            await timer
        except asyncio.CancelledError:
            pass
