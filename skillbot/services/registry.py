from collections import OrderedDict
from typing import Optional

from sqlalchemy.orm import sessionmaker

from skillbot.db.repository import SqlStoreClient
from skillbot.services.question_presenter import DEFAULT_FEEDBACK_DELAY, QuestionPresenter
from skillbot.services.session_controller import Screen, SessionController

DEFAULT_MAX_CONTROLLERS = 1000


class SessionRegistry:
    """
    One session controller (and at most one open question) per Telegram user.

    Controllers are kept in least-recently-used order. Past max_controllers
    the oldest idle ones are dropped; their sign-in lives in the store, so
    the next /start resumes it.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        feedback_delay: float = DEFAULT_FEEDBACK_DELAY,
        max_controllers: int = DEFAULT_MAX_CONTROLLERS,
    ):
        self.session_factory = session_factory
        self.feedback_delay = feedback_delay
        self.max_controllers = max_controllers
        self._controllers: "OrderedDict[int, SessionController]" = OrderedDict()
        self._presenters: dict[int, QuestionPresenter] = {}

    def __len__(self) -> int:
        return len(self._controllers)

    def controller(self, telegram_id: int) -> SessionController:
        controller = self._controllers.get(telegram_id)
        if controller is None:
            store = SqlStoreClient(self.session_factory, device_key=str(telegram_id))
            controller = SessionController(store)
            self._controllers[telegram_id] = controller
            self._evict_idle(keep=telegram_id)
        else:
            self._controllers.move_to_end(telegram_id)
        return controller

    def _evict_idle(self, keep: int) -> None:
        overflow = len(self._controllers) - self.max_controllers
        if overflow <= 0:
            return
        for telegram_id in list(self._controllers):
            if overflow <= 0:
                break
            controller = self._controllers[telegram_id]
            if (
                telegram_id == keep
                or telegram_id in self._presenters
                or controller.screen is Screen.IN_COMPETENCY
            ):
                continue
            del self._controllers[telegram_id]
            overflow -= 1

    def forget(self, telegram_id: int) -> None:
        """Drop everything held for a user, e.g. after sign out."""
        self.drop_presenter(telegram_id)
        self._controllers.pop(telegram_id, None)

    def presenter(self, telegram_id: int) -> Optional[QuestionPresenter]:
        return self._presenters.get(telegram_id)

    def bind_presenter(self, telegram_id: int, presenter: QuestionPresenter) -> None:
        self.drop_presenter(telegram_id)
        self._presenters[telegram_id] = presenter

    def drop_presenter(self, telegram_id: int) -> None:
        presenter = self._presenters.pop(telegram_id, None)
        if presenter:
            presenter.close()

    def close(self) -> None:
        for telegram_id in list(self._presenters):
            self.drop_presenter(telegram_id)
