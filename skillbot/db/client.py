from abc import ABC, abstractmethod
from typing import Any, Optional

from skillbot.domain import Identity

PROFILES = "profiles"
COMPETENCIES = "competencies"
QUESTIONS = "questions"
USER_PROGRESS = "user_progress"


class StoreClient(ABC):
    """
    Async client for the remote store: account auth plus row CRUD.

    Every call completes or fails on its own. Reads raise FetchError,
    writes raise WriteError and auth calls raise AuthError.
    """

    @abstractmethod
    async def get_session(self) -> Optional[Identity]:
        """Return the signed-in identity for this client, if any."""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Identity:
        ...

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> Identity:
        ...

    @abstractmethod
    async def sign_out(self) -> None:
        ...

    @abstractmethod
    async def fetch_one(
        self, collection: str, filters: dict[str, Any]
    ) -> Optional[dict]:
        ...

    @abstractmethod
    async def fetch_many(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        ascending: bool = True,
    ) -> list[dict]:
        ...

    @abstractmethod
    async def insert(self, collection: str, record: dict[str, Any]) -> dict:
        ...

    @abstractmethod
    async def update(
        self, collection: str, record_id: str, values: dict[str, Any]
    ) -> dict:
        ...
