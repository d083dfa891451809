import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from skillbot.db.client import COMPETENCIES, PROFILES, StoreClient
from skillbot.domain import Competency, Identity, Profile, QuizResults, level_for_score
from skillbot.errors import AuthError, FetchError, SessionStateError, WriteError
from skillbot.services.catalog import CatalogItem, load_catalog
from skillbot.services.quiz_runner import QuizRunner


class Screen(Enum):
    UNAUTHENTICATED = "unauthenticated"
    MENU_LOADING = "menu_loading"
    MENU = "menu"
    IN_COMPETENCY = "in_competency"


class SessionController:
    """
    Owns the signed-in identity, the profile snapshot and the top-level
    screen: auth -> menu -> competency -> menu.
    """

    def __init__(self, store: StoreClient):
        self.store = store
        self.screen = Screen.UNAUTHENTICATED
        self.identity: Optional[Identity] = None
        self.profile: Optional[Profile] = None
        self.competencies: list[Competency] = []
        self.catalog: list[CatalogItem] = []
        self.quiz: Optional[QuizRunner] = None
        self.last_results: Optional[QuizResults] = None
        self._score_lock = asyncio.Lock()

    async def start(self) -> Screen:
        """Resume an existing session or fall back to the auth screen."""
        identity = await self.store.get_session()
        if identity:
            self.identity = identity
            await self.enter_menu()
        else:
            self.screen = Screen.UNAUTHENTICATED
        return self.screen

    async def sign_in(self, email: str, password: str) -> Identity:
        try:
            identity = await self.store.sign_in(email, password)
        except AuthError:
            self.screen = Screen.UNAUTHENTICATED
            raise
        logging.info(f"User {identity.id} signed in")
        self.identity = identity
        await self.enter_menu()
        return identity

    async def sign_up(
        self, email: str, password: str, display_name: Optional[str] = None
    ) -> Identity:
        """Create the account and its profile (score 0, level 1)."""
        try:
            identity = await self.store.sign_up(email, password)
        except AuthError:
            self.screen = Screen.UNAUTHENTICATED
            raise

        username = (display_name or "").strip() or email.split("@")[0]
        try:
            await self._create_profile(identity.id, username)
        except WriteError as e:
            # Don't leave this device signed in to an account without a profile
            try:
                await self.store.sign_out()
            except AuthError as sign_out_error:
                logging.warning(f"Sign out after failed sign up failed: {sign_out_error}")
            self.screen = Screen.UNAUTHENTICATED
            raise AuthError(str(e)) from e

        logging.info(f"User {identity.id} signed up as {username}")
        self.identity = identity
        await self.enter_menu()
        return identity

    async def enter_menu(self) -> None:
        """Reload profile and competencies, keeping stale data on failure."""
        if not self.identity:
            raise SessionStateError("Not signed in")
        self.quiz = None
        self.screen = Screen.MENU_LOADING
        await asyncio.gather(self._load_profile(), self._load_competencies())
        self.catalog = await load_catalog(
            self.store, self.identity.id, self.competencies
        )
        self.screen = Screen.MENU

    async def _load_profile(self) -> None:
        try:
            row = await self.store.fetch_one(PROFILES, {"id": self.identity.id})
        except FetchError as e:
            logging.warning(f"Profile load failed, keeping old data: {e}")
            return
        if row:
            self.profile = Profile.from_row(row)
            return

        # Signed in without a profile row: start one at score 0
        logging.warning(f"No profile for {self.identity.id}, creating it")
        try:
            row = await self._create_profile(
                self.identity.id, self.identity.email.split("@")[0]
            )
        except WriteError as e:
            logging.error(f"Can't create missing profile for {self.identity.id}: {e}")
            return
        self.profile = Profile.from_row(row)

    async def _create_profile(self, user_id: str, username: str) -> dict:
        return await self.store.insert(
            PROFILES,
            {
                "id": user_id,
                "username": username,
                "total_score": 0,
                "current_level": level_for_score(0),
            },
        )

    async def _load_competencies(self) -> None:
        try:
            rows = await self.store.fetch_many(COMPETENCIES, order_by="name")
        except FetchError as e:
            logging.warning(f"Competency load failed, keeping old data: {e}")
            return
        self.competencies = [Competency.from_row(row) for row in rows]

    def find_competency(self, competency_id: str) -> Optional[Competency]:
        for competency in self.competencies:
            if competency.id == competency_id:
                return competency
        return None

    async def select_competency(self, competency: Competency) -> QuizRunner:
        if self.screen is not Screen.MENU:
            raise SessionStateError(f"Can't start a quiz from {self.screen.value}")
        self.screen = Screen.IN_COMPETENCY
        self.last_results = None
        runner = QuizRunner(
            self.store, competency, self.identity.id, on_finish=self.finish_competency
        )
        self.quiz = runner
        await runner.load()
        return runner

    async def finish_competency(self, points_earned: int) -> None:
        """
        Add the attempt's points to the profile and go back to the menu.

        Completions are serialized and each one re-reads the stored score,
        so a second completion builds on the first one.
        """
        if points_earned < 0:
            raise ValueError(f"Points can't be negative: {points_earned}")

        if self.quiz is not None:
            self.last_results = self.quiz.results()

        async with self._score_lock:
            await self._apply_points(points_earned)

        await self.enter_menu()

    async def _apply_points(self, points_earned: int) -> None:
        base = self.profile
        try:
            row = await self.store.fetch_one(PROFILES, {"id": self.identity.id})
            if row:
                base = Profile.from_row(row)
        except FetchError as e:
            logging.warning(f"Using cached profile for score update: {e}")

        if base is None:
            logging.error(f"No profile for {self.identity.id}, {points_earned} points lost")
            return

        new_score = base.total_score + points_earned
        try:
            row = await self.store.update(
                PROFILES,
                base.id,
                {
                    "total_score": new_score,
                    "current_level": level_for_score(new_score),
                    "updated_at": datetime.now(timezone.utc),
                },
            )
        except WriteError as e:
            logging.error(f"Score update failed, {points_earned} points lost: {e}")
            return
        self.profile = Profile.from_row(row)
        logging.info(
            f"User {base.id} score {base.total_score} -> {new_score} "
            f"(level {self.profile.current_level})"
        )

    async def leave_competency(self) -> None:
        """Back out of a quiz without scoring it."""
        self.quiz = None
        await self.enter_menu()

    async def sign_out(self) -> None:
        try:
            await self.store.sign_out()
        except AuthError as e:
            logging.warning(f"Remote sign out failed: {e}")
        logging.info(f"User {self.identity.id if self.identity else '?'} signed out")
        self.identity = None
        self.profile = None
        self.competencies = []
        self.catalog = []
        self.quiz = None
        self.last_results = None
        self.screen = Screen.UNAUTHENTICATED
