from aiogram import Router

from skillbot.handlers.start import router as start_router
from skillbot.handlers.menu import router as menu_router
from skillbot.handlers.quiz import router as quiz_router


def setup_routers() -> Router:
    """Setup and return the main router with all sub-routers."""
    router = Router()
    router.include_router(start_router)
    router.include_router(menu_router)
    # quiz router last: it holds the catch-all callback handler
    router.include_router(quiz_router)
    return router


__all__ = ["setup_routers"]
