import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.types import BotCommand, BotCommandScopeDefault

from skillbot import config
from skillbot.db import SqlStoreClient, init_db, make_engine, make_session_factory
from skillbot.handlers import setup_routers
from skillbot.services.registry import SessionRegistry
from skillbot.services.seed import load_seed, seed_store


async def on_startup(bot: Bot) -> None:
    await bot.set_my_commands(
        [BotCommand(command="start", description="🎯 Menú de competencias")],
        scope=BotCommandScopeDefault(),
    )
    logging.info("Bot commands updated")


async def main() -> None:
    if not config.bot_token:
        raise RuntimeError(f"❌ No bot token set for ENV={config.ENV}")

    logging.basicConfig(level=config.LOG_LEVEL)

    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    engine = make_engine(config.DATABASE_URL)
    init_db(engine)
    session_factory = make_session_factory(engine)

    if config.SEED_PATH.exists():
        await seed_store(
            SqlStoreClient(session_factory, device_key="seed"),
            load_seed(config.SEED_PATH),
        )

    registry = SessionRegistry(session_factory, feedback_delay=config.FEEDBACK_DELAY)
    bot = Bot(token=config.bot_token)
    dp = Dispatcher(registry=registry)
    dp.startup.register(on_startup)
    dp.include_router(setup_routers())

    try:
        await dp.start_polling(bot)
    finally:
        registry.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
