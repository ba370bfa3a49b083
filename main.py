import asyncio
import logging
import os

from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.memory import MemoryStorage

from db import Database
from ratings.api import create_api
from ratings.bot import notify_admins, router
from ratings.config import Settings
from ratings.models import Review

logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING").upper())


async def main():
    settings = Settings.from_env()
    if not settings.bot_token:
        raise SystemExit("BOT_TOKEN is not set. Put it in .env or environment.")

    database = Database(settings.database_path, settings.database_url)
    if not database.init_db():
        logging.warning("Starting without a ready database")
    bot = Bot(settings.bot_token)
    loop = asyncio.get_running_loop()

    def queue_review_notification(review: Review) -> None:
        # Called from the Flask thread; the bot lives on this loop.
        asyncio.run_coroutine_threadsafe(notify_admins(bot, database, settings, review), loop)

    api = create_api(database, settings, on_review=queue_review_notification)
    loop.run_in_executor(
        None,
        lambda: api.run(host="0.0.0.0", port=settings.port, debug=False, use_reloader=False),
    )

    dp = Dispatcher(storage=MemoryStorage(), database=database, settings=settings)
    dp.include_router(router)
    await dp.start_polling(bot)


if __name__ == "__main__":
    asyncio.run(main())
