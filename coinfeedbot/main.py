"""Main entry point for starting the Telegram bot."""

import asyncio
import signal
from functools import partial

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from telegram import BotCommand
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    MessageHandler,
    filters,
)

from . import api, config, handlers
from .scheduler import DeliveryScheduler
from .state import StateStore


def build_app(token: str, scheduler: AsyncIOScheduler) -> Application:
    """Return an application with handlers and per-chat state attached."""
    app = ApplicationBuilder().token(token).build()
    store = StateStore()
    app.bot_data["store"] = store
    app.bot_data["timers"] = DeliveryScheduler(
        scheduler, partial(handlers.deliver_now, app.bot, store)
    )

    app.add_handler(CommandHandler("start", handlers.start))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handlers.menu))
    app.add_handler(CallbackQueryHandler(handlers.button))
    return app


async def main() -> None:
    """Run the Telegram bot until the process receives a stop signal."""
    token = config.TELEGRAM_TOKEN
    if not token:
        raise RuntimeError("TELEGRAM_TOKEN not set")

    await api.get_top_coins()

    scheduler = AsyncIOScheduler(timezone=config.TIMEZONE)
    app = build_app(token, scheduler)
    scheduler.start()

    await app.initialize()
    await app.bot.set_my_commands(
        [BotCommand(name, desc) for name, desc in handlers.COMMANDS]
    )
    await app.start()
    if config.WEBHOOK_URL:
        url_path = f"bot{token}"
        await app.updater.start_webhook(
            listen="0.0.0.0",
            port=config.PORT,
            url_path=url_path,
            webhook_url=f"{config.WEBHOOK_URL.rstrip('/')}/{url_path}",
        )
        config.logger.info(f"{config.BOT_NAME} started in webhook mode")
    else:
        await app.updater.start_polling()
        config.logger.info(f"{config.BOT_NAME} started in polling mode")

    stop_event = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        asyncio.get_running_loop().add_signal_handler(sig, stop_event.set)

    await stop_event.wait()
    await app.updater.stop()
    await app.stop()
    await app.shutdown()
    scheduler.shutdown()
    config.logger.info(f"{config.BOT_NAME} stopped")
