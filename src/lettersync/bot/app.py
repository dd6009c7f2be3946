"""
Telegram bot application factory.

Builds and configures the python-telegram-bot Application with the
sync operator commands registered.
"""
from telegram.ext import Application, CommandHandler

from lettersync.bot.handlers import (
    error_handler,
    handle_failed,
    handle_sync,
    handle_syncstatus,
)


def build_bot_app(
    token: str,
    engine,
    worker,
    owner_chat_id: int = None,
) -> Application:
    """
    Build and return the PTB Application.

    Args:
        token: Telegram bot token.
        engine: SQLAlchemy engine (SQLModel).
        worker: SyncWorker owned by the running process.
        owner_chat_id: Telegram chat ID to send errors and sync alerts to.

    Returns:
        Configured Application (not yet started).
    """
    app = Application.builder().token(token).build()

    # Store shared resources in bot_data so handlers can access them
    app.bot_data["engine"] = engine
    app.bot_data["worker"] = worker
    app.bot_data["owner_chat_id"] = owner_chat_id

    app.add_handler(CommandHandler("syncstatus", handle_syncstatus))
    app.add_handler(CommandHandler("sync", handle_sync))
    app.add_handler(CommandHandler("failed", handle_failed))

    # Tracebacks go to the owner chat
    app.add_error_handler(error_handler)

    return app
