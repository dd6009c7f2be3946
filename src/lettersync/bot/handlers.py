"""
Telegram bot command handlers for operating the sheet sync.

All handlers receive (update, context) from python-telegram-bot.
Bot data keys (set in build_bot_app):
  context.bot_data["engine"]         — SQLAlchemy engine
  context.bot_data["worker"]         — SyncWorker owned by the process
  context.bot_data["owner_chat_id"]  — chat that receives errors and alerts
"""
import html
import logging
import traceback
from typing import Optional

from sqlmodel import Session, col, select
from telegram import Update
from telegram.constants import ChatAction
from telegram.ext import ContextTypes

from lettersync.db.change_log import get_sync_stats
from lettersync.models.change_log import MAX_RETRIES, LetterChangeLog, SyncStatus
from lettersync.sync.reconciler import SyncResult

logger = logging.getLogger(__name__)

FAILED_LIST_LIMIT = 10
_TELEGRAM_MAX_LEN = 4096


def format_result(result: SyncResult) -> str:
    """One-message summary of a reconciliation pass."""
    if result.skipped:
        return "A sync pass is already running. Try again in a moment."
    lines = [
        f"Processed: {result.processed}",
        f"Synced: {result.synced}",
        f"Failed: {result.failed}",
    ]
    if result.errors:
        lines.append("")
        lines.append("Errors:")
        lines.extend(f"• {err}" for err in result.errors[:5])
        if len(result.errors) > 5:
            lines.append(f"…and {len(result.errors) - 5} more")
    return "\n".join(lines)


async def handle_syncstatus(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    /syncstatus — worker state and change-log counts.
    """
    engine = context.bot_data["engine"]
    worker = context.bot_data["worker"]

    with Session(engine) as s:
        stats = get_sync_stats(s)

    last = stats["last_synced_at"]
    state = "running" if worker.is_running() else "stopped"
    await update.message.reply_text(
        f"Worker: {state} (every {worker.interval_seconds}s)\n"
        f"Pending: {stats['pending']}\n"
        f"Failed: {stats['failed']}\n"
        f"Synced: {stats['synced']}\n"
        f"Total: {stats['total']}\n"
        f"Last synced: {last.strftime('%Y-%m-%d %H:%M:%S') + ' UTC' if last else 'never'}"
    )


async def handle_sync(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    /sync — run one reconciliation pass now and report the result.
    """
    worker = context.bot_data["worker"]

    await update.message.reply_chat_action(ChatAction.TYPING)
    result = await worker.run_once(trigger="manual")
    await update.message.reply_text(format_result(result))


async def handle_failed(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    /failed — most recent FAILED change-log records with their errors.
    """
    engine = context.bot_data["engine"]

    with Session(engine) as s:
        failed = s.exec(
            select(LetterChangeLog)
            .where(LetterChangeLog.sync_status == SyncStatus.FAILED)
            .order_by(col(LetterChangeLog.created_at).desc())
            .limit(FAILED_LIST_LIMIT)
        ).all()

    if not failed:
        await update.message.reply_text("No failed changes.")
        return

    lines = []
    for change in failed:
        exhausted = " (gave up)" if change.retry_count >= MAX_RETRIES else ""
        lines.append(
            f"#{change.id} letter {change.letter_id} {change.action.value} "
            f"try {change.retry_count}/{MAX_RETRIES}{exhausted}: {change.sync_error or '-'}"
        )
    text = "\n".join(lines)
    await update.message.reply_text(text[:_TELEGRAM_MAX_LEN])


async def notify_sync_problems(bot, chat_id: Optional[int], result: SyncResult) -> None:
    """Send a pass summary to the owner chat when a pass failed records or errored."""
    if not chat_id:
        return
    await bot.send_message(
        chat_id=chat_id,
        text=f"⚠️ Sheet sync problems\n{format_result(result)}"[:_TELEGRAM_MAX_LEN],
    )


def build_sync_alert(bot, chat_id: Optional[int]):
    """Return a SyncWorker on_result hook that alerts ``chat_id``."""

    async def _alert(result: SyncResult) -> None:
        await notify_sync_problems(bot, chat_id, result)

    return _alert


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Global PTB error handler: log the exception, send the traceback to the owner."""
    logger.exception("Unhandled exception", exc_info=context.error)

    chat_id = context.bot_data.get("owner_chat_id")
    if not chat_id:
        return

    tb = "".join(traceback.format_exception(type(context.error), context.error, context.error.__traceback__))
    # Telegram message limit is 4096 chars
    short_tb = tb[-3000:] if len(tb) > 3000 else tb
    await context.bot.send_message(
        chat_id=chat_id,
        text=f"⚠️ Unhandled error:\n<pre>{html.escape(short_tb)}</pre>",
        parse_mode="HTML",
    )
