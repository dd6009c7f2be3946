"""Tests for Telegram bot command handlers."""
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlmodel import Session

from lettersync.bot.handlers import (
    build_sync_alert,
    error_handler,
    format_result,
    handle_failed,
    handle_sync,
    handle_syncstatus,
    notify_sync_problems,
)
from lettersync.models.change_log import ChangeAction, LetterChangeLog, SyncStatus
from lettersync.sync.reconciler import SyncResult


# ─── PTB Update mock helper ───────────────────────────────────────────────────

def make_update(text: str = "", user_id: int = 1) -> MagicMock:
    """Build a minimal python-telegram-bot Update mock."""
    update = MagicMock()
    update.effective_user.id = user_id
    update.message.text = text
    update.message.reply_text = AsyncMock()
    update.message.reply_chat_action = AsyncMock()
    return update


def make_context(engine=None, worker=None, owner_chat_id=None) -> MagicMock:
    context = MagicMock()
    context.bot_data = {
        "engine": engine,
        "worker": worker,
        "owner_chat_id": owner_chat_id,
    }
    context.bot.send_message = AsyncMock()
    return context


def make_worker(result=None, running=False) -> MagicMock:
    worker = MagicMock()
    worker.is_running.return_value = running
    worker.interval_seconds = 30
    worker.run_once = AsyncMock(return_value=result or SyncResult())
    return worker


def _reply(update) -> str:
    return update.message.reply_text.call_args.args[0]


# ─── format_result ────────────────────────────────────────────────────────────

class TestFormatResult:
    def test_counts(self):
        text = format_result(SyncResult(processed=3, synced=2, failed=1))
        assert "Processed: 3" in text
        assert "Synced: 2" in text
        assert "Failed: 1" in text
        assert "Errors" not in text

    def test_errors_listed(self):
        text = format_result(SyncResult(errors=["Batch sync error: timeout"]))
        assert "• Batch sync error: timeout" in text

    def test_errors_truncated(self):
        text = format_result(SyncResult(errors=[f"e{i}" for i in range(8)]))
        assert "• e4" in text
        assert "• e5" not in text
        assert "and 3 more" in text

    def test_skipped(self):
        assert "already running" in format_result(SyncResult(skipped=True))


# ─── /syncstatus ──────────────────────────────────────────────────────────────

class TestSyncStatus:
    @pytest.mark.asyncio
    async def test_empty_log(self, engine):
        update = make_update("/syncstatus")
        await handle_syncstatus(update, make_context(engine, make_worker()))
        text = _reply(update)
        assert "Worker: stopped (every 30s)" in text
        assert "Pending: 0" in text
        assert "Last synced: never" in text

    @pytest.mark.asyncio
    async def test_counts_and_last_sync(self, engine):
        with Session(engine) as s:
            s.add(LetterChangeLog(letter_id="L1", action=ChangeAction.CREATE))
            s.add(LetterChangeLog(
                letter_id="L2", action=ChangeAction.CREATE,
                sync_status=SyncStatus.SYNCED, synced_at=datetime(2025, 1, 15, 7, 30),
            ))
            s.commit()

        update = make_update("/syncstatus")
        await handle_syncstatus(update, make_context(engine, make_worker(running=True)))
        text = _reply(update)
        assert "Worker: running" in text
        assert "Pending: 1" in text
        assert "Synced: 1" in text
        assert "Total: 2" in text
        assert "Last synced: 2025-01-15 07:30:00 UTC" in text


# ─── /sync ────────────────────────────────────────────────────────────────────

class TestSync:
    @pytest.mark.asyncio
    async def test_runs_manual_pass(self):
        worker = make_worker(SyncResult(processed=4, synced=4))
        update = make_update("/sync")
        await handle_sync(update, make_context(worker=worker))

        worker.run_once.assert_awaited_once_with(trigger="manual")
        update.message.reply_chat_action.assert_awaited_once()
        assert "Synced: 4" in _reply(update)

    @pytest.mark.asyncio
    async def test_reports_skip(self):
        worker = make_worker(SyncResult(skipped=True, errors=["Sync already in progress"]))
        update = make_update("/sync")
        await handle_sync(update, make_context(worker=worker))
        assert "already running" in _reply(update)


# ─── /failed ──────────────────────────────────────────────────────────────────

class TestFailed:
    @pytest.mark.asyncio
    async def test_no_failures(self, engine):
        update = make_update("/failed")
        await handle_failed(update, make_context(engine))
        assert _reply(update) == "No failed changes."

    @pytest.mark.asyncio
    async def test_lists_failures(self, engine):
        with Session(engine) as s:
            s.add(LetterChangeLog(
                letter_id="L1", action=ChangeAction.UPDATE, field="status",
                sync_status=SyncStatus.FAILED, sync_error="cannot render", retry_count=2,
                created_at=datetime(2025, 1, 1),
            ))
            s.add(LetterChangeLog(
                letter_id="L2", action=ChangeAction.CREATE,
                sync_status=SyncStatus.FAILED, sync_error="bad owner", retry_count=5,
                created_at=datetime(2025, 1, 2),
            ))
            s.commit()

        update = make_update("/failed")
        await handle_failed(update, make_context(engine))
        lines = _reply(update).splitlines()
        assert len(lines) == 2
        assert "letter L2" in lines[0]
        assert "(gave up)" in lines[0]
        assert "try 2/5: cannot render" in lines[1]
        assert "(gave up)" not in lines[1]


# ─── Alerts and errors ────────────────────────────────────────────────────────

class TestAlerts:
    @pytest.mark.asyncio
    async def test_notify_sends_to_owner(self):
        bot = MagicMock()
        bot.send_message = AsyncMock()
        await notify_sync_problems(bot, 42, SyncResult(failed=1, errors=["Letter L1: bad"]))
        kwargs = bot.send_message.call_args.kwargs
        assert kwargs["chat_id"] == 42
        assert "Letter L1: bad" in kwargs["text"]

    @pytest.mark.asyncio
    async def test_notify_without_chat_is_noop(self):
        bot = MagicMock()
        bot.send_message = AsyncMock()
        await notify_sync_problems(bot, None, SyncResult(errors=["x"]))
        bot.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_build_sync_alert_hook(self):
        bot = MagicMock()
        bot.send_message = AsyncMock()
        hook = build_sync_alert(bot, 42)
        await hook(SyncResult(errors=["Batch sync error: 503"]))
        bot.send_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_error_handler_notifies_owner(self):
        context = make_context(owner_chat_id=42)
        try:
            raise RuntimeError("<boom>")
        except RuntimeError as exc:
            context.error = exc
        await error_handler(make_update(), context)
        kwargs = context.bot.send_message.call_args.kwargs
        assert kwargs["chat_id"] == 42
        assert kwargs["parse_mode"] == "HTML"
        assert "&lt;boom&gt;" in kwargs["text"]

    @pytest.mark.asyncio
    async def test_error_handler_without_owner(self):
        context = make_context()
        context.error = RuntimeError("boom")
        await error_handler(make_update(), context)
        context.bot.send_message.assert_not_awaited()
