"""
Main entrypoint: starts the sync worker (and the operator bot) in one process.

FastAPI runs separately under uvicorn.

Usage:
    python -m lettersync setup          # check Google config, write sheet header
    python -m lettersync once           # run one reconciliation pass and exit
    python -m lettersync                # starts worker + bot (bot if token set)
    uvicorn lettersync.api.main:app --host 0.0.0.0 --port 8000  # starts API
"""
import argparse
import asyncio
import json
import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def _run_setup() -> None:
    from lettersync.scripts.setup import run_setup
    run_setup()


async def _run_once(batch_size: int) -> None:
    from lettersync.db.engine import get_engine
    from lettersync.scheduler.jobs import SyncWorker

    worker = SyncWorker(get_engine(), batch_size=batch_size)
    result = await worker.run_once(trigger="manual")
    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))


async def _run_service() -> None:
    from lettersync.bot.app import build_bot_app
    from lettersync.bot.handlers import build_sync_alert
    from lettersync.config import get_settings
    from lettersync.db.engine import get_engine
    from lettersync.scheduler.jobs import SyncWorker
    from lettersync.sheets.auth import missing_config

    settings = get_settings()
    engine = get_engine()

    missing = missing_config(settings)
    if missing:
        logger.warning(
            "Google Sheets not configured (missing %s); passes will report it.",
            ", ".join(missing),
        )

    worker = SyncWorker(
        engine,
        interval_seconds=settings.sync_interval_seconds,
        batch_size=settings.sync_batch_size,
    )

    bot_app = None
    if settings.telegram_bot_token:
        bot_app = build_bot_app(
            token=settings.telegram_bot_token,
            engine=engine,
            worker=worker,
            owner_chat_id=settings.telegram_allowed_user_id,
        )
        worker.on_result = build_sync_alert(bot_app.bot, settings.telegram_allowed_user_id)
    else:
        logger.info("TELEGRAM_BOT_TOKEN not set, operator bot disabled.")

    worker.start()

    try:
        if bot_app is None:
            await asyncio.Event().wait()
        else:
            logger.info("Starting Telegram bot...")
            async with bot_app:
                await bot_app.start()
                await bot_app.updater.start_polling(drop_pending_updates=True)
                logger.info("Bot is running. Press Ctrl+C to stop.")
                try:
                    await asyncio.Event().wait()
                finally:
                    await bot_app.updater.stop()
                    await bot_app.stop()
    except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
        logger.info("Shutting down...")
    finally:
        worker.stop()
        logger.info("Goodbye.")


def main() -> None:
    parser = argparse.ArgumentParser(prog="lettersync", description="Letter ↔ Google Sheets sync")
    parser.add_argument("command", nargs="?", choices=["setup", "once"], default=None)
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Max change-log records for `once` (default: SYNC_BATCH_SIZE)",
    )
    args = parser.parse_args()

    if args.command == "setup":
        _run_setup()
    elif args.command == "once":
        from lettersync.config import get_settings
        asyncio.run(_run_once(args.batch_size or get_settings().sync_batch_size))
    else:
        asyncio.run(_run_service())


if __name__ == "__main__":
    main()
