"""
Backfill script: queue letters for a push to the spreadsheet.

Usage:
    python -m lettersync.scripts.backfill          # letters never synced
    python -m lettersync.scripts.backfill --all    # every live letter

Adds one PENDING CREATE record per selected letter. The next reconciliation
pass then renders each letter's current state and updates or appends its
row (existing rows are found through the ID column, so nothing is
duplicated). Soft-deleted letters are skipped, as are letters that already
have a pending record.
"""
import argparse
import logging

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


def _backfill(include_synced: bool, engine=None) -> int:
    """Queue CREATE records. Returns the number of letters queued."""
    from sqlmodel import Session, col, select

    from lettersync.db.engine import get_engine
    from lettersync.models.change_log import ChangeAction, LetterChangeLog, SyncStatus
    from lettersync.models.letter import Letter

    engine = engine if engine is not None else get_engine()
    queued = 0
    skipped = 0

    with Session(engine) as s:
        query = select(Letter).where(Letter.deleted_at == None)  # noqa: E711
        if not include_synced:
            query = query.where(Letter.last_synced_at == None)  # noqa: E711
        letters = s.exec(query.order_by(Letter.created_at)).all()

        already_pending = set(
            s.exec(
                select(LetterChangeLog.letter_id).where(
                    col(LetterChangeLog.sync_status).in_([SyncStatus.PENDING, SyncStatus.FAILED])
                )
            ).all()
        )

        for letter in letters:
            if letter.id in already_pending:
                skipped += 1
                continue
            s.add(LetterChangeLog(letter_id=letter.id, action=ChangeAction.CREATE))
            queued += 1
        s.commit()

    logger.info(
        "Backfill complete. Queued: %d, Skipped (already pending): %d", queued, skipped
    )
    return queued


def main() -> None:
    parser = argparse.ArgumentParser(description="Queue letters for spreadsheet sync")
    parser.add_argument(
        "--all",
        action="store_true",
        help="Include letters that were synced before (default: only never-synced)",
    )
    args = parser.parse_args()
    _backfill(include_synced=args.all)


if __name__ == "__main__":
    main()
