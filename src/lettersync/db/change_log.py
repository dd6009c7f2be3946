"""Queries over LetterChangeLog used by the reconciler and operator surfaces."""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, update
from sqlmodel import Session, col, select

from lettersync.models.change_log import MAX_RETRIES, LetterChangeLog, SyncStatus


def get_pending_changes(
    session: Session, limit: int = 100, max_retries: int = MAX_RETRIES
) -> List[LetterChangeLog]:
    """PENDING/FAILED records still under the retry cap, oldest first."""
    return list(
        session.exec(
            select(LetterChangeLog)
            .where(col(LetterChangeLog.sync_status).in_([SyncStatus.PENDING, SyncStatus.FAILED]))
            .where(LetterChangeLog.retry_count < max_retries)
            .order_by(LetterChangeLog.created_at, LetterChangeLog.id)
            .limit(limit)
        ).all()
    )


def mark_changes_synced(session: Session, ids: Sequence[int]) -> None:
    if not ids:
        return
    session.exec(
        update(LetterChangeLog)
        .where(col(LetterChangeLog.id).in_(list(ids)))
        .values(sync_status=SyncStatus.SYNCED, synced_at=datetime.utcnow())
    )
    session.commit()


def mark_change_failed(session: Session, change_id: int, error: str) -> None:
    session.exec(
        update(LetterChangeLog)
        .where(LetterChangeLog.id == change_id)
        .values(
            sync_status=SyncStatus.FAILED,
            sync_error=error,
            retry_count=LetterChangeLog.retry_count + 1,
        )
    )
    session.commit()


def get_sync_stats(session: Session) -> Dict[str, Any]:
    """Counts per status plus the most recent successful sync time."""
    counts = dict(
        session.exec(
            select(LetterChangeLog.sync_status, func.count()).group_by(LetterChangeLog.sync_status)
        ).all()
    )
    last_synced_at = session.exec(
        select(func.max(LetterChangeLog.synced_at)).where(
            LetterChangeLog.sync_status == SyncStatus.SYNCED
        )
    ).one()
    return {
        "pending": counts.get(SyncStatus.PENDING, 0),
        "failed": counts.get(SyncStatus.FAILED, 0),
        "synced": counts.get(SyncStatus.SYNCED, 0),
        "total": sum(counts.values()),
        "last_synced_at": last_synced_at,
    }


def list_changes(
    session: Session,
    status: Optional[SyncStatus] = None,
    letter_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[LetterChangeLog], int]:
    """Newest-first page of records plus the total matching count."""
    query = select(LetterChangeLog)
    count_query = select(func.count()).select_from(LetterChangeLog)
    if status is not None:
        query = query.where(LetterChangeLog.sync_status == status)
        count_query = count_query.where(LetterChangeLog.sync_status == status)
    if letter_id:
        query = query.where(LetterChangeLog.letter_id == letter_id)
        count_query = count_query.where(LetterChangeLog.letter_id == letter_id)

    rows = session.exec(
        query.order_by(col(LetterChangeLog.created_at).desc(), col(LetterChangeLog.id).desc())
        .offset(offset)
        .limit(limit)
    ).all()
    total = session.exec(count_query).one()
    return list(rows), total


def purge_synced_changes(session: Session, older_than_days: int = 30) -> int:
    """Delete SYNCED records synced before the cutoff. Returns the number removed."""
    cutoff = datetime.utcnow() - timedelta(days=older_than_days)
    result = session.exec(
        delete(LetterChangeLog)
        .where(LetterChangeLog.sync_status == SyncStatus.SYNCED)
        .where(LetterChangeLog.synced_at < cutoff)
    )
    session.commit()
    return result.rowcount
