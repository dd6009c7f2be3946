"""Sync worker control, change-log browsing and pass history routes."""
from datetime import datetime
from typing import Generator, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlmodel import Session, col, select

from lettersync.db.change_log import get_sync_stats, list_changes, purge_synced_changes
from lettersync.models.change_log import LetterChangeLog, SyncStatus
from lettersync.models.letter import Letter
from lettersync.models.sync import SyncLog
from lettersync.scheduler.jobs import SyncWorker

router = APIRouter()


class SyncActionRequest(BaseModel):
    action: str  # "start", "stop", "trigger"
    interval_seconds: Optional[int] = None
    batch_size: Optional[int] = None


class PurgeRequest(BaseModel):
    older_than_days: int = 30


class ChangeItem(BaseModel):
    id: int
    letter_id: str
    letter_number: Optional[str]
    letter_org: Optional[str]
    action: str
    field: Optional[str]
    old_value: Optional[str]
    new_value: Optional[str]
    sync_status: str
    sync_error: Optional[str]
    retry_count: int
    created_at: datetime
    synced_at: Optional[datetime]


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class ChangesResponse(BaseModel):
    changes: List[ChangeItem]
    pagination: Pagination


def get_worker(request: Request) -> SyncWorker:
    return request.app.state.sync_worker


def get_session(request: Request) -> Generator[Session, None, None]:
    """Session on the app's engine, the same one the letter routes write to."""
    with Session(request.app.state.engine) as session:
        yield session


@router.get("/auto")
def sync_auto_status(
    worker: SyncWorker = Depends(get_worker),
    session: Session = Depends(get_session),
):
    """Worker state plus change-log counts."""
    return {
        "worker": {
            "running": worker.is_running(),
            "interval_seconds": worker.interval_seconds,
        },
        "stats": get_sync_stats(session),
    }


@router.post("/auto")
async def sync_auto_action(
    request: SyncActionRequest,
    worker: SyncWorker = Depends(get_worker),
):
    """Start or stop the interval worker, or run one pass now."""
    if request.action == "start":
        started = worker.start(request.interval_seconds)
        message = (
            f"Sync worker started with interval {worker.interval_seconds}s"
            if started
            else "Sync worker already running"
        )
        return {"success": True, "message": message}

    if request.action == "stop":
        worker.stop()
        return {"success": True, "message": "Sync worker stopped"}

    if request.action == "trigger":
        result = await worker.run_once(batch_size=request.batch_size)
        return {"success": True, "result": result.to_dict()}

    raise HTTPException(
        status_code=400, detail="Unknown action. Use: start, stop, trigger"
    )


@router.get("/changes", response_model=ChangesResponse)
def sync_changes(
    status: Optional[SyncStatus] = None,
    letter_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    session: Session = Depends(get_session),
):
    """Change-log records, newest first, with the letter's number and org."""
    changes, total = list_changes(
        session, status=status, letter_id=letter_id, limit=limit, offset=offset
    )

    letter_ids = {c.letter_id for c in changes}
    letters = {}
    if letter_ids:
        letters = {
            letter.id: letter
            for letter in session.exec(select(Letter).where(col(Letter.id).in_(letter_ids))).all()
        }

    items = [_change_item(c, letters.get(c.letter_id)) for c in changes]
    return ChangesResponse(
        changes=items,
        pagination=Pagination(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(changes) < total,
        ),
    )


@router.delete("/changes")
def purge_changes(request: PurgeRequest, session: Session = Depends(get_session)):
    """Delete SYNCED records older than ``older_than_days``. Pending/failed are kept."""
    deleted = purge_synced_changes(session, older_than_days=request.older_than_days)
    return {
        "success": True,
        "deleted": deleted,
        "message": f"Deleted {deleted} records older than {request.older_than_days} days",
    }


@router.get("/logs", response_model=List[SyncLog])
def sync_logs(limit: int = 20, session: Session = Depends(get_session)):
    """Most recent reconciliation passes."""
    return session.exec(
        select(SyncLog).order_by(SyncLog.started_at.desc()).limit(limit)
    ).all()


def _change_item(change: LetterChangeLog, letter: Optional[Letter]) -> ChangeItem:
    return ChangeItem(
        id=change.id,
        letter_id=change.letter_id,
        letter_number=letter.number if letter else None,
        letter_org=letter.org if letter else None,
        action=change.action.value,
        field=change.field,
        old_value=change.old_value,
        new_value=change.new_value,
        sync_status=change.sync_status.value,
        sync_error=change.sync_error,
        retry_count=change.retry_count,
        created_at=change.created_at,
        synced_at=change.synced_at,
    )
