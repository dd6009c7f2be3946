"""Append-only change log for letters, drained into the spreadsheet."""
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

MAX_RETRIES = 5


class ChangeAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class SyncStatus(str, Enum):
    PENDING = "PENDING"
    SYNCED = "SYNCED"
    FAILED = "FAILED"


class LetterChangeLog(SQLModel, table=True):
    """
    One row per changed field (UPDATE) or per whole-letter event (CREATE/DELETE).

    Rows are never deleted by the reconciler. Rows that reach MAX_RETRIES
    stay FAILED for operator inspection.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    letter_id: str = Field(index=True)  # no FK: must outlive hard-deleted letters
    action: ChangeAction
    field: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    user_id: Optional[str] = None

    sync_status: SyncStatus = Field(default=SyncStatus.PENDING, index=True)
    sync_error: Optional[str] = None
    retry_count: int = 0

    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    synced_at: Optional[datetime] = None
