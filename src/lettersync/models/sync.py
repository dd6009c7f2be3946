"""Reconciliation pass audit log model."""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class SyncLog(SQLModel, table=True):
    """Records each reconciliation pass that did work, for audit and debugging."""

    id: Optional[int] = Field(default=None, primary_key=True)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    trigger: str = "manual"  # "interval", "manual"
    status: str = "running"  # "running", "success", "partial", "error"
    processed: int = 0
    synced: int = 0
    failed: int = 0
    error_message: Optional[str] = None


class SyncLease(SQLModel, table=True):
    """
    Cross-process lock for reconciliation passes.

    One row per lease name. A pass may run only while its worker holds the
    lease; an expired lease (crashed holder) can be taken over.
    """

    name: str = Field(primary_key=True)
    holder: Optional[str] = None
    acquired_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
