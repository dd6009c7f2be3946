"""Letter data models: letters, their owners and attached file names."""
from datetime import date, datetime
from typing import Optional
from uuid import uuid4

from sqlmodel import Field, SQLModel


def new_id() -> str:
    return uuid4().hex


# Human-readable status labels as they appear in the spreadsheet
STATUS_LABELS = {
    "NOT_REVIEWED": "not reviewed",
    "ACCEPTED": "accepted",
    "IN_PROGRESS": "in progress",
    "CLARIFICATION": "clarification",
    "READY": "ready",
    "DONE": "done",
}


class User(SQLModel, table=True):
    """Staff member who can own letters. Only email/name matter for sync."""

    id: str = Field(default_factory=new_id, primary_key=True)
    email: Optional[str] = Field(default=None, index=True)
    name: Optional[str] = None


class Letter(SQLModel, table=True):
    """One row per tracked letter. Mirrors one row in the spreadsheet."""

    id: str = Field(default_factory=new_id, primary_key=True)
    number: str = Field(index=True)
    org: str
    letter_date: Optional[date] = None
    deadline_date: Optional[date] = None
    status: str = Field(default="NOT_REVIEWED", index=True)
    type: Optional[str] = None
    content: Optional[str] = None
    jira_link: Optional[str] = None
    zordoc: Optional[str] = None
    answer: Optional[str] = None
    send_status: Optional[str] = None
    ijro_date: Optional[date] = None
    comment: Optional[str] = None
    contacts: Optional[str] = None
    close_date: Optional[date] = None

    owner_id: Optional[str] = Field(default=None, foreign_key="user.id", index=True)
    creator_id: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    deleted_at: Optional[datetime] = Field(default=None, index=True)  # soft delete

    # Spreadsheet bookkeeping, written back by the reconciler
    sheet_row_num: Optional[int] = None
    last_synced_at: Optional[datetime] = None


class LetterFile(SQLModel, table=True):
    """A file attached to a letter. Storage lives elsewhere; we keep the name."""

    id: Optional[int] = Field(default=None, primary_key=True)
    letter_id: str = Field(foreign_key="letter.id", index=True)
    name: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
