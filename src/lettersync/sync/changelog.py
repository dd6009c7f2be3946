"""
Change log writer: turns letter writes into LetterChangeLog rows.

Every committed mutation of a letter produces PENDING records:
  - create       → one CREATE record
  - update       → one UPDATE record per changed sync field
  - soft delete  → one DELETE record (deleted_at went from None to a value),
                   replacing the per-field UPDATE records for that write
  - hard delete  → one DELETE record keyed by the id captured before removal

Writes are best-effort. A failure here must never undo or block the letter
write that triggered it, so every exception is swallowed. With
``settings.debug`` on, the traceback is logged.
"""
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from sqlmodel import Session

from lettersync.config import get_settings
from lettersync.models.change_log import ChangeAction, LetterChangeLog, SyncStatus

logger = logging.getLogger(__name__)

# Letter fields whose changes must reach the spreadsheet
SYNC_FIELDS = (
    "number",
    "org",
    "letter_date",
    "deadline_date",
    "status",
    "type",
    "content",
    "zordoc",
    "answer",
    "send_status",
    "ijro_date",
    "comment",
    "contacts",
    "close_date",
    "jira_link",
    "owner_id",
    "deleted_at",
)


@dataclass
class FieldChange:
    field: str
    old_value: Optional[str]
    new_value: Optional[str]


def format_timestamp(value: datetime) -> str:
    """Canonical ISO-8601 UTC form with milliseconds, e.g. 2025-01-15T07:30:00.000Z.

    Naive datetimes are treated as UTC (that is how the models store them).
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def value_to_string(value: Any) -> Optional[str]:
    """Stringify a field value for comparison and storage."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return str(value)


def snapshot(letter) -> Dict[str, Any]:
    """Capture the sync fields of a letter (or any object with those attributes)."""
    return {field: getattr(letter, field, None) for field in SYNC_FIELDS}


def detect_changes(old: Mapping[str, Any], new: Mapping[str, Any]) -> List[FieldChange]:
    """Return one FieldChange per sync field whose stringified value differs.

    Comparison is exact string equality: "a" and "a " are different values.
    """
    changes = []
    for field in SYNC_FIELDS:
        old_str = value_to_string(old.get(field))
        new_str = value_to_string(new.get(field))
        if old_str != new_str:
            changes.append(FieldChange(field=field, old_value=old_str, new_value=new_str))
    return changes


def was_soft_deleted(old: Mapping[str, Any], new: Mapping[str, Any]) -> bool:
    return old.get("deleted_at") is None and new.get("deleted_at") is not None


class ChangeLogWriter:
    """Appends change records in their own session, never raising."""

    def __init__(self, engine):
        self.engine = engine

    def record_create(self, letter_id: str, actor_id: Optional[str] = None) -> None:
        self._write([
            LetterChangeLog(letter_id=letter_id, action=ChangeAction.CREATE, user_id=actor_id)
        ])

    def record_update(
        self,
        letter_id: str,
        old: Mapping[str, Any],
        new: Mapping[str, Any],
        actor_id: Optional[str] = None,
    ) -> None:
        """Record an update given before/after snapshots of the sync fields."""
        try:
            if was_soft_deleted(old, new):
                records = [
                    LetterChangeLog(
                        letter_id=letter_id, action=ChangeAction.DELETE, user_id=actor_id
                    )
                ]
            else:
                records = [
                    LetterChangeLog(
                        letter_id=letter_id,
                        action=ChangeAction.UPDATE,
                        field=change.field,
                        old_value=change.old_value,
                        new_value=change.new_value,
                        user_id=actor_id,
                    )
                    for change in detect_changes(old, new)
                ]
        except Exception:
            self._report_failure(letter_id)
            return
        self._write(records)

    def record_delete(self, letter_id: str, actor_id: Optional[str] = None) -> None:
        self._write([
            LetterChangeLog(letter_id=letter_id, action=ChangeAction.DELETE, user_id=actor_id)
        ])

    def _write(self, records: List[LetterChangeLog]) -> None:
        if not records:
            return
        try:
            with Session(self.engine) as s:
                for record in records:
                    record.sync_status = SyncStatus.PENDING
                    s.add(record)
                s.commit()
        except Exception:
            self._report_failure(records[0].letter_id)

    @staticmethod
    def _report_failure(letter_id: str) -> None:
        if get_settings().debug:
            logger.exception("Failed to log change for letter %s", letter_id)
