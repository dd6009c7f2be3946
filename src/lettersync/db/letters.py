"""
LetterRepository — the only write path for letters.

Each method commits the letter write first, then hands before/after
snapshots to the ChangeLogWriter. The log write runs in a separate session,
so a logging failure cannot roll back the letter.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from lettersync.models.letter import Letter, LetterFile
from lettersync.sync.changelog import ChangeLogWriter, snapshot

# Managed by the repository / reconciler, never by callers
READ_ONLY_FIELDS = {
    "id",
    "creator_id",
    "created_at",
    "updated_at",
    "sheet_row_num",
    "last_synced_at",
}

# NOT NULL columns that callers may change but never clear
REQUIRED_FIELDS = {"number", "org", "status"}


class LetterRepository:
    """Letter CRUD that records every change for spreadsheet sync."""

    def __init__(self, engine, writer: Optional[ChangeLogWriter] = None):
        self.engine = engine
        self.writer = writer or ChangeLogWriter(engine)

    def create(self, data: Dict[str, Any], actor_id: Optional[str] = None) -> Letter:
        """Insert a letter and log a CREATE record."""
        fields = dict(data)
        self._check_fields(fields, allow={"id"})
        letter = Letter(creator_id=actor_id, **fields)
        with Session(self.engine) as s:
            s.add(letter)
            s.commit()
            s.refresh(letter)

        self.writer.record_create(letter.id, actor_id=actor_id)
        return letter

    def get(self, letter_id: str) -> Optional[Letter]:
        with Session(self.engine) as s:
            return s.get(Letter, letter_id)

    def list(
        self, limit: int = 50, offset: int = 0, include_deleted: bool = False
    ) -> List[Letter]:
        """List letters, newest first."""
        with Session(self.engine) as s:
            query = select(Letter)
            if not include_deleted:
                query = query.where(Letter.deleted_at == None)  # noqa: E711
            query = query.order_by(Letter.created_at.desc()).offset(offset).limit(limit)
            return list(s.exec(query).all())

    def update(
        self,
        letter_id: str,
        changes: Dict[str, Any],
        actor_id: Optional[str] = None,
    ) -> Optional[Letter]:
        """
        Apply field changes and log one UPDATE per changed sync field.

        Setting deleted_at on a live letter is logged as a single DELETE.

        Returns:
            The updated letter, or None if it does not exist.

        Raises:
            ValueError: if changes name an unknown or read-only field, or
                clear a required one.
        """
        self._check_fields(changes)

        with Session(self.engine) as s:
            letter = s.get(Letter, letter_id)
            if letter is None:
                return None
            before = snapshot(letter)

            for k, v in changes.items():
                setattr(letter, k, v)
            letter.updated_at = datetime.utcnow()
            s.add(letter)
            s.commit()
            s.refresh(letter)
            after = snapshot(letter)

        self.writer.record_update(letter_id, before, after, actor_id=actor_id)
        return letter

    def soft_delete(self, letter_id: str, actor_id: Optional[str] = None) -> Optional[Letter]:
        """Mark a letter deleted. A letter already deleted keeps its timestamp."""
        letter = self.get(letter_id)
        if letter is None or letter.deleted_at is not None:
            return letter
        return self.update(letter_id, {"deleted_at": datetime.utcnow()}, actor_id=actor_id)

    def restore(self, letter_id: str, actor_id: Optional[str] = None) -> Optional[Letter]:
        """Undo a soft delete (logged as an UPDATE of deleted_at)."""
        return self.update(letter_id, {"deleted_at": None}, actor_id=actor_id)

    def delete(self, letter_id: str, actor_id: Optional[str] = None) -> bool:
        """
        Remove a letter row for good and log a DELETE record.

        Returns:
            True if a letter was deleted, False if it did not exist.
        """
        with Session(self.engine) as s:
            letter = s.get(Letter, letter_id)
            if letter is None:
                return False
            deleted_id = letter.id
            for f in s.exec(select(LetterFile).where(LetterFile.letter_id == deleted_id)).all():
                s.delete(f)
            s.delete(letter)
            s.commit()

        self.writer.record_delete(deleted_id, actor_id=actor_id)
        return True

    @staticmethod
    def _check_fields(fields: Dict[str, Any], allow=frozenset()) -> None:
        for name in fields:
            if name not in Letter.model_fields:
                raise ValueError(f"Unknown letter field: {name}")
            if name in READ_ONLY_FIELDS and name not in allow:
                raise ValueError(f"Letter field is read-only: {name}")
            if name in REQUIRED_FIELDS and fields[name] is None:
                raise ValueError(f"Letter field cannot be empty: {name}")
