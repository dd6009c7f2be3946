"""
SheetReconciler — drains the letter change log into the spreadsheet.

Flow for one reconciliation pass:
  1. Check Google config; if incomplete, report it and stop (no retry counted)
  2. Load up to N PENDING/FAILED records under the retry cap, oldest first
  3. Group them by letter (the log is a trigger, not a replay log)
  4. Read the ID column once to map letter id → sheet row
  5. For each letter: reload it, render its current state, queue an update
     (known row) or an append (new letter)
  6. One batched range update + one append for the whole pass
  7. Write the appended row numbers back onto the letters
  8. Mark the records SYNCED

A rendering error for one letter marks only that letter's records FAILED.
Any other error ends the pass and is reported in the result; records not
yet marked stay as they were and the next pass retries them.

Idempotency: a letter is appended only when neither the ID column nor its
cached sheet_row_num knows a row for it, so repeated passes never append
the same letter twice.
"""
import logging
from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlmodel import Session, select

from lettersync.config import Settings, get_settings
from lettersync.db.change_log import (
    get_pending_changes,
    mark_change_failed,
    mark_changes_synced,
)
from lettersync.models.change_log import MAX_RETRIES, LetterChangeLog
from lettersync.models.letter import Letter, LetterFile, User
from lettersync.sheets.auth import missing_config
from lettersync.sheets.client import SheetsClient, parse_start_row
from lettersync.sync.rows import (
    TOTAL_COLUMNS,
    build_row,
    id_column_range,
    row_range,
    table_range,
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50


@dataclass
class SyncResult:
    """Outcome of one pass. Counts are change-log records, not letters."""

    processed: int = 0
    synced: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    skipped: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class SheetReconciler:
    """Reconciles pending letter changes against one spreadsheet tab."""

    def __init__(
        self,
        engine,
        sheets: Optional[SheetsClient] = None,
        settings: Optional[Settings] = None,
        max_retries: int = MAX_RETRIES,
    ):
        """
        Args:
            engine: SQLAlchemy engine (SQLModel create_engine result).
            sheets: SheetsClient (or AsyncMock in tests). Built from settings
                    on first use when omitted.
            settings: Defaults to get_settings().
            max_retries: Records with this many failures are never retried.
        """
        self.engine = engine
        self.sheets = sheets
        self.settings = settings or get_settings()
        self.max_retries = max_retries

    async def process_pending_changes(self, batch_size: int = DEFAULT_BATCH_SIZE) -> SyncResult:
        """
        Run one reconciliation pass.

        Never raises: configuration problems and remote failures are
        returned in ``SyncResult.errors``.
        """
        result = SyncResult()

        missing = missing_config(self.settings)
        if missing:
            result.errors.append(f"Google Sheets not configured: missing {', '.join(missing)}")
            return result

        sheet_name = self.settings.google_sheet_name

        try:
            with Session(self.engine) as s:
                pending = get_pending_changes(s, limit=batch_size, max_retries=self.max_retries)
                if not pending:
                    return result
                result.processed = len(pending)

                groups = group_changes_by_letter(pending)
                sheets = await self._get_sheets()
                row_map = await self._fetch_row_map(sheets, sheet_name)

                updates: List[dict] = []
                updated_letter_ids: List[str] = []
                appends: List[Tuple[str, List[str]]] = []
                synced_ids: List[int] = []

                for letter_id, changes in groups.items():
                    change_ids = [c.id for c in changes]
                    try:
                        letter = s.get(Letter, letter_id)
                        if letter is None:
                            # Hard-deleted: nothing left to reconcile
                            synced_ids.extend(change_ids)
                            continue

                        row = self._render(s, letter)
                        row_num = row_map.get(letter_id) or letter.sheet_row_num
                        if row_num:
                            updates.append({"range": row_range(sheet_name, row_num), "values": [row]})
                            updated_letter_ids.append(letter_id)
                        else:
                            appends.append((letter_id, row))
                        synced_ids.extend(change_ids)

                    except Exception as exc:
                        message = str(exc) or exc.__class__.__name__
                        logger.warning("Letter %s failed to render: %s", letter_id, message)
                        result.errors.append(f"Letter {letter_id}: {message}")
                        result.failed += len(change_ids)
                        s.rollback()
                        for change_id in change_ids:
                            mark_change_failed(s, change_id, message)

                if updates:
                    await sheets.batch_update_values(updates)

                synced_at = datetime.utcnow()
                if appends:
                    updated_range = await sheets.append_rows(
                        table_range(sheet_name), [row for _, row in appends]
                    )
                    start_row = parse_start_row(updated_range)
                    if start_row is not None:
                        self._store_row_numbers(s, appends, start_row, synced_at)
                        await self._copy_formatting(sheets, sheet_name, start_row, len(appends))
                    else:
                        logger.warning("Append response had no usable range: %r", updated_range)

                self._touch_synced(s, updated_letter_ids, synced_at)
                mark_changes_synced(s, synced_ids)
                result.synced = len(synced_ids)

        except Exception as exc:
            logger.error("Batch sync error: %s", exc)
            result.errors.append(f"Batch sync error: {exc}")

        return result

    # ─── Internal helpers ─────────────────────────────────────────────────────

    async def _get_sheets(self) -> SheetsClient:
        if self.sheets is None:
            self.sheets = SheetsClient.from_settings(self.settings)
        await self.sheets.connect()
        return self.sheets

    async def _fetch_row_map(self, sheets: SheetsClient, sheet_name: str) -> Dict[str, int]:
        """letter id → 1-based row number, from the ID column starting at row 2."""
        values = await sheets.get_values(id_column_range(sheet_name))
        row_map: Dict[str, int] = {}
        for index, cells in enumerate(values):
            if cells and cells[0]:
                row_map[str(cells[0])] = index + 2
        return row_map

    def _render(self, s: Session, letter: Letter) -> List[str]:
        owner = s.get(User, letter.owner_id) if letter.owner_id else None
        file_names = s.exec(
            select(LetterFile.name)
            .where(LetterFile.letter_id == letter.id)
            .order_by(LetterFile.id)
        ).all()
        return build_row(letter, owner=owner, file_names=file_names)

    def _store_row_numbers(
        self,
        s: Session,
        appends: List[Tuple[str, List[str]]],
        start_row: int,
        synced_at: datetime,
    ) -> None:
        """Cache each appended letter's row so the next pass can skip the lookup."""
        for offset, (letter_id, _) in enumerate(appends):
            letter = s.get(Letter, letter_id)
            if letter is None:
                continue
            letter.sheet_row_num = start_row + offset
            letter.last_synced_at = synced_at
            s.add(letter)
        s.commit()

    def _touch_synced(self, s: Session, letter_ids: List[str], synced_at: datetime) -> None:
        for letter_id in letter_ids:
            letter = s.get(Letter, letter_id)
            if letter is not None:
                letter.last_synced_at = synced_at
                s.add(letter)
        s.commit()

    async def _copy_formatting(
        self, sheets: SheetsClient, sheet_name: str, start_row: int, row_count: int
    ) -> None:
        """Cosmetic: failures are logged, the pass still succeeds."""
        try:
            sheet_id = await sheets.get_sheet_id(sheet_name)
            if sheet_id is None:
                return
            await sheets.copy_template_formatting(sheet_id, start_row, row_count, TOTAL_COLUMNS)
        except Exception as exc:
            logger.warning("Could not copy template formatting to rows %d+: %s", start_row, exc)


def group_changes_by_letter(
    changes: List[LetterChangeLog],
) -> "OrderedDict[str, List[LetterChangeLog]]":
    """Group records by letter id, keeping first-seen (oldest) order."""
    groups: "OrderedDict[str, List[LetterChangeLog]]" = OrderedDict()
    for change in changes:
        groups.setdefault(change.letter_id, []).append(change)
    return groups
