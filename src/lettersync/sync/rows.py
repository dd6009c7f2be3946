"""
Letter → spreadsheet row rendering.

The sheet has a fixed 21-column layout (A..U). Columns R..U are ours:
the letter id used to find the row again, timestamps, and a conflict
marker that is always written empty.
"""
from datetime import date, datetime
from enum import IntEnum
from typing import List, Optional, Sequence

from lettersync.models.letter import STATUS_LABELS, Letter, User
from lettersync.sheets.client import column_letter
from lettersync.sync.changelog import format_timestamp


class Column(IntEnum):
    NUMBER = 0
    ORG = 1
    DATE = 2
    DEADLINE_DATE = 3
    STATUS = 4
    FILES = 5
    TYPE = 6
    CONTENT = 7
    JIRA_LINK = 8
    ZORDOC = 9
    ANSWER = 10
    SEND_STATUS = 11
    IJRO_DATE = 12
    COMMENT = 13
    OWNER = 14
    CONTACTS = 15
    CLOSE_DATE = 16
    ID = 17
    UPDATED_AT = 18
    DELETED_AT = 19
    CONFLICT = 20


TOTAL_COLUMNS = len(Column)
FIRST_COLUMN = column_letter(0)
LAST_COLUMN = column_letter(TOTAL_COLUMNS - 1)
ID_COLUMN = column_letter(Column.ID)

# Header cells for the bookkeeping columns R1:U1
SYNC_HEADER = ["ID", "UPDATED_AT", "DELETED_AT", "CONFLICT"]


def format_sheet_date(value: Optional[date]) -> str:
    """DD.MM.YYYY, or empty string for no date."""
    if value is None:
        return ""
    return value.strftime("%d.%m.%Y")


def format_sheet_timestamp(value: Optional[datetime]) -> str:
    return format_timestamp(value) if value is not None else ""


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status or "")


def build_row(
    letter: Letter,
    owner: Optional[User] = None,
    file_names: Sequence[str] = (),
) -> List[str]:
    """Render one letter into a TOTAL_COLUMNS-wide row of cell strings."""
    row = [""] * TOTAL_COLUMNS

    row[Column.NUMBER] = letter.number or ""
    row[Column.ORG] = letter.org or ""
    row[Column.DATE] = format_sheet_date(letter.letter_date)
    row[Column.DEADLINE_DATE] = format_sheet_date(letter.deadline_date)
    row[Column.STATUS] = status_label(letter.status)
    row[Column.FILES] = "\n".join(file_names)
    row[Column.TYPE] = letter.type or ""
    row[Column.CONTENT] = letter.content or ""
    row[Column.JIRA_LINK] = letter.jira_link or ""
    row[Column.ZORDOC] = letter.zordoc or ""
    row[Column.ANSWER] = letter.answer or ""
    row[Column.SEND_STATUS] = letter.send_status or ""
    row[Column.IJRO_DATE] = format_sheet_date(letter.ijro_date)
    row[Column.COMMENT] = letter.comment or ""
    row[Column.OWNER] = (owner.email or owner.name or "") if owner else ""
    row[Column.CONTACTS] = letter.contacts or ""
    row[Column.CLOSE_DATE] = format_sheet_date(letter.close_date)
    row[Column.ID] = letter.id
    row[Column.UPDATED_AT] = format_sheet_timestamp(letter.updated_at)
    row[Column.DELETED_AT] = format_sheet_timestamp(letter.deleted_at)
    row[Column.CONFLICT] = ""

    return row


def row_range(sheet_name: str, row_num: int) -> str:
    """A1 range covering one full data row, e.g. Letters!A5:U5."""
    return f"{quote_sheet_name(sheet_name)}!{FIRST_COLUMN}{row_num}:{LAST_COLUMN}{row_num}"


def table_range(sheet_name: str) -> str:
    """A1 range of the whole table, used as the append target."""
    return f"{quote_sheet_name(sheet_name)}!{FIRST_COLUMN}:{LAST_COLUMN}"


def id_column_range(sheet_name: str) -> str:
    """Identity column from the first data row down, e.g. Letters!R2:R."""
    return f"{quote_sheet_name(sheet_name)}!{ID_COLUMN}2:{ID_COLUMN}"


def header_range(sheet_name: str) -> str:
    return f"{quote_sheet_name(sheet_name)}!{ID_COLUMN}1:{LAST_COLUMN}1"


def quote_sheet_name(sheet_name: str) -> str:
    """Quote tab names that aren't plain identifiers (spaces, punctuation)."""
    if sheet_name.replace("_", "").isalnum():
        return sheet_name
    return "'" + sheet_name.replace("'", "''") + "'"
