"""
Async wrapper around the Google Sheets v4 API.

googleapiclient is synchronous; we run each request in a thread pool
executor so it doesn't block the asyncio event loop.

Only the capabilities the reconciler needs are exposed: reading a range,
writing ranges (single and batched), appending rows, looking up a tab's
numeric id, and copying the template row's formatting onto new rows.
"""
import asyncio
import re
from typing import Any, Dict, List, Optional

from googleapiclient.discovery import build

from lettersync.config import Settings
from lettersync.sheets.auth import build_credentials

# Row 2 holds the formatting / validation template for data rows
TEMPLATE_ROW_INDEX = 1

_START_ROW_RE = re.compile(r"![A-Z]+(\d+)")


def column_letter(index: int) -> str:
    """0-based column index → A1 column letters (0 → A, 25 → Z, 26 → AA)."""
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def parse_start_row(updated_range: Optional[str]) -> Optional[int]:
    """First row number of an A1 range such as "'Letters'!A12:U14" (→ 12)."""
    if not updated_range:
        return None
    match = _START_ROW_RE.search(updated_range)
    return int(match.group(1)) if match else None


class SheetsClient:
    """
    Thin async wrapper over the Sheets v4 discovery client for one spreadsheet.

    Call connect() before any data methods, or pass a ready ``service``
    (tests pass a MagicMock).
    """

    def __init__(self, spreadsheet_id: str, credentials=None, service=None):
        self.spreadsheet_id = spreadsheet_id
        self._credentials = credentials
        self._service = service

    @classmethod
    def from_settings(cls, settings: Settings) -> "SheetsClient":
        """
        Raises:
            MissingCredentialsError: if the service account is not configured.
        """
        return cls(settings.google_spreadsheet_id, credentials=build_credentials(settings))

    async def connect(self) -> None:
        if self._service is not None:
            return
        loop = asyncio.get_event_loop()
        self._service = await loop.run_in_executor(None, self._build_service)

    def _build_service(self):
        return build("sheets", "v4", credentials=self._credentials, cache_discovery=False)

    async def _run(self, request) -> Dict[str, Any]:
        """Execute a googleapiclient request in the thread pool."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, request.execute)

    def _values(self):
        return self._service.spreadsheets().values()

    async def get_values(self, range_: str) -> List[List[str]]:
        """Read a range. Trailing empty rows/cells are omitted by the API."""
        result = await self._run(
            self._values().get(spreadsheetId=self.spreadsheet_id, range=range_)
        )
        return result.get("values", [])

    async def update_values(
        self, range_: str, values: List[List[Any]], value_input_option: str = "RAW"
    ) -> Dict[str, Any]:
        return await self._run(
            self._values().update(
                spreadsheetId=self.spreadsheet_id,
                range=range_,
                valueInputOption=value_input_option,
                body={"values": values},
            )
        )

    async def batch_update_values(
        self, data: List[Dict[str, Any]], value_input_option: str = "RAW"
    ) -> Dict[str, Any]:
        """Write several ranges in one request. ``data`` items: {"range", "values"}."""
        return await self._run(
            self._values().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"valueInputOption": value_input_option, "data": data},
            )
        )

    async def append_rows(self, range_: str, rows: List[List[Any]]) -> Optional[str]:
        """
        Append rows after the last row of the table in ``range_``.

        Returns:
            The A1 range the rows landed in (e.g. "Letters!A12:U14"), or None
            if the API response didn't include one.
        """
        result = await self._run(
            self._values().append(
                spreadsheetId=self.spreadsheet_id,
                range=range_,
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body={"values": rows},
            )
        )
        return (result.get("updates") or {}).get("updatedRange")

    async def get_sheet_id(self, sheet_name: str) -> Optional[int]:
        """Numeric sheetId of the tab titled ``sheet_name``, or None."""
        meta = await self._run(
            self._service.spreadsheets().get(
                spreadsheetId=self.spreadsheet_id, fields="sheets.properties"
            )
        )
        for sheet in meta.get("sheets", []):
            props = sheet.get("properties", {})
            if props.get("title") == sheet_name:
                return props.get("sheetId")
        return None

    async def copy_template_formatting(
        self, sheet_id: int, start_row: int, row_count: int, column_count: int
    ) -> None:
        """Paste the template row's format and data validation onto new rows.

        Args:
            sheet_id: Numeric tab id (see get_sheet_id).
            start_row: 1-based number of the first new row.
            row_count: Number of new rows.
            column_count: Width of the data block.
        """
        source = {
            "sheetId": sheet_id,
            "startRowIndex": TEMPLATE_ROW_INDEX,
            "endRowIndex": TEMPLATE_ROW_INDEX + 1,
            "startColumnIndex": 0,
            "endColumnIndex": column_count,
        }
        destination = {
            "sheetId": sheet_id,
            "startRowIndex": start_row - 1,
            "endRowIndex": start_row - 1 + row_count,
            "startColumnIndex": 0,
            "endColumnIndex": column_count,
        }
        requests = [
            {
                "copyPaste": {
                    "source": source,
                    "destination": destination,
                    "pasteType": paste_type,
                    "pasteOrientation": "NORMAL",
                }
            }
            for paste_type in ("PASTE_FORMAT", "PASTE_DATA_VALIDATION")
        ]
        await self._run(
            self._service.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id, body={"requests": requests}
            )
        )
