"""
Setup check for the Google Sheets side of the sync.

Verifies that the service account settings are present, that the
spreadsheet and tab are reachable with them, and writes the identity
header (R1:U1 = ID, UPDATED_AT, DELETED_AT, CONFLICT) when it is missing.

The reconciler finds existing rows through the ID column, so the header
must be in place before the first pass.

Usage:
    python -m lettersync setup
    python -m lettersync.scripts.setup   (direct invocation)

The spreadsheet must be shared with the service account email (editor).
"""
import asyncio
import sys

from lettersync.config import get_settings
from lettersync.sheets.auth import missing_config
from lettersync.sheets.client import SheetsClient
from lettersync.sync.rows import SYNC_HEADER, header_range


async def ensure_header(client: SheetsClient, sheet_name: str) -> bool:
    """
    Write the identity header if any of its cells is missing.

    Returns:
        True if the header was written, False if it was already in place.
    """
    await client.connect()
    current = await client.get_values(header_range(sheet_name))
    cells = current[0] if current else []
    if len(cells) >= len(SYNC_HEADER) and all(cells[: len(SYNC_HEADER)]):
        return False
    await client.update_values(
        header_range(sheet_name), [SYNC_HEADER], value_input_option="USER_ENTERED"
    )
    return True


def run_setup() -> None:
    settings = get_settings()

    print("\n📄 Letter Sync — Google Sheets Setup\n")

    missing = missing_config(settings)
    if missing:
        print("Error: missing settings: " + ", ".join(missing))
        print("Set them in the environment or in .env and re-run.")
        sys.exit(1)

    print(f"Spreadsheet: {settings.google_spreadsheet_id}")
    print(f"Sheet:       {settings.google_sheet_name}")
    print(f"Account:     {settings.google_service_account_email}\n")

    try:
        client = SheetsClient.from_settings(settings)
        written = asyncio.run(ensure_header(client, settings.google_sheet_name))
    except Exception as exc:
        print(f"\n❌ Could not reach the spreadsheet: {exc}")
        print("Check that the sheet exists and is shared with the service account.")
        sys.exit(1)

    if written:
        print("✅ Identity header written to " + header_range(settings.google_sheet_name))
    else:
        print("✅ Identity header already present.")
    print("\nYou can now start the worker:  python -m lettersync\n")


if __name__ == "__main__":
    run_setup()
