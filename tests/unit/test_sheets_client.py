"""Tests for the SheetsClient async wrapper and Google credentials helpers.

The discovery service is replaced by a MagicMock; these tests check that
we call the Sheets v4 resource methods with the right arguments.
"""
from unittest.mock import MagicMock, patch

import pytest

from lettersync.config import Settings
from lettersync.sheets.auth import (
    SCOPES,
    MissingCredentialsError,
    build_credentials,
    missing_config,
)
from lettersync.sheets.client import SheetsClient, column_letter, parse_start_row


# ─── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture(name="service")
def service_fixture():
    return MagicMock()


@pytest.fixture(name="client")
def client_fixture(service):
    return SheetsClient("sheet-123", service=service)


def _values(service):
    return service.spreadsheets.return_value.values.return_value


# ─── Pure helpers ─────────────────────────────────────────────────────────────

class TestColumnLetter:
    def test_single_letters(self):
        assert column_letter(0) == "A"
        assert column_letter(17) == "R"
        assert column_letter(20) == "U"
        assert column_letter(25) == "Z"

    def test_double_letters(self):
        assert column_letter(26) == "AA"
        assert column_letter(27) == "AB"
        assert column_letter(701) == "ZZ"


class TestParseStartRow:
    def test_plain_sheet_name(self):
        assert parse_start_row("Letters!A12:U14") == 12

    def test_quoted_sheet_name(self):
        assert parse_start_row("'Incoming letters'!A7:U7") == 7

    def test_missing_or_malformed(self):
        assert parse_start_row(None) is None
        assert parse_start_row("") is None
        assert parse_start_row("Letters") is None


# ─── Data methods ─────────────────────────────────────────────────────────────

class TestSheetsClient:
    @pytest.mark.asyncio
    async def test_connect_skipped_with_service(self, client, service):
        with patch("lettersync.sheets.client.build") as mock_build:
            await client.connect()
        mock_build.assert_not_called()

    @pytest.mark.asyncio
    async def test_connect_builds_sheets_v4(self):
        creds = MagicMock()
        client = SheetsClient("sheet-123", credentials=creds)
        with patch("lettersync.sheets.client.build") as mock_build:
            await client.connect()
        mock_build.assert_called_once_with(
            "sheets", "v4", credentials=creds, cache_discovery=False
        )

    @pytest.mark.asyncio
    async def test_get_values(self, client, service):
        _values(service).get.return_value.execute.return_value = {"values": [["L1"], ["L2"]]}
        values = await client.get_values("Letters!R2:R")
        assert values == [["L1"], ["L2"]]
        _values(service).get.assert_called_once_with(spreadsheetId="sheet-123", range="Letters!R2:R")

    @pytest.mark.asyncio
    async def test_get_values_empty_range(self, client, service):
        _values(service).get.return_value.execute.return_value = {}
        assert await client.get_values("Letters!R2:R") == []

    @pytest.mark.asyncio
    async def test_update_values(self, client, service):
        await client.update_values("Letters!R1:U1", [["ID"]], value_input_option="USER_ENTERED")
        _values(service).update.assert_called_once_with(
            spreadsheetId="sheet-123",
            range="Letters!R1:U1",
            valueInputOption="USER_ENTERED",
            body={"values": [["ID"]]},
        )

    @pytest.mark.asyncio
    async def test_batch_update_values(self, client, service):
        data = [{"range": "Letters!A5:U5", "values": [["x"]]}]
        await client.batch_update_values(data)
        _values(service).batchUpdate.assert_called_once_with(
            spreadsheetId="sheet-123",
            body={"valueInputOption": "RAW", "data": data},
        )

    @pytest.mark.asyncio
    async def test_append_rows_returns_updated_range(self, client, service):
        _values(service).append.return_value.execute.return_value = {
            "updates": {"updatedRange": "Letters!A12:U13"}
        }
        updated = await client.append_rows("Letters!A:U", [["a"], ["b"]])
        assert updated == "Letters!A12:U13"
        kwargs = _values(service).append.call_args.kwargs
        assert kwargs["valueInputOption"] == "RAW"
        assert kwargs["insertDataOption"] == "INSERT_ROWS"
        assert kwargs["body"] == {"values": [["a"], ["b"]]}

    @pytest.mark.asyncio
    async def test_append_rows_without_updates(self, client, service):
        _values(service).append.return_value.execute.return_value = {}
        assert await client.append_rows("Letters!A:U", [["a"]]) is None

    @pytest.mark.asyncio
    async def test_get_sheet_id(self, client, service):
        service.spreadsheets.return_value.get.return_value.execute.return_value = {
            "sheets": [
                {"properties": {"title": "Archive", "sheetId": 7}},
                {"properties": {"title": "Letters", "sheetId": 42}},
            ]
        }
        assert await client.get_sheet_id("Letters") == 42
        assert await client.get_sheet_id("Missing") is None

    @pytest.mark.asyncio
    async def test_copy_template_formatting(self, client, service):
        await client.copy_template_formatting(sheet_id=42, start_row=12, row_count=2, column_count=21)
        body = service.spreadsheets.return_value.batchUpdate.call_args.kwargs["body"]
        paste_types = [r["copyPaste"]["pasteType"] for r in body["requests"]]
        assert paste_types == ["PASTE_FORMAT", "PASTE_DATA_VALIDATION"]
        first = body["requests"][0]["copyPaste"]
        assert first["source"]["startRowIndex"] == 1
        assert first["source"]["endRowIndex"] == 2
        assert first["destination"]["startRowIndex"] == 11
        assert first["destination"]["endRowIndex"] == 13
        assert first["destination"]["endColumnIndex"] == 21


# ─── Credentials ──────────────────────────────────────────────────────────────

class TestCredentials:
    def test_missing_config_lists_env_names(self):
        settings = Settings(_env_file=None, google_spreadsheet_id="sheet-123")
        assert missing_config(settings) == [
            "GOOGLE_SERVICE_ACCOUNT_EMAIL",
            "GOOGLE_PRIVATE_KEY",
        ]

    def test_missing_config_complete(self, sheets_settings):
        assert missing_config(sheets_settings) == []

    def test_build_credentials_requires_key(self):
        settings = Settings(_env_file=None, google_service_account_email="a@b.c")
        with pytest.raises(MissingCredentialsError):
            build_credentials(settings)

    def test_build_credentials_unescapes_newlines(self, sheets_settings):
        with patch(
            "lettersync.sheets.auth.service_account.Credentials.from_service_account_info"
        ) as mock_from_info:
            build_credentials(sheets_settings)

        info = mock_from_info.call_args.args[0]
        assert info["client_email"] == "sync@project.iam.gserviceaccount.com"
        assert "\\n" not in info["private_key"]
        assert "\n" in info["private_key"]
        assert mock_from_info.call_args.kwargs["scopes"] == SCOPES
