"""
Google service-account credentials for the Sheets API.

The service account email and private key come from settings (env / .env).
The key is usually stored in a single-line env var with literal "\\n"
sequences, so those are turned back into real newlines before use.
"""
from google.oauth2 import service_account

from lettersync.config import Settings

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"


class MissingCredentialsError(RuntimeError):
    """Raised when the Google service account is not configured."""


def missing_config(settings: Settings) -> list:
    """Return the names of required Google settings that are empty."""
    required = {
        "GOOGLE_SERVICE_ACCOUNT_EMAIL": settings.google_service_account_email,
        "GOOGLE_PRIVATE_KEY": settings.google_private_key,
        "GOOGLE_SPREADSHEET_ID": settings.google_spreadsheet_id,
    }
    return [name for name, value in required.items() if not value]


def build_credentials(settings: Settings) -> service_account.Credentials:
    """
    Build service-account credentials scoped to Google Sheets.

    Raises:
        MissingCredentialsError: if the email or private key is not set.
    """
    if not settings.google_service_account_email or not settings.google_private_key:
        raise MissingCredentialsError(
            "Google credentials not configured. "
            "Set GOOGLE_SERVICE_ACCOUNT_EMAIL and GOOGLE_PRIVATE_KEY."
        )

    info = {
        "type": "service_account",
        "client_email": settings.google_service_account_email,
        "private_key": settings.google_private_key.replace("\\n", "\n"),
        "token_uri": TOKEN_URI,
    }
    return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
