from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./lettersync.db"

    # Google service account + target sheet
    google_service_account_email: str = ""
    google_private_key: str = ""
    google_spreadsheet_id: str = ""
    google_sheet_name: str = "Letters"

    sync_interval_seconds: int = 30
    sync_batch_size: int = 50
    sync_autostart: bool = False  # start the interval worker with the API process

    telegram_bot_token: str = ""
    telegram_allowed_user_id: Optional[int] = None

    debug: bool = False  # surfaces swallowed change-log write errors in the log

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
