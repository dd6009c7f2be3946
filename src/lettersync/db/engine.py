"""SQLModel engine singleton."""
from sqlmodel import SQLModel, create_engine

from lettersync.config import get_settings

_engine = None


def get_engine():
    """Return the module-level engine, creating it on first call."""
    global _engine
    if _engine is None:
        settings = get_settings()
        connect_args = {}
        if settings.database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False  # shared with the worker thread pool
        _engine = create_engine(settings.database_url, connect_args=connect_args)
        # Import all models so metadata is populated before create_all
        from lettersync.models.letter import Letter, LetterFile, User  # noqa
        from lettersync.models.change_log import LetterChangeLog  # noqa
        from lettersync.models.sync import SyncLease, SyncLog  # noqa
        SQLModel.metadata.create_all(_engine)
        from lettersync.db.migrations import run_migrations
        run_migrations(_engine)
    return _engine
