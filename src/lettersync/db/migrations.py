"""
Database migrations for lettersync.

Uses SQLite ALTER TABLE ADD COLUMN for incremental schema evolution.
Each migration is idempotent: columns are only added if absent.

Called automatically from get_engine() after create_all() so both
fresh installs and databases created before spreadsheet sync existed
are handled without manual steps.
"""
from sqlalchemy import text


def run_migrations(engine) -> None:
    """Apply all pending schema migrations.

    Safe to call multiple times: column existence is checked before altering.
    Only SQLite is migrated here (uses PRAGMA table_info); other backends
    are expected to be created fresh by create_all().

    Args:
        engine: SQLAlchemy engine (SQLModel create_engine result).
    """
    if engine.dialect.name != "sqlite":
        return

    with engine.connect() as conn:
        # Letter: soft delete and spreadsheet bookkeeping
        _add_column_if_missing(conn, "letter", "deleted_at", "DATETIME")
        _add_column_if_missing(conn, "letter", "sheet_row_num", "INTEGER")
        _add_column_if_missing(conn, "letter", "last_synced_at", "DATETIME")

        # SyncLog: pass trigger source
        _add_column_if_missing(conn, "synclog", "trigger", "VARCHAR DEFAULT 'manual'")

        conn.commit()


def _add_column_if_missing(conn, table: str, column: str, col_type: str) -> None:
    """Add a column to a table if it doesn't already exist.

    Args:
        conn: SQLAlchemy connection.
        table: Table name (lowercase, as SQLite stores it).
        column: Column name to add.
        col_type: SQLite type string, e.g. "INTEGER", "DATETIME", "TEXT".
    """
    result = conn.execute(text(f"PRAGMA table_info({table})"))
    existing_columns = {row[1] for row in result}
    if column not in existing_columns:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}"))
