"""Store factory functions for creating store instances."""

from pathlib import Path
from typing import Optional

from ledgerfix.config import get_settings
from ledgerfix.database.sqlalchemy_store import SQLAlchemyLedgerStore


def create_sqlite_store(
    database_path: Optional[str] = None,
    max_batch_operations: Optional[int] = None,
) -> SQLAlchemyLedgerStore:
    """Create a SQLite-backed ledger store.

    Args:
        database_path: Path to SQLite database file. If None, uses the
            LEDGERFIX_DB_PATH setting, then defaults to ~/.ledgerfix/ledgerfix.db
        max_batch_operations: Batch ceiling. If None, uses the
            LEDGERFIX_BATCH_SIZE setting

    Returns:
        SQLAlchemyLedgerStore instance configured for SQLite
    """
    settings = get_settings()
    if database_path is None:
        database_path = settings.db_path

    if database_path is None:
        home = Path.home()
        db_dir = home / ".ledgerfix"
        db_dir.mkdir(exist_ok=True)
        database_path = str(db_dir / "ledgerfix.db")

    if max_batch_operations is None:
        max_batch_operations = settings.batch_size

    database_url = f"sqlite:///{database_path}"
    return SQLAlchemyLedgerStore(database_url, max_batch_operations=max_batch_operations)
