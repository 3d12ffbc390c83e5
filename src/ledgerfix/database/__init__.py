"""Store layer for ledgerfix."""

from ledgerfix.database.base import LedgerStore, WriteOperation
from ledgerfix.database.factories import create_sqlite_store

__all__ = ["LedgerStore", "WriteOperation", "create_sqlite_store"]
