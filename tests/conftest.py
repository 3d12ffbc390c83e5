"""Shared pytest fixtures for ledgerfix tests."""

import os
import tempfile
from datetime import date
from decimal import Decimal

import pytest

from ledgerfix.config import get_settings
from ledgerfix.database import collections
from ledgerfix.database.factories import create_sqlite_store
from ledgerfix.database.mappers import ledger_entry_to_document
from ledgerfix.domain.alignment import BalanceAlignmentService
from ledgerfix.domain.corrective import CorrectivePoster
from ledgerfix.domain.entities import LedgerEntry, TransactionType
from ledgerfix.domain.ledger import LedgerService
from ledgerfix.domain.recalculate import BalanceRecalculator
from ledgerfix.domain.renumber import RenumberService

# Chart of accounts every role resolves against by name.
CHART_OF_ACCOUNTS = [
    {"id": "1100", "code": "1100", "name": "Cash", "type": "ASSET", "balance": 0},
    {"id": "1200", "code": "1200", "name": "Inventory - Raw Materials", "type": "ASSET", "balance": 0},
    {"id": "1210", "code": "1210", "name": "Work in Progress (Inventory)", "type": "ASSET", "balance": 0},
    {"id": "1220", "code": "1220", "name": "Inventory - Finished Goods", "type": "ASSET", "balance": 0},
    {"id": "2100", "code": "2100", "name": "Accounts Payable", "type": "LIABILITY", "balance": 0},
    {"id": "3000", "code": "3000", "name": "Capital", "type": "EQUITY", "balance": 0},
    {"id": "3100", "code": "3100", "name": "Opening Equity", "type": "EQUITY", "balance": 0},
    {"id": "3200", "code": "3200", "name": "Balance Adjustment", "type": "EQUITY", "balance": 0},
    {"id": "4000", "code": "4000", "name": "Sales Revenue", "type": "REVENUE", "balance": 0},
    {"id": "4100", "code": "4100", "name": "Production Gain", "type": "REVENUE", "balance": 0},
    {"id": "5000", "code": "5000", "name": "Cost of Goods Sold", "type": "EXPENSE", "balance": 0},
]


def _build_entry(
    transaction_id: str,
    account_id: str,
    debit="0",
    credit="0",
    account_name: str = "",
    transaction_type: TransactionType = TransactionType.JOURNAL_VOUCHER,
    on: date = date(2024, 1, 15),
    **kwargs,
) -> LedgerEntry:
    """Build a ledger entry with test defaults."""
    return LedgerEntry(
        id=kwargs.pop("id", None),
        transaction_id=transaction_id,
        date=on,
        transaction_type=transaction_type,
        account_id=account_id,
        account_name=account_name or account_id,
        debit=Decimal(str(debit)),
        credit=Decimal(str(credit)),
        **kwargs,
    )


def _insert_entries(store, entries) -> list[str]:
    """Write entries straight to the ledger, bypassing balance checks and re-derivation."""
    return store.append_batch(collections.LEDGER, [ledger_entry_to_document(e) for e in entries])


@pytest.fixture
def temp_db():
    """Create a temporary store for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_store(database_path=db_path, max_batch_operations=500)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def chart(temp_db):
    """Seed the standard chart of accounts."""
    temp_db.append_batch(collections.ACCOUNTS, [dict(doc) for doc in CHART_OF_ACCOUNTS])
    return temp_db


@pytest.fixture
def chart_of_accounts():
    """Account documents of the standard chart."""
    return [dict(doc) for doc in CHART_OF_ACCOUNTS]


@pytest.fixture
def make_entry():
    """Return the ledger entry builder."""
    return _build_entry


@pytest.fixture
def insert_entries():
    """Return a writer that puts entries straight into the ledger."""
    return _insert_entries


@pytest.fixture
def ledger_service(temp_db):
    """Create a LedgerService with a temporary store."""
    return LedgerService(temp_db)


@pytest.fixture
def corrective_poster(temp_db):
    """Create a CorrectivePoster with a fixed reference date."""
    return CorrectivePoster(temp_db, today=date(2025, 6, 30))


@pytest.fixture
def recalculator(temp_db):
    return BalanceRecalculator(temp_db)


@pytest.fixture
def alignment_service(temp_db):
    return BalanceAlignmentService(temp_db)


@pytest.fixture
def renumber_service(temp_db):
    return RenumberService(temp_db)


@pytest.fixture
def settings_env(monkeypatch):
    """Set LEDGERFIX_* variables for one test and reload cached settings."""

    def apply(**values):
        for key, value in values.items():
            monkeypatch.setenv(f"LEDGERFIX_{key.upper()}", value)
        get_settings.cache_clear()

    get_settings.cache_clear()
    yield apply
    get_settings.cache_clear()


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
