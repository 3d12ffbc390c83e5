"""Grouping of ledger entries into transactions."""

from decimal import Decimal
from typing import Iterable

from ledgerfix.domain.balance import sum_credits, sum_debits
from ledgerfix.domain.entities import LedgerEntry


def transaction_key(entry: LedgerEntry) -> str:
    """Return the grouping key for an entry.

    Entries stored without a transaction id are treated as a group of their
    own, keyed by the entry id.
    """
    return entry.transaction_id or entry.id or ""


def group_by_transaction(entries: Iterable[LedgerEntry]) -> dict[str, list[LedgerEntry]]:
    """Group ledger entries by transaction id.

    Groups appear in the order their first entry appears in the input, and
    entries keep their input order within a group.
    """
    groups: dict[str, list[LedgerEntry]] = {}
    for entry in entries:
        groups.setdefault(transaction_key(entry), []).append(entry)
    return groups


def group_totals(entries: Iterable[LedgerEntry]) -> tuple[Decimal, Decimal]:
    """Return ``(total_debit, total_credit)`` for a group."""
    entries = list(entries)
    return sum_debits(entries), sum_credits(entries)


def group_imbalance(entries: Iterable[LedgerEntry]) -> Decimal:
    """Return signed debit minus credit for a group."""
    debit, credit = group_totals(entries)
    return debit - credit


def is_one_sided(entries: Iterable[LedgerEntry]) -> bool:
    """True if a non-empty group has legs on only one side."""
    debit, credit = group_totals(entries)
    return (debit > 0) != (credit > 0)
