"""Best-effort detection of transactions that were posted more than once."""

from collections import Counter
from typing import Iterable

from ledgerfix.domain.balance import sum_debits
from ledgerfix.domain.entities import LedgerEntry
from ledgerfix.domain.grouping import group_by_transaction
from ledgerfix.domain.issues import DuplicatePostingSuspect

DEFAULT_ENTRY_THRESHOLD = 12
DEFAULT_LEGS_PER_POSTING = 6


def _leg_signature(entry: LedgerEntry) -> tuple:
    return (entry.account_id, entry.debit, entry.credit, entry.narration)


def count_repeated_legs(group: Iterable[LedgerEntry]) -> int:
    """Number of legs that exactly repeat an earlier leg of the same group."""
    counts = Counter(_leg_signature(entry) for entry in group)
    return sum(count - 1 for count in counts.values() if count > 1)


def detect_duplicate_postings(
    entries: Iterable[LedgerEntry],
    threshold: int = DEFAULT_ENTRY_THRESHOLD,
    legs_per_posting: int = DEFAULT_LEGS_PER_POSTING,
) -> list[DuplicatePostingSuspect]:
    """Flag transaction groups with more legs than one posting normally has.

    The duplicate count is an estimate (``legs // legs_per_posting - 1``), not
    a reconstruction of which legs belong to which posting. The exact number
    of verbatim repeated legs is reported next to it.
    """
    suspects = []
    for transaction_id, group in group_by_transaction(entries).items():
        if len(group) <= threshold:
            continue
        estimated = max(len(group) // legs_per_posting - 1, 0)
        repeated = count_repeated_legs(group)
        suspects.append(
            DuplicatePostingSuspect(
                entity_id=transaction_id,
                date=group[0].date,
                expected_value=sum_debits(group),
                reason=(
                    f"{len(group)} entries; about {estimated} extra posting(s) (estimate), "
                    f"{repeated} repeated leg(s)"
                ),
                transaction_id=transaction_id,
                entry_count=len(group),
                estimated_duplicates=estimated,
                exact_duplicate_legs=repeated,
            )
        )
    return suspects
