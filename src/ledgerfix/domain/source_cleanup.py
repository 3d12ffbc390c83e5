"""Cleanup of postings whose source document no longer exists.

Purchases, sales invoices, original openings and productions post under ids
derived from the document (``PI-<batch>``, ``INV-<invoiceNo>``, ``OO-<id>``,
``PROD-<id>``). When the document is deleted without its postings, those legs
keep moving balances for something that no longer exists.
"""

from typing import Iterable, Optional

import structlog

from ledgerfix.database import collections
from ledgerfix.database.base import LedgerStore, WriteOperation
from ledgerfix.domain.balance import DEFAULT_POLICY, BalancePolicy, sum_debits
from ledgerfix.domain.batching import BatchWriter, ProgressCallback, WriteUnit
from ledgerfix.domain.conventions import (
    ORIGINAL_OPENING_PREFIX,
    PRODUCTION_PREFIX,
    SOURCE_DOCUMENT_PREFIXES,
    original_opening_id,
    production_id,
    purchase_invoice_id,
    sales_invoice_id,
)
from ledgerfix.domain.entities import LedgerEntry
from ledgerfix.domain.grouping import group_by_transaction
from ledgerfix.domain.issues import CleanupResult, FixError, OrphanedSourcePosting, WrongLegCount
from ledgerfix.domain.recalculate import BalanceRecalculator
from ledgerfix.domain.snapshot import LedgerSnapshot, load_snapshot

logger = structlog.get_logger(__name__)

ORIGINAL_OPENING_LEGS = 2
MAX_PRODUCTION_LEGS = 4
MAX_SOURCE_LEGS = 3


def is_source_posting(transaction_id: str) -> bool:
    return transaction_id.startswith(SOURCE_DOCUMENT_PREFIXES)


def valid_source_ids(snapshot: LedgerSnapshot) -> set[str]:
    """Transaction ids that still have a source document behind them."""
    ids = {purchase_invoice_id(purchase.batch_number, purchase.id) for purchase in snapshot.purchases}
    ids.update(sales_invoice_id(invoice.invoice_no) for invoice in snapshot.sales_invoices)
    ids.update(original_opening_id(opening.id) for opening in snapshot.original_openings)
    ids.update(production_id(production.id) for production in snapshot.productions)
    return ids


def find_orphaned_source_postings(
    entries: Iterable[LedgerEntry],
    valid_ids: set[str],
) -> list[OrphanedSourcePosting]:
    """Source-document postings whose transaction id matches no existing document."""
    issues = []
    for transaction_id, group in group_by_transaction(entries).items():
        if not is_source_posting(transaction_id) or transaction_id in valid_ids:
            continue
        issues.append(
            OrphanedSourcePosting(
                entity_id=transaction_id,
                date=group[0].date,
                expected_value=sum_debits(group),
                reason=f"No source document for {transaction_id} ({len(group)} entries)",
                transaction_id=transaction_id,
                entry_ids=tuple(entry.id for entry in group if entry.id),
                account_ids=tuple(dict.fromkeys(entry.account_id for entry in group)),
            )
        )
    return issues


def _allowed_legs(transaction_id: str) -> tuple[str, int, int]:
    """Return ``(description, minimum, maximum)`` leg counts for a source posting."""
    if transaction_id.startswith(ORIGINAL_OPENING_PREFIX):
        return f"exactly {ORIGINAL_OPENING_LEGS}", ORIGINAL_OPENING_LEGS, ORIGINAL_OPENING_LEGS
    if transaction_id.startswith(PRODUCTION_PREFIX):
        return f"at most {MAX_PRODUCTION_LEGS}", 0, MAX_PRODUCTION_LEGS
    return f"at most {MAX_SOURCE_LEGS}", 0, MAX_SOURCE_LEGS


def find_wrong_leg_counts(entries: Iterable[LedgerEntry]) -> list[WrongLegCount]:
    """Source-document postings with an unexpected number of legs.

    Original openings carry exactly two legs, productions at most four and
    every other source posting at most three. Extra legs usually mean the
    document was posted twice.
    """
    issues = []
    for transaction_id, group in group_by_transaction(entries).items():
        if not is_source_posting(transaction_id):
            continue
        allowed, minimum, maximum = _allowed_legs(transaction_id)
        if minimum <= len(group) <= maximum:
            continue
        issues.append(
            WrongLegCount(
                entity_id=transaction_id,
                date=group[0].date,
                expected_value=sum_debits(group),
                reason=f"{len(group)} entries, expected {allowed}",
                transaction_id=transaction_id,
                entry_count=len(group),
                allowed=allowed,
            )
        )
    return issues


class SourceCleanupService:
    """Deletes postings whose source document no longer exists."""

    def __init__(
        self,
        db: LedgerStore,
        factory_id: Optional[str] = None,
        policy: BalancePolicy = DEFAULT_POLICY,
        max_batch_operations: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        """Initialize source cleanup service.

        Args:
            db: Ledger store
            factory_id: Only clean postings of this factory. Source documents
                are looked up across every factory.
            policy: Partner sign convention used when re-deriving balances
            max_batch_operations: Optional lower batch ceiling
            on_progress: Batch progress callback
        """
        self.db = db
        self.factory_id = factory_id
        self.policy = policy
        self.max_batch_operations = max_batch_operations
        self.on_progress = on_progress

    def _entries(self, snapshot: LedgerSnapshot) -> list[LedgerEntry]:
        if self.factory_id is None:
            return list(snapshot.entries)
        return [entry for entry in snapshot.entries if entry.factory_id == self.factory_id]

    def scan(self) -> tuple[list[OrphanedSourcePosting], list[WrongLegCount]]:
        """Return orphaned source postings and postings with a wrong leg count."""
        snapshot = load_snapshot(self.db)
        entries = self._entries(snapshot)
        return find_orphaned_source_postings(entries, valid_source_ids(snapshot)), find_wrong_leg_counts(entries)

    def cleanup(self, dry_run: bool = False) -> CleanupResult:
        """Delete every orphaned source posting.

        Each posting is re-read from the store before it is deleted, and its
        legs are deleted in one batch. Postings with a wrong leg count are
        reported only.

        Args:
            dry_run: Report what would be deleted without writing

        Returns:
            CleanupResult with the deleted transactions and any batch errors
        """
        orphaned, wrong_leg_counts = self.scan()

        units: list[WriteUnit] = []
        owners: dict[str, tuple[str, ...]] = {}
        skipped = 0
        for issue in orphaned:
            documents = [
                doc
                for doc in self.db.get_transaction(issue.transaction_id)
                if self.factory_id is None or doc.get("factoryId") == self.factory_id
            ]
            if not documents:
                skipped += 1
                continue
            owners[issue.transaction_id] = tuple(dict.fromkeys(str(doc.get("accountId")) for doc in documents))
            units.append(
                WriteUnit(
                    issue.transaction_id,
                    tuple(WriteOperation.delete(collections.LEDGER, doc["id"]) for doc in documents),
                )
            )

        if dry_run:
            return CleanupResult(
                deleted_count=sum(unit.size for unit in units),
                transactions=tuple(unit.entity_id for unit in units),
                skipped_count=skipped,
                wrong_leg_counts=tuple(wrong_leg_counts),
                dry_run=True,
            )

        writer = BatchWriter(self.db, on_progress=self.on_progress, max_operations=self.max_batch_operations)
        written = writer.write(units)
        errors: list[FixError] = list(written.errors)

        touched = {owner for unit in written.written for owner in owners[unit.entity_id]}
        if touched:
            recalculated = BalanceRecalculator(
                self.db, self.policy, max_batch_operations=self.max_batch_operations
            ).recalculate_owners(touched)
            errors.extend(recalculated.errors)

        result = CleanupResult(
            deleted_count=written.operation_count,
            transactions=tuple(unit.entity_id for unit in written.written),
            skipped_count=skipped,
            wrong_leg_counts=tuple(wrong_leg_counts),
            errors=tuple(errors),
        )
        logger.info(
            "source_cleanup_finished",
            factory_id=self.factory_id,
            deleted=result.deleted_count,
            transactions=len(result.transactions),
            wrong_leg_counts=len(wrong_leg_counts),
            errors=len(errors),
        )
        return result
