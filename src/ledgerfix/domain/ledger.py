"""Ledger domain service: posting and deleting whole transactions."""

from dataclasses import replace
from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional, Sequence

import structlog

from ledgerfix.database import collections
from ledgerfix.database import mappers
from ledgerfix.database.base import LedgerStore, WriteOperation
from ledgerfix.domain.balance import DEFAULT_POLICY, DEFAULT_TOLERANCE, BalancePolicy, sum_debits
from ledgerfix.domain.batching import BatchWriter, ProgressCallback, WriteUnit, single_operation_units
from ledgerfix.domain.entities import LedgerEntry
from ledgerfix.domain.errors import (
    NotFoundError,
    ValidationError,
    transaction_not_found,
    unbalanced_posting,
)
from ledgerfix.domain.grouping import group_by_transaction, group_totals
from ledgerfix.domain.recalculate import BalanceRecalculator

logger = structlog.get_logger(__name__)


class LedgerService:
    """Service for posting and deleting ledger transactions."""

    def __init__(
        self,
        db: LedgerStore,
        factory_id: Optional[str] = None,
        policy: BalancePolicy = DEFAULT_POLICY,
        tolerance: Decimal = DEFAULT_TOLERANCE,
        on_progress: Optional[ProgressCallback] = None,
    ):
        """Initialize ledger service.

        Args:
            db: Ledger store
            factory_id: Factory stamped on posted entries that carry none
            policy: Partner sign convention used when re-deriving balances
            tolerance: Largest debit/credit difference accepted as balanced
            on_progress: Batch progress callback
        """
        self.db = db
        self.factory_id = factory_id
        self.policy = policy
        self.tolerance = tolerance
        self.on_progress = on_progress

    def post_transaction(self, entries: Sequence[LedgerEntry], require_balanced: bool = True) -> list[str]:
        """Post ledger entries.

        Entries are written one transaction group per batch unit, so a group
        is never split across batches. Balances of every touched account and
        partner are then re-derived from the ledger.

        Args:
            entries: Entries to post
            require_balanced: Reject any group whose debits and credits differ

        Returns:
            Ids of the created ledger entries

        Raises:
            ValidationError: If the list is empty, an amount is negative, an
                entry has no transaction id or a group does not balance
            PartialBatchFailure: If a batch fails to commit
        """
        if not entries:
            raise ValidationError("Cannot post an empty transaction")

        for entry in entries:
            if not entry.transaction_id:
                raise ValidationError("Ledger entry has no transaction id")
            if entry.debit < 0 or entry.credit < 0:
                raise ValidationError(
                    f"Negative amount on {entry.transaction_id} / {entry.account_id}"
                )

        groups = group_by_transaction(entries)
        if require_balanced:
            for transaction_id, group in groups.items():
                debit, credit = group_totals(group)
                if abs(debit - credit) > self.tolerance:
                    raise ValidationError(unbalanced_posting(transaction_id, debit, credit))

        units = []
        for transaction_id, group in groups.items():
            stamped = [
                replace(entry, factory_id=self.factory_id)
                if entry.factory_id is None and self.factory_id is not None
                else entry
                for entry in group
            ]
            operations = tuple(
                WriteOperation.set(collections.LEDGER, mappers.ledger_entry_to_document(entry)) for entry in stamped
            )
            units.append(WriteUnit(transaction_id, operations))

        written = BatchWriter(self.db, on_progress=self.on_progress).write(units, continue_on_error=False)
        ids = written.ids
        logger.info("transaction_posted", transactions=list(groups), entries=len(entries))

        self._rederive({entry.account_id for entry in entries})
        return ids

    def get_transaction(self, transaction_id: str) -> list[LedgerEntry]:
        """Get the entries of one transaction group.

        Returns:
            Entries in insertion order, empty if the group does not exist
        """
        return [mappers.ledger_entry_to_domain(doc) for doc in self.db.get_transaction(transaction_id)]

    def delete_transaction(self, transaction_id: str, reason: str, actor: str) -> int:
        """Delete a transaction group, archiving it first.

        Args:
            transaction_id: Transaction id of the group
            reason: Why the group is removed (required)
            actor: Who removed it

        Returns:
            Number of entries deleted

        Raises:
            ValidationError: If no reason is given
            NotFoundError: If the group does not exist
            PartialBatchFailure: If a batch fails to commit
        """
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to delete a transaction")

        documents = self.db.get_transaction(transaction_id)
        if not documents:
            raise NotFoundError(transaction_not_found(transaction_id))

        entries = [mappers.ledger_entry_to_domain(doc) for doc in documents]
        archive = {
            "originalTransactionId": transaction_id,
            "deletedAt": datetime.now(UTC).isoformat(),
            "deletedBy": actor,
            "reason": reason.strip(),
            "entries": documents,
            "totalValue": mappers.decimal_to_document(sum_debits(entries)),
        }

        units = [WriteUnit(f"archive:{transaction_id}", (WriteOperation.set(collections.ARCHIVE, archive),))]
        units += single_operation_units(WriteOperation.delete(collections.LEDGER, doc["id"]) for doc in documents)
        BatchWriter(self.db, on_progress=self.on_progress).write(units, continue_on_error=False)

        logger.info("transaction_deleted", transaction_id=transaction_id, entries=len(documents), actor=actor)
        self._rederive({entry.account_id for entry in entries})
        return len(documents)

    def _rederive(self, owner_ids: set[str]) -> None:
        result = BalanceRecalculator(self.db, self.policy).recalculate_owners(owner_ids)
        for error in result.errors:
            logger.warning("balance_rederivation_failed", entity_id=error.entity_id, error=error.message)
