"""Full re-derivation of stored account and partner balances."""

from decimal import Decimal
from typing import Iterable, Optional

import structlog

from ledgerfix.database import collections
from ledgerfix.database import mappers
from ledgerfix.database.base import LedgerStore, WriteOperation
from ledgerfix.domain.balance import DEFAULT_POLICY, BalancePolicy, derive_balance, index_by_owner
from ledgerfix.domain.batching import BatchWriter, ProgressCallback, WriteUnit
from ledgerfix.domain.entities import Account, LedgerEntry, Partner
from ledgerfix.domain.issues import FixError, RecalculationResult

logger = structlog.get_logger(__name__)


class BalanceRecalculator:
    """Overwrites stored balances with values derived from the whole ledger.

    Balances are never incremented. Every write replaces the stored value
    with a derivation over all entries of that owner.
    """

    def __init__(
        self,
        db: LedgerStore,
        policy: BalancePolicy = DEFAULT_POLICY,
        on_progress: Optional[ProgressCallback] = None,
        max_batch_operations: Optional[int] = None,
    ):
        """Initialize balance recalculator.

        Args:
            db: Ledger store
            policy: Partner sign convention
            on_progress: Batch progress callback
            max_batch_operations: Optional lower batch ceiling
        """
        self.db = db
        self.policy = policy
        self.on_progress = on_progress
        self.max_batch_operations = max_batch_operations

    def recalculate_all(self) -> RecalculationResult:
        """Re-derive every account and partner balance."""
        return self._recalculate(owner_ids=None)

    def recalculate_owners(self, owner_ids: Iterable[str]) -> RecalculationResult:
        """Re-derive the balances of the given accounts and partners only."""
        return self._recalculate(owner_ids=set(owner_ids))

    def _load_ledger(self, errors: list[FixError]) -> tuple[list[LedgerEntry], set[str]]:
        """Map every ledger document, noting owners whose history could not be read."""
        entries: list[LedgerEntry] = []
        unreadable: set[str] = set()
        for doc in self.db.get_all(collections.LEDGER):
            try:
                entries.append(mappers.ledger_entry_to_domain(doc))
            except (KeyError, ValueError, TypeError) as e:
                owner_id = doc.get("accountId")
                logger.warning("ledger_document_unreadable", doc_id=doc.get("id"), account_id=owner_id, error=str(e))
                if owner_id is not None:
                    unreadable.add(str(owner_id))
                errors.append(FixError(str(doc.get("id")), f"Unreadable ledger entry: {e}"))
        return entries, unreadable

    def _load_owners(self, errors: list[FixError]) -> list[tuple[str, Account | Partner]]:
        owners: list[tuple[str, Account | Partner]] = []
        for collection, mapper in (
            (collections.ACCOUNTS, mappers.account_to_domain),
            (collections.PARTNERS, mappers.partner_to_domain),
        ):
            for doc in self.db.get_all(collection):
                try:
                    owners.append((collection, mapper(doc)))
                except (KeyError, ValueError, TypeError) as e:
                    errors.append(FixError(str(doc.get("id")), f"Unreadable {collection} document: {e}"))
        return owners

    def _recalculate(self, owner_ids: Optional[set[str]]) -> RecalculationResult:
        errors: list[FixError] = []
        entries, unreadable = self._load_ledger(errors)
        by_owner = index_by_owner(entries)

        units: list[WriteUnit] = []
        unchanged = 0
        for collection, owner in self._load_owners(errors):
            if owner_ids is not None and owner.id not in owner_ids:
                continue
            if owner.id in unreadable:
                errors.append(FixError(owner.id, "Balance not recalculated: ledger history unreadable"))
                continue
            derived: Decimal = derive_balance(by_owner.get(owner.id, []), owner.type, self.policy)
            if derived == owner.balance:
                unchanged += 1
                continue
            logger.debug("balance_changed", owner_id=owner.id, stored=str(owner.balance), derived=str(derived))
            units.append(
                WriteUnit(
                    owner.id,
                    (WriteOperation.update(collection, owner.id, {"balance": mappers.decimal_to_document(derived)}),),
                )
            )

        writer = BatchWriter(self.db, on_progress=self.on_progress, max_operations=self.max_batch_operations)
        written = writer.write(units)
        errors.extend(written.errors)

        logger.info("balances_recalculated", updated=len(written.written), unchanged=unchanged, errors=len(errors))
        return RecalculationResult(updated=len(written.written), unchanged=unchanged, errors=tuple(errors))
