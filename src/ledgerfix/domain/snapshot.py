"""Immutable in-memory view of the store used by the detectors."""

from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

import structlog

from ledgerfix.database import collections
from ledgerfix.database import mappers
from ledgerfix.database.base import Document, LedgerStore
from ledgerfix.domain.entities import (
    Account,
    Item,
    LedgerEntry,
    OriginalOpening,
    Partner,
    Production,
    Purchase,
    SalesInvoice,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class LedgerSnapshot:
    """Everything the detectors read, loaded once and passed by value."""

    entries: tuple[LedgerEntry, ...] = ()
    accounts: tuple[Account, ...] = ()
    partners: tuple[Partner, ...] = ()
    items: tuple[Item, ...] = ()
    productions: tuple[Production, ...] = ()
    original_openings: tuple[OriginalOpening, ...] = ()
    purchases: tuple[Purchase, ...] = ()
    sales_invoices: tuple[SalesInvoice, ...] = ()
    factory_id: Optional[str] = None
    skipped: tuple[str, ...] = field(default=())
    # Whole ledger, ignoring the factory filter. Balances are ledger-wide.
    all_entries: tuple[LedgerEntry, ...] = ()

    @property
    def balance_entries(self) -> tuple[LedgerEntry, ...]:
        """Entries that stored account and partner balances are derived from."""
        return self.all_entries or self.entries

    def account(self, account_id: str) -> Optional[Account]:
        return next((a for a in self.accounts if a.id == account_id), None)

    def partner(self, partner_id: str) -> Optional[Partner]:
        return next((p for p in self.partners if p.id == partner_id), None)

    def item(self, item_id: str) -> Optional[Item]:
        return next((i for i in self.items if i.id == item_id), None)


def _map_all(
    documents: list[Document],
    mapper: Callable[[Document], T],
    collection: str,
    skipped: list[str],
) -> list[T]:
    mapped: list[T] = []
    for doc in documents:
        try:
            mapped.append(mapper(doc))
        except (KeyError, ValueError, TypeError) as e:
            doc_id = str(doc.get("id"))
            skipped.append(f"{collection}/{doc_id}")
            logger.warning("document_skipped", collection=collection, doc_id=doc_id, error=str(e))
    return mapped


def _in_factory(factory_id: Optional[str], record_factory_id: Optional[str]) -> bool:
    return factory_id is None or record_factory_id == factory_id


def load_snapshot(store: LedgerStore, factory_id: Optional[str] = None) -> LedgerSnapshot:
    """Read the store into a LedgerSnapshot.

    Args:
        store: Ledger store to read from
        factory_id: If given, keep only ledger entries and transactional
            records of that factory, and only accounts that are either shared
            or belong to it. Partners and items are always shared. The unfiltered
            ledger stays available as ``all_entries`` for balance checks.

    Returns:
        LedgerSnapshot. Documents that cannot be mapped are skipped, logged
        and listed in ``skipped``.
    """
    skipped: list[str] = []

    entries = _map_all(store.get_all(collections.LEDGER), mappers.ledger_entry_to_domain, collections.LEDGER, skipped)
    accounts = _map_all(store.get_all(collections.ACCOUNTS), mappers.account_to_domain, collections.ACCOUNTS, skipped)
    partners = _map_all(store.get_all(collections.PARTNERS), mappers.partner_to_domain, collections.PARTNERS, skipped)
    items = _map_all(store.get_all(collections.ITEMS), mappers.item_to_domain, collections.ITEMS, skipped)
    productions = _map_all(
        store.get_all(collections.PRODUCTIONS), mappers.production_to_domain, collections.PRODUCTIONS, skipped
    )
    openings = _map_all(
        store.get_all(collections.ORIGINAL_OPENINGS),
        mappers.original_opening_to_domain,
        collections.ORIGINAL_OPENINGS,
        skipped,
    )
    purchases = _map_all(
        store.get_all(collections.PURCHASES), mappers.purchase_to_domain, collections.PURCHASES, skipped
    )
    invoices = _map_all(
        store.get_all(collections.SALES_INVOICES),
        mappers.sales_invoice_to_domain,
        collections.SALES_INVOICES,
        skipped,
    )

    snapshot = LedgerSnapshot(
        entries=tuple(e for e in entries if _in_factory(factory_id, e.factory_id)),
        accounts=tuple(a for a in accounts if a.factory_id is None or _in_factory(factory_id, a.factory_id)),
        partners=tuple(partners),
        items=tuple(items),
        productions=tuple(p for p in productions if _in_factory(factory_id, p.factory_id)),
        original_openings=tuple(o for o in openings if _in_factory(factory_id, o.factory_id)),
        purchases=tuple(p for p in purchases if _in_factory(factory_id, p.factory_id)),
        sales_invoices=tuple(i for i in invoices if _in_factory(factory_id, i.factory_id)),
        factory_id=factory_id,
        skipped=tuple(skipped),
        all_entries=tuple(entries),
    )
    logger.info(
        "snapshot_loaded",
        factory_id=factory_id,
        entries=len(snapshot.entries),
        accounts=len(snapshot.accounts),
        partners=len(snapshot.partners),
        skipped=len(skipped),
    )
    return snapshot
