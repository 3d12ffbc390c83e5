"""Detectors for postings that should exist in the ledger but do not.

Each scan is independent, reads only the snapshot it is given and returns
tagged issue records. Records that are ambiguous are skipped and logged
rather than raising.
"""

from decimal import Decimal
from typing import Iterable, Optional

import structlog

from ledgerfix.domain.balance import DEFAULT_TOLERANCE
from ledgerfix.domain.conventions import (
    PRODUCTION_PREFIX,
    opening_balance_id,
    production_id,
    purchase_opening_id,
    sales_invoice_id,
)
from ledgerfix.domain.entities import (
    ZERO,
    LedgerEntry,
    Production,
    SalesInvoice,
    TransactionType,
)
from ledgerfix.domain.grouping import group_by_transaction, group_totals, is_one_sided
from ledgerfix.domain.issues import (
    Issue,
    IssueKind,
    MissingCogsPosting,
    MissingOpeningBalance,
    MissingProductionPosting,
    MissingPurchasePosting,
    OrphanedTransaction,
    ProductionWithoutOpening,
)
from ledgerfix.domain.roles import AccountRole, AccountRoleMap
from ledgerfix.domain.snapshot import LedgerSnapshot

logger = structlog.get_logger(__name__)

NO_LEDGER_ENTRIES = "No ledger entries"
MISSING_CREDIT_ENTRY = "Missing credit entry"
MISSING_DEBIT_ENTRY = "Missing debit entry"
INVENTORY_REDUCTION = "inventory reduction"


def find_missing_opening_balances(
    snapshot: LedgerSnapshot,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> list[MissingOpeningBalance]:
    """Partners with a balance but no opening balance transaction in any factory."""
    groups = group_by_transaction(snapshot.balance_entries)
    issues = []
    for partner in snapshot.partners:
        if abs(partner.balance) <= tolerance:
            continue
        transaction_id = opening_balance_id(partner.id)
        group = groups.get(transaction_id, [])
        if any(entry.transaction_type == TransactionType.OPENING_BALANCE for entry in group):
            continue
        issues.append(
            MissingOpeningBalance(
                entity_id=partner.id,
                date=None,
                expected_value=abs(partner.balance),
                reason=f"Balance {partner.balance:.2f} has no {transaction_id} entries",
                partner_name=partner.name,
                partner_type=partner.type,
                transaction_id=transaction_id,
            )
        )
    return issues


def find_missing_purchase_postings(snapshot: LedgerSnapshot) -> list[MissingPurchasePosting]:
    """Purchases with landed cost but no retrofitted inventory posting."""
    groups = group_by_transaction(snapshot.entries)
    issues = []
    for purchase in snapshot.purchases:
        if purchase.total_landed_cost <= 0:
            continue
        transaction_id = purchase_opening_id(purchase.id)
        if groups.get(transaction_id):
            continue
        issues.append(
            MissingPurchasePosting(
                entity_id=purchase.id,
                date=purchase.date,
                expected_value=purchase.total_landed_cost,
                reason=f"Batch {purchase.batch_number} has no {transaction_id} entries",
                transaction_id=transaction_id,
                factory_id=purchase.factory_id,
            )
        )
    return issues


def production_value(production: Production, snapshot: LedgerSnapshot) -> Decimal:
    """Quantity times production price, or the item's average cost when unpriced."""
    unit_cost = production.production_price
    if not unit_cost:
        item = snapshot.item(production.item_id)
        unit_cost = item.avg_cost if item is not None else ZERO
    return production.qty_produced * unit_cost


def _production_credit_ids(roles: AccountRoleMap) -> set[str]:
    credit_roles = (AccountRole.WORK_IN_PROGRESS, AccountRole.PRODUCTION_GAIN, AccountRole.CAPITAL)
    return {account_id for role in credit_roles if (account_id := roles.account_id(role))}


def lacks_production_credit(group: Iterable[LedgerEntry], roles: AccountRoleMap) -> bool:
    """True if a group debits Finished Goods but credits none of WIP, gain or capital."""
    group = list(group)
    finished_goods = roles.account_id(AccountRole.FINISHED_GOODS)
    credit_ids = _production_credit_ids(roles)
    has_fg_debit = any(e.account_id == finished_goods and e.debit > 0 for e in group)
    has_credit = any(e.account_id in credit_ids and e.credit > 0 for e in group)
    return has_fg_debit and not has_credit


def find_missing_production_postings(
    snapshot: LedgerSnapshot,
    roles: AccountRoleMap,
) -> list[MissingProductionPosting]:
    """Productions with no ledger entries, or with a Finished Goods debit and no credit leg.

    ``PROD-`` groups in the ledger without a production record are checked
    for the missing credit too.
    """
    groups = group_by_transaction(snapshot.entries)
    opened = {(opening.date, opening.factory_id) for opening in snapshot.original_openings}
    issues = []
    seen: set[str] = set()

    for production in snapshot.productions:
        if production.qty_produced <= 0:
            continue
        transaction_id = production_id(production.id)
        seen.add(transaction_id)
        group = groups.get(transaction_id, [])
        has_opening = (production.date, production.factory_id) in opened
        if not group:
            reason = NO_LEDGER_ENTRIES
            expected = production_value(production, snapshot)
        elif lacks_production_credit(group, roles):
            reason = MISSING_CREDIT_ENTRY
            debit, credit = group_totals(group)
            expected = debit - credit
        else:
            continue
        issues.append(
            MissingProductionPosting(
                entity_id=production.id,
                date=production.date,
                expected_value=expected,
                reason=reason,
                transaction_id=transaction_id,
                has_entries=bool(group),
                has_opening=has_opening,
                factory_id=production.factory_id,
            )
        )

    for transaction_id, group in groups.items():
        if not transaction_id.startswith(PRODUCTION_PREFIX) or transaction_id in seen:
            continue
        if not lacks_production_credit(group, roles):
            continue
        debit, credit = group_totals(group)
        first = group[0]
        issues.append(
            MissingProductionPosting(
                entity_id=transaction_id,
                date=first.date,
                expected_value=debit - credit,
                reason=MISSING_CREDIT_ENTRY,
                transaction_id=transaction_id,
                has_entries=True,
                has_opening=(first.date, first.factory_id) in opened,
                factory_id=first.factory_id,
            )
        )
    return issues


def find_productions_without_opening(snapshot: LedgerSnapshot) -> list[ProductionWithoutOpening]:
    """Productions dated on a day with no original opening in the same factory."""
    opened = {(opening.date, opening.factory_id) for opening in snapshot.original_openings}
    return [
        ProductionWithoutOpening(
            entity_id=production.id,
            date=production.date,
            expected_value=production_value(production, snapshot),
            reason=f"No original opening on {production.date.isoformat()}",
            factory_id=production.factory_id,
        )
        for production in snapshot.productions
        if production.qty_produced > 0 and (production.date, production.factory_id) not in opened
    ]


def invoice_cost(invoice: SalesInvoice, snapshot: LedgerSnapshot) -> Decimal:
    """Sum of quantity times item average cost over the invoice lines."""
    total = ZERO
    for line in invoice.items:
        item = snapshot.item(line.item_id)
        if item is None:
            logger.warning("invoice_item_unknown", invoice_no=invoice.invoice_no, item_id=line.item_id)
            continue
        total += line.qty * item.avg_cost
    return total


def has_cogs_posting(group: Iterable[LedgerEntry], roles: AccountRoleMap) -> bool:
    """True if a group holds a COGS debit and a Finished Goods inventory-reduction credit."""
    group = list(group)
    cogs = roles.account_id(AccountRole.COST_OF_GOODS_SOLD)
    finished_goods = roles.account_id(AccountRole.FINISHED_GOODS)
    has_cogs_debit = any(e.account_id == cogs and e.debit > 0 for e in group)
    has_reduction = any(
        e.account_id == finished_goods and e.credit > 0 and INVENTORY_REDUCTION in e.narration.lower()
        for e in group
    )
    return has_cogs_debit and has_reduction


def find_missing_cogs_postings(
    snapshot: LedgerSnapshot,
    roles: AccountRoleMap,
) -> list[MissingCogsPosting]:
    """Posted sales invoices without their COGS and inventory-reduction legs."""
    groups = group_by_transaction(snapshot.entries)
    issues = []
    for invoice in snapshot.sales_invoices:
        if not invoice.is_posted or not any(line.qty != 0 for line in invoice.items):
            continue
        transaction_id = sales_invoice_id(invoice.invoice_no)
        if has_cogs_posting(groups.get(transaction_id, []), roles):
            continue
        issues.append(
            MissingCogsPosting(
                entity_id=invoice.id,
                date=invoice.date,
                expected_value=invoice_cost(invoice, snapshot),
                reason=f"Invoice {invoice.invoice_no} has no COGS / inventory reduction entries",
                transaction_id=transaction_id,
                invoice_no=invoice.invoice_no,
                factory_id=invoice.factory_id,
            )
        )
    return issues


def find_orphaned_transactions(entries: Iterable[LedgerEntry]) -> list[OrphanedTransaction]:
    """Transaction groups with legs on one side only, whatever the amount."""
    issues = []
    for transaction_id, group in group_by_transaction(entries).items():
        if not is_one_sided(group):
            continue
        debit, credit = group_totals(group)
        issues.append(
            OrphanedTransaction(
                entity_id=transaction_id,
                date=group[0].date,
                expected_value=abs(debit - credit),
                reason=MISSING_CREDIT_ENTRY if debit > 0 else MISSING_DEBIT_ENTRY,
                transaction_id=transaction_id,
                total_debit=debit,
                total_credit=credit,
                transaction_type=group[0].transaction_type,
                entry_count=len(group),
            )
        )
    return issues


ALL_SCANS = frozenset(
    {
        IssueKind.MISSING_OPENING_BALANCE,
        IssueKind.MISSING_PURCHASE_POSTING,
        IssueKind.MISSING_PRODUCTION_POSTING,
        IssueKind.PRODUCTION_WITHOUT_OPENING,
        IssueKind.MISSING_COGS_POSTING,
        IssueKind.ORPHANED_TRANSACTION,
    }
)


def detect_missing_postings(
    snapshot: LedgerSnapshot,
    roles: AccountRoleMap,
    kinds: Optional[Iterable[IssueKind]] = None,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> list[Issue]:
    """Run the selected scans and concatenate their issues.

    Args:
        snapshot: Ledger snapshot to inspect
        roles: Resolved account roles used to recognise inventory, WIP and COGS legs
        kinds: Scans to run; all of them when None
        tolerance: Smallest partner balance treated as nonzero

    Returns:
        Issues in scan order
    """
    selected = ALL_SCANS if kinds is None else frozenset(kinds)
    issues: list[Issue] = []
    if IssueKind.MISSING_OPENING_BALANCE in selected:
        issues.extend(find_missing_opening_balances(snapshot, tolerance))
    if IssueKind.MISSING_PURCHASE_POSTING in selected:
        issues.extend(find_missing_purchase_postings(snapshot))
    if IssueKind.MISSING_PRODUCTION_POSTING in selected:
        issues.extend(find_missing_production_postings(snapshot, roles))
    if IssueKind.PRODUCTION_WITHOUT_OPENING in selected:
        issues.extend(find_productions_without_opening(snapshot))
    if IssueKind.MISSING_COGS_POSTING in selected:
        issues.extend(find_missing_cogs_postings(snapshot, roles))
    if IssueKind.ORPHANED_TRANSACTION in selected:
        issues.extend(find_orphaned_transactions(snapshot.entries))

    logger.info("missing_posting_scan_finished", issues=len(issues), scans=sorted(k.value for k in selected))
    return issues
