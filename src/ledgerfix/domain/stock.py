"""Stock alignment: move finished-goods and raw-material stock to a counted target.

Both alignments post an inventory adjustment voucher (``IA-<n>``) between the
inventory account and capital for the value difference, dated one day before
the earliest activity for the stock line so it reads as an opening position.
"""

from datetime import date, datetime, timedelta, UTC
from decimal import Decimal
from typing import Iterable, Mapping, Optional

import structlog

from ledgerfix.database import collections
from ledgerfix.database import mappers
from ledgerfix.database.base import LedgerStore
from ledgerfix.domain.balance import DEFAULT_POLICY, DEFAULT_TOLERANCE, BalancePolicy
from ledgerfix.domain.conventions import (
    DIRECT_SALE_PREFIXES,
    INVENTORY_ADJUSTMENT_PREFIX,
    inventory_adjustment_id,
    next_voucher_number,
)
from ledgerfix.domain.entities import ZERO, Account, LedgerEntry, TransactionType
from ledgerfix.domain.errors import NotFoundError, ValidationError
from ledgerfix.domain.issues import AlignmentResult
from ledgerfix.domain.ledger import LedgerService
from ledgerfix.domain.roles import AccountRole, AccountRoleMap
from ledgerfix.utils.date_parser import start_of_year

logger = structlog.get_logger(__name__)


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


class StockAlignmentService:
    """Posts inventory adjustments that align stock value to a target."""

    def __init__(
        self,
        db: LedgerStore,
        roles: Optional[AccountRoleMap] = None,
        account_roles: Optional[Mapping[str, str]] = None,
        policy: BalancePolicy = DEFAULT_POLICY,
        tolerance: Decimal = DEFAULT_TOLERANCE,
        factory_id: Optional[str] = None,
    ):
        self.db = db
        self.roles = roles
        self.account_roles = dict(account_roles or {})
        self.policy = policy
        self.tolerance = tolerance
        self.factory_id = factory_id

    def _roles(self) -> AccountRoleMap:
        if self.roles is None:
            accounts = [mappers.account_to_domain(doc) for doc in self.db.get_all(collections.ACCOUNTS)]
            self.roles = AccountRoleMap.resolve(accounts, self.account_roles)
        return self.roles

    def _ledger(self) -> list[LedgerEntry]:
        return [mappers.ledger_entry_to_domain(doc) for doc in self.db.get_all(collections.LEDGER)]

    def next_adjustment_id(self, entries: Iterable[LedgerEntry]) -> str:
        """Return ``IA-<n>`` with n one past the highest adjustment number in the ledger."""
        return inventory_adjustment_id(
            next_voucher_number((entry.transaction_id for entry in entries), INVENTORY_ADJUSTMENT_PREFIX)
        )

    def _post(
        self,
        transaction_id: str,
        posted_on: date,
        inventory: Account,
        contra: Account,
        value_adjustment: Decimal,
        inventory_narration: str,
        contra_narration: str,
    ) -> None:
        amount = abs(value_adjustment)
        # A higher stock value debits inventory and credits capital
        increase = value_adjustment > 0
        common = dict(
            id=None,
            transaction_id=transaction_id,
            date=posted_on,
            transaction_type=TransactionType.INVENTORY_ADJUSTMENT,
            fcy_amount=amount,
            factory_id=self.factory_id,
            is_adjustment=True,
        )
        legs = [
            LedgerEntry(
                account_id=inventory.id,
                account_name=inventory.name,
                debit=amount if increase else ZERO,
                credit=ZERO if increase else amount,
                narration=inventory_narration,
                **common,
            ),
            LedgerEntry(
                account_id=contra.id,
                account_name=contra.name,
                debit=ZERO if increase else amount,
                credit=amount if increase else ZERO,
                narration=contra_narration,
                **common,
            ),
        ]
        LedgerService(self.db, factory_id=self.factory_id, policy=self.policy, tolerance=self.tolerance).post_transaction(
            legs
        )

    def align_finished_goods(
        self,
        item_id: str,
        target_qty: Decimal,
        target_value: Decimal,
        today: Optional[date] = None,
    ) -> AlignmentResult:
        """Align a finished-goods item's quantity and worth.

        The item's average cost becomes ``target_value / target_qty`` (zero
        when the quantity is not positive). The value difference is posted
        between the finished-goods account and capital.

        Args:
            item_id: Item id
            target_qty: Counted quantity
            target_value: Total worth of the counted quantity
            today: Reference date when the item has no ledger activity yet

        Returns:
            AlignmentResult with the value adjustment and voucher id

        Raises:
            NotFoundError: If the item does not exist
            ValidationError: If the inventory or capital account cannot be resolved
        """
        doc = self.db.get(collections.ITEMS, item_id)
        if doc is None:
            raise NotFoundError(f"Item '{item_id}' not found")
        item = mappers.item_to_domain(doc)

        current_qty = item.stock_qty
        current_value = current_qty * item.avg_cost
        target_avg_cost = target_value / target_qty if target_qty > 0 else ZERO
        qty_adjustment = target_qty - current_qty
        value_adjustment = target_value - current_value

        if abs(qty_adjustment) <= self.tolerance and abs(value_adjustment) <= self.tolerance:
            return AlignmentResult(
                success=True,
                message="Stock already matches target. No adjustment needed.",
                adjustment_amount=ZERO,
            )

        transaction_id = None
        if abs(value_adjustment) > self.tolerance:
            roles = self._roles()
            roles.require([AccountRole.FINISHED_GOODS, AccountRole.CAPITAL])
            inventory = roles.account(AccountRole.FINISHED_GOODS)
            contra = roles.account(AccountRole.CAPITAL)

            ledger = self._ledger()
            activity = [
                entry
                for entry in ledger
                if (item.name and item.name in entry.narration)
                or (item.code and item.code in entry.narration)
                or (
                    entry.transaction_type == TransactionType.INVENTORY_ADJUSTMENT
                    and entry.account_id == inventory.id
                )
            ]
            if activity:
                posted_on = min(entry.date for entry in activity) - timedelta(days=1)
            else:
                posted_on = start_of_year(today)

            transaction_id = self.next_adjustment_id(ledger)
            self._post(
                transaction_id,
                posted_on,
                inventory,
                contra,
                value_adjustment,
                f"Stock Adjustment - {item.name}: Qty {current_qty}->{target_qty}, "
                f"Value {_money(current_value)}->{_money(target_value)}",
                f"Stock Adjustment - {item.name}",
            )

        self.db.update_fields(
            collections.ITEMS,
            item.id,
            {
                "stockQty": mappers.decimal_to_document(target_qty),
                "avgCost": mappers.decimal_to_document(target_avg_cost),
                "updatedAt": datetime.now(UTC).isoformat(),
            },
        )
        logger.info(
            "finished_goods_aligned",
            item_id=item.id,
            transaction_id=transaction_id,
            qty_adjustment=str(qty_adjustment),
            value_adjustment=str(value_adjustment),
        )

        if transaction_id is None:
            return AlignmentResult(
                success=True,
                message="Stock quantity updated. No ledger adjustment needed.",
                adjustment_amount=ZERO,
            )
        return AlignmentResult(
            success=True,
            message=(
                f"Stock adjustment posted. Transaction: {transaction_id}. "
                f"Qty: {current_qty}->{target_qty}, "
                f"Worth: {_money(current_value)}->{_money(target_value)}, "
                f"Avg Cost: {_money(item.avg_cost)}->{_money(target_avg_cost)}"
            ),
            adjustment_amount=value_adjustment,
            transaction_id=transaction_id,
        )

    def align_original_stock(
        self,
        original_type_id: str,
        supplier_id: str,
        target_weight: Optional[Decimal] = None,
        target_value: Optional[Decimal] = None,
        today: Optional[date] = None,
    ) -> AlignmentResult:
        """Align the raw-material stock of one original type from one supplier.

        Current weight is purchased weight less opened weight less weight sold
        directly (posted ``DS-``/``DSINV-`` invoices whose lines point at one of
        the purchases). Current value is that weight at the average purchase
        cost per kg, plus earlier adjustments posted for the same type, so a
        repeated alignment to the same target posts nothing.

        Args:
            original_type_id: Original type id
            supplier_id: Supplier partner id
            target_weight: Counted weight. Defaults to the current weight.
            target_value: Counted worth. Defaults to the current value.
            today: Reference date when there are no purchases

        Returns:
            AlignmentResult with the value adjustment and voucher id

        Raises:
            NotFoundError: If the original type does not exist
            ValidationError: If a target is negative or the raw-materials or
                capital account cannot be resolved
        """
        type_doc = self.db.get(collections.ORIGINAL_TYPES, original_type_id)
        if type_doc is None:
            raise NotFoundError(f"Original type '{original_type_id}' not found")
        type_name = str(type_doc.get("name") or original_type_id)
        if (target_weight is not None and target_weight < 0) or (target_value is not None and target_value < 0):
            raise ValidationError("Target weight and value cannot be negative")

        purchases = [
            purchase
            for purchase in map(mappers.purchase_to_domain, self.db.get_all(collections.PURCHASES))
            if purchase.supplier_id == supplier_id and purchase.original_type_id == original_type_id
        ]
        purchase_ids = {purchase.id for purchase in purchases}
        purchased = sum((purchase.weight_purchased for purchase in purchases), ZERO)
        cost = sum((purchase.total_landed_cost for purchase in purchases), ZERO)

        opened = sum(
            (
                opening.weight_opened
                for opening in map(mappers.original_opening_to_domain, self.db.get_all(collections.ORIGINAL_OPENINGS))
                if opening.original_type == original_type_id and opening.supplier_id == supplier_id
            ),
            ZERO,
        )
        sold_direct = sum(
            (
                line.total_kg
                for invoice in map(mappers.sales_invoice_to_domain, self.db.get_all(collections.SALES_INVOICES))
                if invoice.is_posted and invoice.invoice_no.startswith(DIRECT_SALE_PREFIXES)
                for line in invoice.items
                if line.original_purchase_id in purchase_ids
            ),
            ZERO,
        )

        roles = self._roles()
        roles.require([AccountRole.RAW_MATERIALS, AccountRole.CAPITAL])
        inventory = roles.account(AccountRole.RAW_MATERIALS)
        contra = roles.account(AccountRole.CAPITAL)

        ledger = self._ledger()
        narration_prefix = f"Original Stock Adjustment - {type_name}:"
        adjusted = sum(
            (
                entry.net
                for entry in ledger
                if entry.transaction_type == TransactionType.INVENTORY_ADJUSTMENT
                and entry.account_id == inventory.id
                and entry.narration.startswith(narration_prefix)
            ),
            ZERO,
        )

        current_weight = purchased - opened - sold_direct
        avg_cost_per_kg = cost / purchased if purchased > 0 else ZERO
        current_value = current_weight * avg_cost_per_kg + adjusted
        final_weight = current_weight if target_weight is None else target_weight
        final_value = current_value if target_value is None else target_value
        value_adjustment = final_value - current_value

        if abs(value_adjustment) <= self.tolerance:
            return AlignmentResult(
                success=True,
                message="Stock already matches target. No adjustment needed.",
                adjustment_amount=ZERO,
            )

        if purchases:
            posted_on = min(purchase.date for purchase in purchases) - timedelta(days=1)
        else:
            posted_on = start_of_year(today)

        transaction_id = self.next_adjustment_id(ledger)
        self._post(
            transaction_id,
            posted_on,
            inventory,
            contra,
            value_adjustment,
            f"{narration_prefix} Weight {_money(current_weight)}->{_money(final_weight)}Kg, "
            f"Value {_money(current_value)}->{_money(final_value)}",
            f"Original Stock Adjustment - {type_name}",
        )
        logger.info(
            "original_stock_aligned",
            original_type_id=original_type_id,
            supplier_id=supplier_id,
            transaction_id=transaction_id,
            value_adjustment=str(value_adjustment),
        )
        return AlignmentResult(
            success=True,
            message=(
                f"Original stock adjustment posted. Transaction: {transaction_id}. "
                f"Weight: {_money(current_weight)}->{_money(final_weight)}Kg, "
                f"Value: {_money(current_value)}->{_money(final_value)}"
            ),
            adjustment_amount=value_adjustment,
            transaction_id=transaction_id,
        )
