"""Domain model entities for ledgerfix.

These are pure data classes representing bookkeeping concepts, independent of
the document shape the store keeps them in. Mappers in ``ledgerfix.database``
translate between the two.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

ZERO = Decimal("0")


class AccountType(str, Enum):
    """Chart-of-accounts node type."""

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


class PartnerType(str, Enum):
    """Counterparty type. Values match the stored document codes."""

    CUSTOMER = "CUSTOMER"
    SUPPLIER = "SUPPLIER"
    SUB_SUPPLIER = "SUB SUPPLIER"
    VENDOR = "VENDOR"
    CLEARING_AGENT = "CLEARING AGENT"
    FREIGHT_FORWARDER = "FREIGHT FORWARDER"
    COMMISSION_AGENT = "COMMISSION AGENT"

    @classmethod
    def parse(cls, value: str) -> "PartnerType":
        """Parse a partner type from its code or enum name."""
        normalized = value.strip().upper().replace("_", " ")
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown partner type '{value}'")


class TransactionType(str, Enum):
    """Ledger transaction type. Values match the stored document codes."""

    SALES_INVOICE = "SI"
    PURCHASE_INVOICE = "PI"
    RECEIPT_VOUCHER = "RV"
    PAYMENT_VOUCHER = "PV"
    EXPENSE_VOUCHER = "EV"
    INTERNAL_TRANSFER = "TR"
    JOURNAL_VOUCHER = "JV"
    PURCHASE_BILL = "PB"
    PRODUCTION = "PROD"
    OPENING_BALANCE = "OB"
    ORIGINAL_OPENING = "OO"
    INVENTORY_ADJUSTMENT = "IA"

    @classmethod
    def parse(cls, value: str) -> "TransactionType":
        """Parse a transaction type from its code or enum name."""
        candidate = value.strip().upper()
        for member in cls:
            if candidate in (member.value, member.name):
                return member
        raise ValueError(f"Unknown transaction type '{value}'")


class OwnerKind(str, Enum):
    """Which kind of balance holder a ledger entry is attributed to."""

    ACCOUNT = "account"
    PARTNER = "partner"


@dataclass(frozen=True)
class LedgerEntry:
    """One leg of a double-entry posting."""

    id: Optional[str]
    transaction_id: str
    date: date
    transaction_type: TransactionType
    account_id: str
    account_name: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    currency: str = "USD"
    exchange_rate: Decimal = Decimal("1")
    fcy_amount: Decimal = ZERO
    narration: str = ""
    factory_id: Optional[str] = None
    is_adjustment: bool = False
    partner_id: Optional[str] = None

    @property
    def net(self) -> Decimal:
        """Debit minus credit for this leg."""
        return self.debit - self.credit


@dataclass(frozen=True)
class Account:
    """Chart-of-accounts node with its cached balance."""

    id: str
    code: str
    name: str
    type: AccountType
    balance: Decimal = ZERO
    factory_id: Optional[str] = None


@dataclass(frozen=True)
class Partner:
    """Customer or supplier-like counterparty with its cached balance."""

    id: str
    name: str
    type: PartnerType
    balance: Decimal = ZERO
    division_id: Optional[str] = None
    sub_division_id: Optional[str] = None


@dataclass(frozen=True)
class Item:
    """Finished-goods item definition."""

    id: str
    name: str
    code: str = ""
    category: Optional[str] = None
    section: Optional[str] = None
    avg_cost: Decimal = ZERO
    stock_qty: Decimal = ZERO


@dataclass(frozen=True)
class OriginalOpening:
    """Raw material opened into a factory outside the purchase flow."""

    id: str
    date: date
    supplier_id: str
    original_type: str
    qty_opened: Decimal = ZERO
    weight_opened: Decimal = ZERO
    cost_per_kg: Decimal = ZERO
    total_value: Decimal = ZERO
    factory_id: Optional[str] = None


@dataclass(frozen=True)
class Production:
    """Manufacturing output record."""

    id: str
    date: date
    item_id: str
    item_name: str
    qty_produced: Decimal = ZERO
    weight_produced: Decimal = ZERO
    production_price: Optional[Decimal] = None
    factory_id: Optional[str] = None


@dataclass(frozen=True)
class Purchase:
    """Raw material purchase header."""

    id: str
    batch_number: str
    date: date
    supplier_id: str
    original_type: str = ""
    original_type_id: Optional[str] = None
    qty_purchased: Decimal = ZERO
    weight_purchased: Decimal = ZERO
    total_landed_cost: Decimal = ZERO
    landed_cost_per_kg: Decimal = ZERO
    factory_id: Optional[str] = None


@dataclass(frozen=True)
class SalesInvoiceItem:
    """One item line on a sales invoice."""

    item_id: str
    item_name: str
    qty: Decimal = ZERO
    rate: Decimal = ZERO
    total: Decimal = ZERO
    total_kg: Decimal = ZERO
    original_purchase_id: Optional[str] = None


@dataclass(frozen=True)
class SalesInvoice:
    """Sales invoice header with its item lines."""

    id: str
    invoice_no: str
    date: date
    status: str
    customer_id: str
    items: tuple[SalesInvoiceItem, ...] = field(default_factory=tuple)
    net_total: Decimal = ZERO
    factory_id: Optional[str] = None

    @property
    def is_posted(self) -> bool:
        return self.status == "Posted"
