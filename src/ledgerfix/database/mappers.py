"""Mapper functions to convert between store documents and domain entities.

Documents keep the field names the admin console writes (camelCase, amounts as
numbers or numeric strings, dates as ISO strings). This layer isolates that
shape from the domain, so detectors only ever see typed entities.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

from ledgerfix.database.base import Document
from ledgerfix.domain import entities as domain
from ledgerfix.utils.amount_parser import to_decimal
from ledgerfix.utils.date_parser import to_date


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _optional_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return to_decimal(value)


def decimal_to_document(value: Decimal) -> str:
    """Serialize an amount for storage."""
    return str(value)


def date_to_document(value: date) -> str:
    return value.isoformat()


def ledger_entry_to_domain(doc: Document) -> domain.LedgerEntry:
    """Convert a ledger document to a LedgerEntry entity."""
    return domain.LedgerEntry(
        id=_optional_str(doc.get("id")),
        transaction_id=str(doc.get("transactionId") or ""),
        date=to_date(doc["date"]),
        transaction_type=domain.TransactionType.parse(str(doc["transactionType"])),
        account_id=str(doc["accountId"]),
        account_name=str(doc.get("accountName") or ""),
        debit=to_decimal(doc.get("debit")),
        credit=to_decimal(doc.get("credit")),
        currency=str(doc.get("currency") or "USD"),
        exchange_rate=to_decimal(doc.get("exchangeRate", 1)),
        fcy_amount=to_decimal(doc.get("fcyAmount")),
        narration=str(doc.get("narration") or ""),
        factory_id=_optional_str(doc.get("factoryId")),
        is_adjustment=bool(doc.get("isAdjustment", False)),
        partner_id=_optional_str(doc.get("partnerId")),
    )


def ledger_entry_to_document(entry: domain.LedgerEntry) -> Document:
    """Convert a LedgerEntry entity to a ledger document.

    The ``id`` key is only present when the entry already has one; the store
    assigns ids to new entries.
    """
    doc: Document = {
        "transactionId": entry.transaction_id,
        "date": date_to_document(entry.date),
        "transactionType": entry.transaction_type.value,
        "accountId": entry.account_id,
        "accountName": entry.account_name,
        "debit": decimal_to_document(entry.debit),
        "credit": decimal_to_document(entry.credit),
        "currency": entry.currency,
        "exchangeRate": decimal_to_document(entry.exchange_rate),
        "fcyAmount": decimal_to_document(entry.fcy_amount),
        "narration": entry.narration,
        "factoryId": entry.factory_id,
        "isAdjustment": entry.is_adjustment,
    }
    if entry.partner_id is not None:
        doc["partnerId"] = entry.partner_id
    if entry.id is not None:
        doc["id"] = entry.id
    return doc


def account_to_domain(doc: Document) -> domain.Account:
    """Convert an account document to an Account entity."""
    return domain.Account(
        id=str(doc["id"]),
        code=str(doc.get("code") or ""),
        name=str(doc.get("name") or ""),
        type=domain.AccountType(str(doc["type"]).strip().upper()),
        balance=to_decimal(doc.get("balance")),
        factory_id=_optional_str(doc.get("factoryId")),
    )


def partner_to_domain(doc: Document) -> domain.Partner:
    """Convert a partner document to a Partner entity."""
    return domain.Partner(
        id=str(doc["id"]),
        name=str(doc.get("name") or ""),
        type=domain.PartnerType.parse(str(doc["type"])),
        balance=to_decimal(doc.get("balance")),
        division_id=_optional_str(doc.get("divisionId")),
        sub_division_id=_optional_str(doc.get("subDivisionId")),
    )


def item_to_domain(doc: Document) -> domain.Item:
    return domain.Item(
        id=str(doc["id"]),
        name=str(doc.get("name") or ""),
        code=str(doc.get("code") or ""),
        category=_optional_str(doc.get("category")),
        section=_optional_str(doc.get("section")),
        avg_cost=to_decimal(doc.get("avgCost")),
        stock_qty=to_decimal(doc.get("stockQty")),
    )


def original_opening_to_domain(doc: Document) -> domain.OriginalOpening:
    return domain.OriginalOpening(
        id=str(doc["id"]),
        date=to_date(doc["date"]),
        supplier_id=str(doc.get("supplierId") or ""),
        original_type=str(doc.get("originalType") or ""),
        qty_opened=to_decimal(doc.get("qtyOpened")),
        weight_opened=to_decimal(doc.get("weightOpened")),
        cost_per_kg=to_decimal(doc.get("costPerKg")),
        total_value=to_decimal(doc.get("totalValue")),
        factory_id=_optional_str(doc.get("factoryId")),
    )


def production_to_domain(doc: Document) -> domain.Production:
    return domain.Production(
        id=str(doc["id"]),
        date=to_date(doc["date"]),
        item_id=str(doc.get("itemId") or ""),
        item_name=str(doc.get("itemName") or ""),
        qty_produced=to_decimal(doc.get("qtyProduced")),
        weight_produced=to_decimal(doc.get("weightProduced")),
        production_price=_optional_decimal(doc.get("productionPrice")),
        factory_id=_optional_str(doc.get("factoryId")),
    )


def purchase_to_domain(doc: Document) -> domain.Purchase:
    return domain.Purchase(
        id=str(doc["id"]),
        batch_number=str(doc.get("batchNumber") or ""),
        date=to_date(doc["date"]),
        supplier_id=str(doc.get("supplierId") or ""),
        original_type=str(doc.get("originalType") or ""),
        original_type_id=_optional_str(doc.get("originalTypeId")),
        qty_purchased=to_decimal(doc.get("qtyPurchased")),
        weight_purchased=to_decimal(doc.get("weightPurchased")),
        total_landed_cost=to_decimal(doc.get("totalLandedCost")),
        landed_cost_per_kg=to_decimal(doc.get("landedCostPerKg")),
        factory_id=_optional_str(doc.get("factoryId")),
    )


def sales_invoice_to_domain(doc: Document) -> domain.SalesInvoice:
    """Convert a sales invoice document, including its item lines."""
    items = tuple(
        domain.SalesInvoiceItem(
            item_id=str(line.get("itemId") or ""),
            item_name=str(line.get("itemName") or ""),
            qty=to_decimal(line.get("qty")),
            rate=to_decimal(line.get("rate")),
            total=to_decimal(line.get("total")),
            total_kg=to_decimal(line.get("totalKg")),
            original_purchase_id=_optional_str(line.get("originalPurchaseId")),
        )
        for line in doc.get("items") or ()
    )
    return domain.SalesInvoice(
        id=str(doc["id"]),
        invoice_no=str(doc.get("invoiceNo") or doc["id"]),
        date=to_date(doc["date"]),
        status=str(doc.get("status") or ""),
        customer_id=str(doc.get("customerId") or ""),
        items=items,
        net_total=to_decimal(doc.get("netTotal")),
        factory_id=_optional_str(doc.get("factoryId")),
    )
