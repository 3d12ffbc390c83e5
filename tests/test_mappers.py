"""Tests for document mappers."""

from datetime import date
from decimal import Decimal

import pytest

from ledgerfix.database.mappers import (
    account_to_domain,
    ledger_entry_to_document,
    ledger_entry_to_domain,
    partner_to_domain,
    production_to_domain,
    sales_invoice_to_domain,
)
from ledgerfix.domain.entities import (
    AccountType,
    LedgerEntry,
    PartnerType,
    TransactionType,
)


class TestLedgerEntryMapper:
    """Tests for LedgerEntry mapper."""

    def test_ledger_entry_to_domain(self):
        """Numbers, numeric strings and timestamps are all accepted."""
        doc = {
            "id": "e1",
            "transactionId": "SI-1042",
            "date": "2024-06-01T10:15:00Z",
            "transactionType": "SI",
            "accountId": "1100",
            "accountName": "Cash",
            "debit": 1234.5,
            "credit": "0",
            "currency": "PKR",
            "exchangeRate": "280.5",
            "fcyAmount": "4.4",
            "narration": "Invoice 1042",
            "factoryId": "F1",
        }
        entry = ledger_entry_to_domain(doc)

        assert isinstance(entry, LedgerEntry)
        assert entry.id == "e1"
        assert entry.date == date(2024, 6, 1)
        assert entry.transaction_type == TransactionType.SALES_INVOICE
        assert entry.debit == Decimal("1234.5")
        assert entry.credit == Decimal("0")
        assert entry.exchange_rate == Decimal("280.5")
        assert entry.factory_id == "F1"
        assert entry.is_adjustment is False
        assert entry.partner_id is None

    def test_ledger_entry_to_document(self):
        entry = LedgerEntry(
            id=None,
            transaction_id="OB-CUS-1",
            date=date(2024, 12, 31),
            transaction_type=TransactionType.OPENING_BALANCE,
            account_id="CUS-1",
            account_name="Acme",
            debit=Decimal("1500.00"),
            is_adjustment=True,
            partner_id="CUS-1",
        )
        doc = ledger_entry_to_document(entry)

        assert "id" not in doc
        assert doc["transactionType"] == "OB"
        assert doc["date"] == "2024-12-31"
        assert doc["debit"] == "1500.00"
        assert doc["credit"] == "0"
        assert doc["partnerId"] == "CUS-1"
        assert doc["isAdjustment"] is True
        assert ledger_entry_to_domain({**doc, "id": "x"}) == LedgerEntry(**{**entry.__dict__, "id": "x"})

    def test_unknown_transaction_type(self):
        with pytest.raises(ValueError, match="Unknown transaction type"):
            ledger_entry_to_domain(
                {"transactionId": "X", "date": "2024-01-01", "transactionType": "ZZ", "accountId": "1"}
            )


class TestOwnerMappers:
    def test_account_to_domain(self):
        account = account_to_domain({"id": "1100", "code": "1100", "name": "Cash", "type": "asset", "balance": 10})
        assert account.type == AccountType.ASSET
        assert account.balance == Decimal("10")
        assert account.factory_id is None

    def test_partner_types_with_spaces(self):
        partner = partner_to_domain({"id": "S1", "name": "Sub", "type": "SUB SUPPLIER", "balance": "-5"})
        assert partner.type == PartnerType.SUB_SUPPLIER
        assert partner.balance == Decimal("-5")
        assert partner_to_domain({"id": "S2", "type": "sub_supplier"}).type == PartnerType.SUB_SUPPLIER


class TestTransactionalMappers:
    def test_production_without_price(self):
        production = production_to_domain(
            {"id": "X1", "date": "2024-05-01", "itemId": "ITM-1", "qtyProduced": "10", "productionPrice": ""}
        )
        assert production.production_price is None
        assert production.qty_produced == Decimal("10")

    def test_sales_invoice_items(self):
        invoice = sales_invoice_to_domain(
            {
                "id": "si-1",
                "invoiceNo": "1042",
                "date": "2024-06-01",
                "status": "Posted",
                "customerId": "CUS-1",
                "items": [{"itemId": "ITM-1", "itemName": "Bale", "qty": 3, "rate": "60", "total": 180}],
                "netTotal": "180",
            }
        )
        assert invoice.is_posted
        (line,) = invoice.items
        assert line.qty == Decimal("3")
        assert line.rate == Decimal("60")
        assert invoice.net_total == Decimal("180")
