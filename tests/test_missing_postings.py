"""Tests for the missing-posting scans."""

from datetime import date
from decimal import Decimal

import pytest

from ledgerfix.database.mappers import account_to_domain
from ledgerfix.domain.entities import (
    Item,
    OriginalOpening,
    Partner,
    PartnerType,
    Production,
    Purchase,
    SalesInvoice,
    SalesInvoiceItem,
    TransactionType,
)
from ledgerfix.domain.issues import IssueKind
from ledgerfix.domain.missing_postings import (
    MISSING_CREDIT_ENTRY,
    MISSING_DEBIT_ENTRY,
    NO_LEDGER_ENTRIES,
    detect_missing_postings,
    find_missing_cogs_postings,
    find_missing_opening_balances,
    find_missing_production_postings,
    find_missing_purchase_postings,
    find_orphaned_transactions,
    find_productions_without_opening,
)
from ledgerfix.domain.roles import AccountRoleMap
from ledgerfix.domain.snapshot import LedgerSnapshot

@pytest.fixture
def accounts(chart_of_accounts):
    return tuple(account_to_domain(doc) for doc in chart_of_accounts)


@pytest.fixture
def roles(accounts):
    return AccountRoleMap.resolve(accounts)


@pytest.fixture
def snapshot(accounts):
    """Return a builder for snapshots over the standard chart of accounts."""

    def build(**kwargs) -> LedgerSnapshot:
        return LedgerSnapshot(accounts=accounts, **kwargs)

    return build


class TestOpeningBalances:
    def test_partner_with_balance_and_no_opening(self, snapshot):
        partner = Partner("CUS-007", "Acme Traders", PartnerType.CUSTOMER, balance=Decimal("1500"))
        (issue,) = find_missing_opening_balances(snapshot(partners=(partner,)))
        assert issue.kind == IssueKind.MISSING_OPENING_BALANCE
        assert issue.entity_id == "CUS-007"
        assert issue.transaction_id == "OB-CUS-007"
        assert issue.expected_value == Decimal("1500")
        assert issue.date is None

    def test_credit_balance_reports_absolute_value(self, snapshot):
        partner = Partner("SUP-1", "Mill", PartnerType.SUPPLIER, balance=Decimal("-300"))
        (issue,) = find_missing_opening_balances(snapshot(partners=(partner,)))
        assert issue.expected_value == Decimal("300")

    def test_partner_with_opening_or_zero_balance_is_fine(self, make_entry, snapshot):
        partners = (
            Partner("CUS-1", "Posted", PartnerType.CUSTOMER, balance=Decimal("10")),
            Partner("CUS-2", "Zero", PartnerType.CUSTOMER, balance=Decimal("0.004")),
        )
        entries = (
            make_entry("OB-CUS-1", "CUS-1", debit="10", transaction_type=TransactionType.OPENING_BALANCE),
            make_entry("OB-CUS-1", "3100", credit="10", transaction_type=TransactionType.OPENING_BALANCE),
        )
        assert find_missing_opening_balances(snapshot(partners=partners, entries=entries)) == []

    def test_opening_posted_in_another_factory_counts(self, make_entry, snapshot):
        partners = (Partner("CUS-1", "Acme", PartnerType.CUSTOMER, balance=Decimal("10")),)
        opening = (
            make_entry("OB-CUS-1", "CUS-1", debit="10", factory_id="F2"),
            make_entry("OB-CUS-1", "3100", credit="10", factory_id="F2"),
        )
        filtered = snapshot(partners=partners, entries=(), all_entries=opening, factory_id="F1")
        assert find_missing_opening_balances(filtered) == []


class TestPurchasePostings:
    def test_purchase_without_inventory_posting(self, snapshot):
        purchases = (
            Purchase("P1", "B-17", date(2024, 3, 1), "SUP-1", total_landed_cost=Decimal("8400")),
            Purchase("P2", "B-18", date(2024, 3, 2), "SUP-1", total_landed_cost=Decimal("0")),
        )
        (issue,) = find_missing_purchase_postings(snapshot(purchases=purchases))
        assert issue.entity_id == "P1"
        assert issue.transaction_id == "OB-PUR-P1"
        assert issue.expected_value == Decimal("8400")

    def test_purchase_with_posting_is_fine(self, make_entry, snapshot):
        purchases = (Purchase("P1", "B-17", date(2024, 3, 1), "SUP-1", total_landed_cost=Decimal("10")),)
        entries = (make_entry("OB-PUR-P1", "1200", debit="10"), make_entry("OB-PUR-P1", "3000", credit="10"))
        assert find_missing_purchase_postings(snapshot(purchases=purchases, entries=entries)) == []


class TestProductionPostings:
    def test_production_without_entries_uses_production_price(self, roles, snapshot):
        productions = (
            Production("X1", date(2024, 5, 1), "ITM-1", "Bale", qty_produced=Decimal("10"), production_price=Decimal("25")),
        )
        (issue,) = find_missing_production_postings(snapshot(productions=productions), roles)
        assert issue.reason == NO_LEDGER_ENTRIES
        assert issue.transaction_id == "PROD-X1"
        assert issue.expected_value == Decimal("250")
        assert not issue.has_entries

    def test_unpriced_production_falls_back_to_average_cost(self, roles, snapshot):
        productions = (Production("X2", date(2024, 5, 1), "ITM-1", "Bale", qty_produced=Decimal("4")),)
        items = (Item("ITM-1", "Bale", avg_cost=Decimal("12.5")),)
        (issue,) = find_missing_production_postings(snapshot(productions=productions, items=items), roles)
        assert issue.expected_value == Decimal("50")

    def test_debit_without_credit_leg(self, roles, make_entry, snapshot):
        entries = (make_entry("PROD-X1", "1220", debit="500", transaction_type=TransactionType.PRODUCTION),)
        (issue,) = find_missing_production_postings(snapshot(entries=entries), roles)
        assert issue.entity_id == "PROD-X1"
        assert issue.reason == MISSING_CREDIT_ENTRY
        assert issue.expected_value == Decimal("500")
        assert issue.has_entries

    def test_complete_posting_is_fine(self, roles, make_entry, snapshot):
        productions = (Production("X1", date(2024, 5, 1), "ITM-1", "Bale", qty_produced=Decimal("1")),)
        entries = (
            make_entry("PROD-X1", "1220", debit="500"),
            make_entry("PROD-X1", "1210", credit="500"),
        )
        assert find_missing_production_postings(snapshot(productions=productions, entries=entries), roles) == []

    def test_opening_on_production_day(self, roles, snapshot):
        productions = (
            Production("X1", date(2024, 5, 1), "ITM-1", "Bale", qty_produced=Decimal("1"), factory_id="F1"),
            Production("X2", date(2024, 5, 2), "ITM-1", "Bale", qty_produced=Decimal("1"), factory_id="F1"),
        )
        openings = (OriginalOpening("OO-1", date(2024, 5, 1), "SUP-1", "Mixed", factory_id="F1"),)
        snap = snapshot(productions=productions, original_openings=openings)

        issues = {i.entity_id: i for i in find_missing_production_postings(snap, roles)}
        assert issues["X1"].has_opening
        assert not issues["X2"].has_opening

        (orphan,) = find_productions_without_opening(snap)
        assert orphan.entity_id == "X2"
        assert not orphan.fixable


class TestCogsPostings:
    @pytest.fixture
    def invoice_snapshot(self, snapshot):
        invoices = (
            SalesInvoice(
                "si-1",
                "1042",
                date(2024, 6, 1),
                "Posted",
                "CUS-1",
                items=(SalesInvoiceItem("ITM-1", "Bale", qty=Decimal("3")),),
            ),
            SalesInvoice(
                "si-2",
                "1043",
                date(2024, 6, 1),
                "Unposted",
                "CUS-1",
                items=(SalesInvoiceItem("ITM-1", "Bale", qty=Decimal("3")),),
            ),
        )
        items = (Item("ITM-1", "Bale", avg_cost=Decimal("40")),)
        return snapshot(sales_invoices=invoices, items=items)

    def test_posted_invoice_without_cogs(self, invoice_snapshot, roles):
        (issue,) = find_missing_cogs_postings(invoice_snapshot, roles)
        assert issue.entity_id == "si-1"
        assert issue.transaction_id == "INV-1042"
        assert issue.expected_value == Decimal("120")

    def test_invoice_with_cogs_is_fine(self, invoice_snapshot, roles, make_entry, snapshot):
        entries = (
            make_entry("INV-1042", "5000", debit="120", narration="COGS: 1042"),
            make_entry("INV-1042", "1220", credit="120", narration="Inventory Reduction: 1042"),
        )
        snap = snapshot(
            entries=entries,
            sales_invoices=invoice_snapshot.sales_invoices,
            items=invoice_snapshot.items,
        )
        assert find_missing_cogs_postings(snap, roles) == []


def test_orphaned_transactions(make_entry):
    entries = (
        make_entry("JV-1", "1100", debit="10"),
        make_entry("JV-2", "1100", credit="10"),
        make_entry("JV-3", "1100", debit="5"),
        make_entry("JV-3", "3000", credit="5"),
    )
    issues = {i.transaction_id: i for i in find_orphaned_transactions(entries)}
    assert set(issues) == {"JV-1", "JV-2"}
    assert issues["JV-1"].reason == MISSING_CREDIT_ENTRY
    assert issues["JV-2"].reason == MISSING_DEBIT_ENTRY
    assert issues["JV-1"].kind == IssueKind.ORPHANED_TRANSACTION


def test_detect_runs_selected_scans_only(roles, snapshot):
    snap = snapshot(
        partners=(Partner("CUS-1", "Acme", PartnerType.CUSTOMER, balance=Decimal("10")),),
        purchases=(Purchase("P1", "B-1", date(2024, 1, 1), "SUP-1", total_landed_cost=Decimal("5")),),
    )
    all_issues = detect_missing_postings(snap, roles)
    assert {i.kind for i in all_issues} == {IssueKind.MISSING_OPENING_BALANCE, IssueKind.MISSING_PURCHASE_POSTING}

    only_purchases = detect_missing_postings(snap, roles, kinds=[IssueKind.MISSING_PURCHASE_POSTING])
    assert [i.kind for i in only_purchases] == [IssueKind.MISSING_PURCHASE_POSTING]
