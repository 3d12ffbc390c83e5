"""Tests for balance recalculation."""

from decimal import Decimal

from ledgerfix.database import collections
from ledgerfix.domain.balance import BalancePolicy
from ledgerfix.domain.recalculate import BalanceRecalculator


def balance(store, collection, doc_id):
    return Decimal(str(store.get(collection, doc_id)["balance"]))


def test_recalculate_all(chart, recalculator, make_entry, insert_entries):
    chart.append_batch(
        collections.PARTNERS,
        [
            {"id": "CUS-1", "name": "Acme", "type": "CUSTOMER", "balance": 999},
            {"id": "SUP-1", "name": "Mill", "type": "SUPPLIER", "balance": 0},
        ],
    )
    insert_entries(
        chart,
        [
            make_entry("SI-1", "CUS-1", debit="250"),
            make_entry("SI-1", "4000", credit="250"),
            make_entry("PI-1", "1200", debit="400"),
            make_entry("PI-1", "SUP-1", credit="400"),
        ],
    )

    result = recalculator.recalculate_all()

    assert result.success
    assert result.updated == 4
    assert result.unchanged == len(chart.get_all(collections.ACCOUNTS)) - 2
    assert balance(chart, collections.PARTNERS, "CUS-1") == Decimal("250")
    assert balance(chart, collections.PARTNERS, "SUP-1") == Decimal("400")
    assert balance(chart, collections.ACCOUNTS, "4000") == Decimal("250")
    assert balance(chart, collections.ACCOUNTS, "1200") == Decimal("400")


def test_owner_without_entries_goes_to_zero(chart, recalculator):
    chart.update_fields(collections.ACCOUNTS, "1100", {"balance": "75"})
    recalculator.recalculate_all()
    assert balance(chart, collections.ACCOUNTS, "1100") == Decimal("0")


def test_second_run_changes_nothing(chart, recalculator, make_entry, insert_entries):
    insert_entries(chart, [make_entry("JV-1", "1100", debit="10"), make_entry("JV-1", "3000", credit="10")])
    recalculator.recalculate_all()
    again = recalculator.recalculate_all()
    assert again.updated == 0


def test_recalculate_selected_owners(chart, recalculator, make_entry, insert_entries):
    insert_entries(chart, [make_entry("JV-1", "1100", debit="10"), make_entry("JV-1", "3000", credit="10")])
    result = recalculator.recalculate_owners({"1100"})
    assert result.updated == 1
    assert balance(chart, collections.ACCOUNTS, "1100") == Decimal("10")
    assert balance(chart, collections.ACCOUNTS, "3000") == Decimal("0")


def test_configured_policy(chart, make_entry, insert_entries):
    chart.append_batch(collections.PARTNERS, [{"id": "VEN-1", "name": "Agent", "type": "VENDOR", "balance": 0}])
    insert_entries(chart, [make_entry("PV-1", "VEN-1", debit="60"), make_entry("PV-1", "1100", credit="60")])
    BalanceRecalculator(chart, BalancePolicy.from_names(["CUSTOMER", "VENDOR"])).recalculate_all()
    assert balance(chart, collections.PARTNERS, "VEN-1") == Decimal("60")


def test_unreadable_history_is_not_overwritten(chart, recalculator):
    chart.update_fields(collections.ACCOUNTS, "1100", {"balance": "75"})
    chart.append_batch(
        collections.LEDGER,
        [{"id": "bad", "transactionId": "JV-9", "date": "not a date", "transactionType": "JV", "accountId": "1100"}],
    )
    result = recalculator.recalculate_all()

    assert not result.success
    assert {e.entity_id for e in result.errors} == {"bad", "1100"}
    assert balance(chart, collections.ACCOUNTS, "1100") == Decimal("75")
