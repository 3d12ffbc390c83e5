"""Tests for grouping ledger entries into transactions."""

from decimal import Decimal

from ledgerfix.domain.grouping import (
    group_by_transaction,
    group_imbalance,
    group_totals,
    is_one_sided,
)


def test_groups_keep_first_seen_order(make_entry):
    entries = [
        make_entry("JV-2", "1100", debit="10"),
        make_entry("JV-1", "1100", debit="5"),
        make_entry("JV-2", "3000", credit="10"),
        make_entry("JV-1", "3000", credit="5"),
    ]
    groups = group_by_transaction(entries)
    assert list(groups) == ["JV-2", "JV-1"]
    assert [e.account_id for e in groups["JV-2"]] == ["1100", "3000"]


def test_entry_without_transaction_id_is_its_own_group(make_entry):
    entries = [
        make_entry("", "1100", debit="10", id="a1"),
        make_entry("", "1100", debit="20", id="a2"),
    ]
    groups = group_by_transaction(entries)
    assert set(groups) == {"a1", "a2"}


def test_group_totals_and_imbalance(make_entry):
    group = [
        make_entry("SI-1", "1100", debit="100.50"),
        make_entry("SI-1", "4000", credit="90.25"),
    ]
    assert group_totals(group) == (Decimal("100.50"), Decimal("90.25"))
    assert group_imbalance(group) == Decimal("10.25")


def test_is_one_sided(make_entry):
    debit_only = [make_entry("PROD-1", "1220", debit="500")]
    balanced = [make_entry("JV-1", "1100", debit="1"), make_entry("JV-1", "3000", credit="1")]
    assert is_one_sided(debit_only)
    assert not is_one_sided(balanced)
    assert not is_one_sided([])
