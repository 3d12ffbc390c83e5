"""Tests for balance derivation and the sign convention."""

from decimal import Decimal

import pytest

from ledgerfix.domain.balance import (
    DEFAULT_POLICY,
    BalancePolicy,
    derive_balance,
    entries_for_owner,
    index_by_owner,
    to_debit_normal,
)
from ledgerfix.domain.entities import AccountType, PartnerType


@pytest.fixture
def hundred_in_thirty_out(make_entry):
    return [
        make_entry("JV-1001", "1100", debit="100"),
        make_entry("JV-1002", "1100", credit="30"),
    ]


@pytest.mark.parametrize("owner_type", [AccountType.ASSET, AccountType.EXPENSE])
def test_debit_normal_accounts(hundred_in_thirty_out, owner_type):
    """Assets and expenses are debit minus credit."""
    assert derive_balance(hundred_in_thirty_out, owner_type) == Decimal("70")


@pytest.mark.parametrize(
    "owner_type", [AccountType.LIABILITY, AccountType.EQUITY, AccountType.REVENUE]
)
def test_credit_normal_accounts(hundred_in_thirty_out, owner_type):
    """Liabilities, equity and revenue are credit minus debit."""
    assert derive_balance(hundred_in_thirty_out, owner_type) == Decimal("-70")


def test_no_entries_derive_to_zero():
    """An owner with no history has a zero balance."""
    for owner_type in (*AccountType, *PartnerType):
        assert derive_balance([], owner_type) == Decimal("0")


def test_default_partner_policy(hundred_in_thirty_out):
    """Customers are debit-normal; every other partner type is credit-normal."""
    assert derive_balance(hundred_in_thirty_out, PartnerType.CUSTOMER) == Decimal("70")
    assert derive_balance(hundred_in_thirty_out, PartnerType.SUPPLIER) == Decimal("-70")
    assert derive_balance(hundred_in_thirty_out, PartnerType.SUB_SUPPLIER) == Decimal("-70")
    assert derive_balance(hundred_in_thirty_out, PartnerType.CLEARING_AGENT) == Decimal("-70")


def test_configured_partner_policy(hundred_in_thirty_out):
    """A policy can make other partner types debit-normal."""
    policy = BalancePolicy.from_names(["customer", "VENDOR"])
    assert policy.is_debit_normal(PartnerType.VENDOR)
    assert derive_balance(hundred_in_thirty_out, PartnerType.VENDOR, policy) == Decimal("70")
    assert derive_balance(hundred_in_thirty_out, PartnerType.SUPPLIER, policy) == Decimal("-70")


def test_policy_rejects_unknown_partner_type():
    with pytest.raises(ValueError, match="Unknown partner type"):
        BalancePolicy.from_names(["WHOLESALER"])


def test_to_debit_normal():
    assert to_debit_normal(Decimal("50"), AccountType.ASSET) == Decimal("50")
    assert to_debit_normal(Decimal("50"), PartnerType.SUPPLIER) == Decimal("-50")
    assert to_debit_normal(Decimal("50"), PartnerType.CUSTOMER, DEFAULT_POLICY) == Decimal("50")


def test_entries_for_owner_and_index(make_entry):
    entries = [
        make_entry("JV-1", "1100", debit="10"),
        make_entry("JV-1", "3000", credit="10"),
        make_entry("JV-2", "1100", debit="5"),
    ]
    assert [e.transaction_id for e in entries_for_owner(entries, "1100")] == ["JV-1", "JV-2"]
    index = index_by_owner(entries)
    assert set(index) == {"1100", "3000"}
    assert len(index["1100"]) == 2
