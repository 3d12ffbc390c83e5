"""Balance derivation from ledger history.

An owner's balance is never read from a running total; it is always derived
from the full list of ledger entries attributed to it, using the sign
convention of its type.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ledgerfix.domain.entities import (
    ZERO,
    AccountType,
    LedgerEntry,
    PartnerType,
)

DEBIT_NORMAL_ACCOUNT_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE})

# Differences at or below this are treated as rounding noise.
DEFAULT_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class BalancePolicy:
    """Sign convention per owner type.

    Account types follow the standard convention. Partner types are
    configurable: those listed in ``debit_normal_partner_types`` behave like
    assets (the partner owes us), every other partner type behaves like a
    liability (we owe the partner).
    """

    debit_normal_partner_types: frozenset[PartnerType] = frozenset({PartnerType.CUSTOMER})

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "BalancePolicy":
        """Build a policy from partner type codes or enum names."""
        return cls(frozenset(PartnerType.parse(name) for name in names))

    def is_debit_normal(self, owner_type: AccountType | PartnerType) -> bool:
        if isinstance(owner_type, AccountType):
            return owner_type in DEBIT_NORMAL_ACCOUNT_TYPES
        return owner_type in self.debit_normal_partner_types


DEFAULT_POLICY = BalancePolicy()


def sum_debits(entries: Iterable[LedgerEntry]) -> Decimal:
    return sum((entry.debit for entry in entries), ZERO)


def sum_credits(entries: Iterable[LedgerEntry]) -> Decimal:
    return sum((entry.credit for entry in entries), ZERO)


def derive_balance(
    entries: Iterable[LedgerEntry],
    owner_type: AccountType | PartnerType,
    policy: BalancePolicy = DEFAULT_POLICY,
) -> Decimal:
    """Derive an owner's balance from its ledger entries.

    Args:
        entries: Ledger entries already filtered to one account or partner
        owner_type: Account type or partner type of the owner
        policy: Sign convention to apply

    Returns:
        ``debit - credit`` for debit-normal owners, ``credit - debit``
        otherwise. An owner with no entries derives to exactly zero.
    """
    entries = list(entries)
    debit = sum_debits(entries)
    credit = sum_credits(entries)
    if policy.is_debit_normal(owner_type):
        return debit - credit
    return credit - debit


def entries_for_owner(entries: Iterable[LedgerEntry], owner_id: str) -> list[LedgerEntry]:
    """Return the entries attributed to one account or partner."""
    return [entry for entry in entries if entry.account_id == owner_id]


def index_by_owner(entries: Iterable[LedgerEntry]) -> dict[str, list[LedgerEntry]]:
    """Index entries by the account id they are posted to."""
    index: dict[str, list[LedgerEntry]] = {}
    for entry in entries:
        index.setdefault(entry.account_id, []).append(entry)
    return index


def to_debit_normal(
    balance: Decimal,
    owner_type: AccountType | PartnerType,
    policy: BalancePolicy = DEFAULT_POLICY,
) -> Decimal:
    """Express a stored balance as debit minus credit."""
    if policy.is_debit_normal(owner_type):
        return balance
    return -balance
