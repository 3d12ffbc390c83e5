"""Imbalance detection over a ledger snapshot."""

from decimal import Decimal
from typing import Iterable

import structlog

from ledgerfix.domain.balance import (
    DEFAULT_POLICY,
    DEFAULT_TOLERANCE,
    BalancePolicy,
    derive_balance,
    index_by_owner,
    sum_credits,
    sum_debits,
)
from ledgerfix.domain.entities import Account, LedgerEntry, OwnerKind, Partner
from ledgerfix.domain.grouping import group_by_transaction, group_totals
from ledgerfix.domain.issues import (
    BalanceMismatch,
    ImbalanceReport,
    UnbalancedTransaction,
)
from ledgerfix.domain.snapshot import LedgerSnapshot

logger = structlog.get_logger(__name__)


def find_unbalanced_transactions(
    entries: Iterable[LedgerEntry],
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> list[UnbalancedTransaction]:
    """Return every transaction group whose debits and credits differ beyond tolerance."""
    unbalanced = []
    for transaction_id, group in group_by_transaction(entries).items():
        debit, credit = group_totals(group)
        difference = debit - credit
        if abs(difference) <= tolerance:
            continue
        side = "debit" if difference > 0 else "credit"
        unbalanced.append(
            UnbalancedTransaction(
                entity_id=transaction_id,
                date=group[0].date,
                expected_value=abs(difference),
                reason=f"Excess {side} of {abs(difference):.2f}",
                transaction_id=transaction_id,
                total_debit=debit,
                total_credit=credit,
                transaction_type=group[0].transaction_type,
                entry_count=len(group),
            )
        )
    return unbalanced


def _mismatch(
    owner: Account | Partner,
    owner_kind: OwnerKind,
    entries: list[LedgerEntry],
    policy: BalancePolicy,
    tolerance: Decimal,
) -> BalanceMismatch | None:
    derived = derive_balance(entries, owner.type, policy)
    if abs(derived - owner.balance) <= tolerance:
        return None
    return BalanceMismatch(
        entity_id=owner.id,
        date=None,
        expected_value=derived,
        reason=f"Stored {owner.balance:.2f}, ledger gives {derived:.2f}",
        owner_kind=owner_kind,
        owner_name=owner.name,
        stored=owner.balance,
        derived=derived,
    )


def find_balance_mismatches(
    snapshot: LedgerSnapshot,
    policy: BalancePolicy = DEFAULT_POLICY,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> tuple[list[BalanceMismatch], list[BalanceMismatch]]:
    """Compare stored balances with ledger-derived balances.

    Stored balances cover the whole ledger, so the derivation ignores the
    snapshot's factory filter.

    Returns:
        ``(account_mismatches, partner_mismatches)``
    """
    by_owner = index_by_owner(snapshot.balance_entries)
    accounts = [
        mismatch
        for account in snapshot.accounts
        if (mismatch := _mismatch(account, OwnerKind.ACCOUNT, by_owner.get(account.id, []), policy, tolerance))
    ]
    partners = [
        mismatch
        for partner in snapshot.partners
        if (mismatch := _mismatch(partner, OwnerKind.PARTNER, by_owner.get(partner.id, []), policy, tolerance))
    ]
    return accounts, partners


def detect_imbalances(
    snapshot: LedgerSnapshot,
    policy: BalancePolicy = DEFAULT_POLICY,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> ImbalanceReport:
    """Run the per-transaction, stored-vs-derived and ledger-wide checks.

    Args:
        snapshot: Ledger snapshot to inspect
        policy: Partner sign convention
        tolerance: Largest difference treated as balanced

    Returns:
        ImbalanceReport listing every offending transaction, account and
        partner, the ledger-wide totals, and entries posted to ids that are
        neither an account nor a partner.
    """
    unbalanced = find_unbalanced_transactions(snapshot.entries, tolerance)
    account_mismatches, partner_mismatches = find_balance_mismatches(snapshot, policy, tolerance)

    known_owners = {account.id for account in snapshot.accounts} | {partner.id for partner in snapshot.partners}
    unattributed = tuple(entry for entry in snapshot.entries if entry.account_id not in known_owners)

    report = ImbalanceReport(
        unbalanced_transactions=tuple(unbalanced),
        account_mismatches=tuple(account_mismatches),
        partner_mismatches=tuple(partner_mismatches),
        total_debit=sum_debits(snapshot.entries),
        total_credit=sum_credits(snapshot.entries),
        unattributed_entries=unattributed,
        tolerance=tolerance,
    )
    logger.info(
        "imbalance_scan_finished",
        unbalanced=len(unbalanced),
        account_mismatches=len(account_mismatches),
        partner_mismatches=len(partner_mismatches),
        unattributed=len(unattributed),
        net=str(report.net),
    )
    return report
