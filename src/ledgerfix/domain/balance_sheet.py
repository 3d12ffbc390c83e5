"""Model-wide balance-sheet equality over stored balances."""

from decimal import Decimal

import structlog

from ledgerfix.domain.balance import DEFAULT_POLICY, DEFAULT_TOLERANCE, BalancePolicy, to_debit_normal
from ledgerfix.domain.entities import ZERO, AccountType
from ledgerfix.domain.issues import BalanceSheetReport
from ledgerfix.domain.snapshot import LedgerSnapshot

logger = structlog.get_logger(__name__)


def check_balance_sheet(
    snapshot: LedgerSnapshot,
    policy: BalancePolicy = DEFAULT_POLICY,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> BalanceSheetReport:
    """Evaluate assets == liabilities + equity from stored balances.

    A partner's position is its balance expressed as debit minus credit. A
    positive position (receivable or advance paid) counts as an asset, a
    negative one (payable or advance received) as a liability. Current
    earnings (revenue less expenses) are part of equity.
    """
    totals = {account_type: ZERO for account_type in AccountType}
    for account in snapshot.accounts:
        totals[account.type] += account.balance

    partner_assets = ZERO
    partner_liabilities = ZERO
    for partner in snapshot.partners:
        position = to_debit_normal(partner.balance, partner.type, policy)
        if position > 0:
            partner_assets += position
        else:
            partner_liabilities -= position

    report = BalanceSheetReport(
        account_assets=totals[AccountType.ASSET],
        account_liabilities=totals[AccountType.LIABILITY],
        account_equity=totals[AccountType.EQUITY],
        current_earnings=totals[AccountType.REVENUE] - totals[AccountType.EXPENSE],
        partner_assets=partner_assets,
        partner_liabilities=partner_liabilities,
        tolerance=tolerance,
    )
    logger.info("balance_sheet_checked", discrepancy=str(report.discrepancy), balanced=report.is_balanced)
    return report
