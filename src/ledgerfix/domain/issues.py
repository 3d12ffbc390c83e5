"""Tagged issue records, reports and run results.

Every detector returns records from this module. Each record kind is its own
class so the corrective poster can dispatch on the record type instead of
inspecting loosely-typed rows.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional

from ledgerfix.domain.entities import (
    ZERO,
    LedgerEntry,
    OwnerKind,
    PartnerType,
    TransactionType,
)


class IssueKind(str, Enum):
    """Detector that produced an issue."""

    UNBALANCED_TRANSACTION = "unbalanced-transaction"
    ORPHANED_TRANSACTION = "orphaned-transaction"
    BALANCE_MISMATCH = "balance-mismatch"
    MISSING_OPENING_BALANCE = "missing-opening-balance"
    MISSING_PURCHASE_POSTING = "missing-purchase-posting"
    MISSING_PRODUCTION_POSTING = "missing-production-posting"
    PRODUCTION_WITHOUT_OPENING = "production-without-opening"
    MISSING_COGS_POSTING = "missing-cogs-posting"
    DUPLICATE_POSTING = "duplicate-posting"
    ORPHANED_SOURCE_POSTING = "orphaned-source-posting"
    WRONG_LEG_COUNT = "wrong-leg-count"


class ImbalanceDirection(str, Enum):
    EXCESS_DEBIT = "excess debit"
    EXCESS_CREDIT = "excess credit"


@dataclass(frozen=True)
class Issue:
    """Common shape of every detected issue."""

    kind: ClassVar[IssueKind]
    fixable: ClassVar[bool] = True

    entity_id: str
    date: Optional[date]
    expected_value: Decimal
    reason: str


@dataclass(frozen=True)
class UnbalancedTransaction(Issue):
    """Transaction group whose debits and credits differ."""

    kind: ClassVar[IssueKind] = IssueKind.UNBALANCED_TRANSACTION

    transaction_id: str
    total_debit: Decimal
    total_credit: Decimal
    transaction_type: Optional[TransactionType] = None
    entry_count: int = 0

    @property
    def difference(self) -> Decimal:
        """Signed debit minus credit."""
        return self.total_debit - self.total_credit

    @property
    def imbalance(self) -> Decimal:
        return abs(self.difference)

    @property
    def direction(self) -> ImbalanceDirection:
        if self.difference > 0:
            return ImbalanceDirection.EXCESS_DEBIT
        return ImbalanceDirection.EXCESS_CREDIT


@dataclass(frozen=True)
class OrphanedTransaction(UnbalancedTransaction):
    """Transaction group with legs on only one side."""

    kind: ClassVar[IssueKind] = IssueKind.ORPHANED_TRANSACTION


@dataclass(frozen=True)
class BalanceMismatch(Issue):
    """Stored balance that disagrees with the ledger-derived balance."""

    kind: ClassVar[IssueKind] = IssueKind.BALANCE_MISMATCH

    owner_kind: OwnerKind
    owner_name: str
    stored: Decimal
    derived: Decimal

    @property
    def delta(self) -> Decimal:
        """Derived minus stored."""
        return self.derived - self.stored


@dataclass(frozen=True)
class MissingOpeningBalance(Issue):
    """Partner with a balance but no opening balance transaction."""

    kind: ClassVar[IssueKind] = IssueKind.MISSING_OPENING_BALANCE

    partner_name: str
    partner_type: PartnerType
    transaction_id: str


@dataclass(frozen=True)
class MissingPurchasePosting(Issue):
    """Purchase with landed cost but no retrofitted inventory posting."""

    kind: ClassVar[IssueKind] = IssueKind.MISSING_PURCHASE_POSTING

    transaction_id: str
    factory_id: Optional[str] = None


@dataclass(frozen=True)
class MissingProductionPosting(Issue):
    """Production without ledger entries or without its credit leg."""

    kind: ClassVar[IssueKind] = IssueKind.MISSING_PRODUCTION_POSTING

    transaction_id: str
    has_entries: bool = False
    has_opening: bool = False
    factory_id: Optional[str] = None


@dataclass(frozen=True)
class ProductionWithoutOpening(Issue):
    """Production dated on a day with no original opening.

    Informational: it points at raw material that was consumed without ever
    being opened, so it cannot be repaired by posting.
    """

    kind: ClassVar[IssueKind] = IssueKind.PRODUCTION_WITHOUT_OPENING
    fixable: ClassVar[bool] = False

    factory_id: Optional[str] = None


@dataclass(frozen=True)
class MissingCogsPosting(Issue):
    """Posted sales invoice without its COGS / inventory reduction legs."""

    kind: ClassVar[IssueKind] = IssueKind.MISSING_COGS_POSTING

    transaction_id: str
    invoice_no: str
    factory_id: Optional[str] = None


@dataclass(frozen=True)
class DuplicatePostingSuspect(Issue):
    """Transaction group that looks like it was posted more than once.

    ``estimated_duplicates`` comes from a leg-count heuristic and is not a
    verified count. ``exact_duplicate_legs`` counts legs repeated verbatim.
    """

    kind: ClassVar[IssueKind] = IssueKind.DUPLICATE_POSTING
    fixable: ClassVar[bool] = False

    transaction_id: str
    entry_count: int
    estimated_duplicates: int
    exact_duplicate_legs: int
    is_estimate: bool = True


@dataclass(frozen=True)
class OrphanedSourcePosting(Issue):
    """Source-document posting (PI-, INV-, OO-, PROD-) whose document is gone."""

    kind: ClassVar[IssueKind] = IssueKind.ORPHANED_SOURCE_POSTING

    transaction_id: str
    entry_ids: tuple[str, ...] = ()
    account_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class WrongLegCount(Issue):
    """Source-document posting with more legs than its kind allows."""

    kind: ClassVar[IssueKind] = IssueKind.WRONG_LEG_COUNT
    fixable: ClassVar[bool] = False

    transaction_id: str
    entry_count: int
    allowed: str


@dataclass(frozen=True)
class ImbalanceReport:
    """Output of the imbalance detector."""

    unbalanced_transactions: tuple[UnbalancedTransaction, ...]
    account_mismatches: tuple[BalanceMismatch, ...]
    partner_mismatches: tuple[BalanceMismatch, ...]
    total_debit: Decimal
    total_credit: Decimal
    unattributed_entries: tuple[LedgerEntry, ...] = ()
    tolerance: Decimal = Decimal("0.01")

    @property
    def net(self) -> Decimal:
        """Ledger-wide debit minus credit."""
        return self.total_debit - self.total_credit

    @property
    def has_global_imbalance(self) -> bool:
        return abs(self.net) > self.tolerance

    @property
    def is_clean(self) -> bool:
        return not (
            self.unbalanced_transactions
            or self.account_mismatches
            or self.partner_mismatches
            or self.has_global_imbalance
        )

    def issues(self) -> list[Issue]:
        """Flatten the report into fixable issue records."""
        return [
            *self.unbalanced_transactions,
            *self.account_mismatches,
            *self.partner_mismatches,
        ]


@dataclass(frozen=True)
class BalanceSheetReport:
    """Balance-sheet equality computed from stored balances."""

    account_assets: Decimal
    account_liabilities: Decimal
    account_equity: Decimal
    current_earnings: Decimal
    partner_assets: Decimal
    partner_liabilities: Decimal
    tolerance: Decimal = Decimal("0.01")

    @property
    def total_assets(self) -> Decimal:
        return self.account_assets + self.partner_assets

    @property
    def total_liabilities(self) -> Decimal:
        return self.account_liabilities + self.partner_liabilities

    @property
    def total_equity(self) -> Decimal:
        return self.account_equity + self.current_earnings

    @property
    def discrepancy(self) -> Decimal:
        return self.total_assets - (self.total_liabilities + self.total_equity)

    @property
    def is_balanced(self) -> bool:
        return abs(self.discrepancy) <= self.tolerance


@dataclass(frozen=True)
class BatchProgress:
    """Progress of a multi-batch write."""

    current: int
    total: int
    batch_index: int
    batch_count: int

    @property
    def done(self) -> bool:
        return self.current >= self.total


@dataclass(frozen=True)
class FixError:
    """A per-entity or per-batch failure recorded during a run."""

    entity_id: str
    message: str


@dataclass(frozen=True)
class FixResult:
    """Summary of a corrective run."""

    fixed_count: int
    skipped_count: int
    unsupported_count: int = 0
    errors: tuple[FixError, ...] = ()
    dry_run: bool = False
    planned_entries: tuple[LedgerEntry, ...] = ()

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def message(self) -> str:
        verb = "Would fix" if self.dry_run else "Fixed"
        parts = [f"{verb} {self.fixed_count}", f"skipped {self.skipped_count}"]
        if self.unsupported_count:
            parts.append(f"{self.unsupported_count} not auto-fixable")
        if self.errors:
            parts.append(f"{len(self.errors)} error{'s' if len(self.errors) != 1 else ''}")
        return ", ".join(parts)


@dataclass(frozen=True)
class RecalculationResult:
    """Summary of a balance recalculation run."""

    updated: int
    unchanged: int
    errors: tuple[FixError, ...] = ()

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class AlignmentResult:
    """Outcome of aligning one owner's balance to a target."""

    success: bool
    message: str
    adjustment_amount: Decimal = ZERO
    transaction_id: Optional[str] = None


@dataclass(frozen=True)
class CleanupResult:
    """Outcome of removing postings whose source document is gone."""

    deleted_count: int = 0
    transactions: tuple[str, ...] = ()
    skipped_count: int = 0
    wrong_leg_counts: tuple[WrongLegCount, ...] = ()
    errors: tuple[FixError, ...] = ()
    dry_run: bool = False

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class RenumberResult:
    """Outcome of renumbering one entity kind."""

    kind: str
    mapping: dict[str, str] = field(default_factory=dict)
    created: int = 0
    references_updated: int = 0
    deleted: int = 0
    errors: tuple[FixError, ...] = ()
    dry_run: bool = False

    @property
    def success(self) -> bool:
        return not self.errors
