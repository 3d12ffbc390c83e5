"""Corrective poster: turns detected issues into balancing and retrofitted postings.

Every issue is re-checked against the live store, plus whatever this run has
already queued, right before its fix is planned. An issue that no longer
holds is counted as skipped, which makes a rerun over the same issues a no-op.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Sequence

import structlog

from ledgerfix.database import collections
from ledgerfix.database import mappers
from ledgerfix.database.base import LedgerStore, WriteOperation
from ledgerfix.domain.balance import (
    DEFAULT_POLICY,
    DEFAULT_TOLERANCE,
    BalancePolicy,
    derive_balance,
    to_debit_normal,
)
from ledgerfix.domain.batching import BatchWriter, ProgressCallback, WriteUnit
from ledgerfix.domain.conventions import (
    PRODUCTION_PREFIX,
    PURCHASE_INVOICE_PREFIX,
    opening_balance_id,
    purchase_opening_id,
)
from ledgerfix.domain.entities import (
    ZERO,
    Account,
    LedgerEntry,
    OwnerKind,
    Partner,
    TransactionType,
)
from ledgerfix.domain.errors import NotFoundError, ValidationError, owner_not_found
from ledgerfix.domain.grouping import group_totals
from ledgerfix.domain.issues import (
    BalanceMismatch,
    FixError,
    FixResult,
    Issue,
    MissingCogsPosting,
    MissingOpeningBalance,
    MissingProductionPosting,
    MissingPurchasePosting,
    UnbalancedTransaction,
)
from ledgerfix.domain.missing_postings import has_cogs_posting, lacks_production_credit
from ledgerfix.domain.recalculate import BalanceRecalculator
from ledgerfix.domain.roles import AccountRole, AccountRoleMap
from ledgerfix.utils.date_parser import end_of_previous_year

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")


@dataclass
class _RunState:
    """Entries and balance writes queued by the current run, not yet committed."""

    by_transaction: dict[str, list[LedgerEntry]] = field(default_factory=dict)
    by_owner: dict[str, list[LedgerEntry]] = field(default_factory=dict)
    balance_updates: set[str] = field(default_factory=set)

    def add(self, entries: Iterable[LedgerEntry]) -> None:
        for entry in entries:
            self.by_transaction.setdefault(entry.transaction_id, []).append(entry)
            self.by_owner.setdefault(entry.account_id, []).append(entry)


@dataclass(frozen=True)
class _Plan:
    entity_id: str
    entries: tuple[LedgerEntry, ...] = ()
    operations: tuple[WriteOperation, ...] = ()


def fcy_amount(amount: Decimal, exchange_rate: Decimal) -> Decimal:
    """Foreign-currency equivalent of a base-currency amount."""
    if exchange_rate <= 0 or exchange_rate == 1:
        return amount
    return (amount / exchange_rate).quantize(CENT)


def required_roles(issues: Iterable[Issue]) -> set[AccountRole]:
    """Account roles a set of issues needs before any fix can be written."""
    roles: set[AccountRole] = set()
    for issue in issues:
        if isinstance(issue, UnbalancedTransaction):
            roles.add(AccountRole.BALANCE_ADJUSTMENT)
            if issue.transaction_id.startswith(PRODUCTION_PREFIX):
                roles.add(AccountRole.PRODUCTION_GAIN)
            elif issue.transaction_id.startswith(PURCHASE_INVOICE_PREFIX) and issue.difference < 0:
                roles.add(AccountRole.RAW_MATERIALS)
        elif isinstance(issue, MissingOpeningBalance):
            roles.add(AccountRole.OPENING_EQUITY)
        elif isinstance(issue, MissingPurchasePosting):
            roles.update({AccountRole.RAW_MATERIALS, AccountRole.CAPITAL})
        elif isinstance(issue, MissingProductionPosting):
            roles.update({AccountRole.FINISHED_GOODS, AccountRole.PRODUCTION_GAIN})
            if issue.has_opening:
                roles.add(AccountRole.WORK_IN_PROGRESS)
        elif isinstance(issue, MissingCogsPosting):
            roles.update({AccountRole.COST_OF_GOODS_SOLD, AccountRole.FINISHED_GOODS})
    return roles


class CorrectivePoster:
    """Service that repairs detected ledger issues."""

    def __init__(
        self,
        db: LedgerStore,
        roles: Optional[AccountRoleMap] = None,
        account_roles: Optional[Mapping[str, str]] = None,
        policy: BalancePolicy = DEFAULT_POLICY,
        tolerance: Decimal = DEFAULT_TOLERANCE,
        max_batch_operations: Optional[int] = None,
        today: Optional[date] = None,
    ):
        """Initialize corrective poster.

        Args:
            db: Ledger store
            roles: Pre-resolved account roles. Resolved from the store's
                chart of accounts at the start of each run when None.
            account_roles: Explicit role → account id mapping used when
                resolving roles
            policy: Partner sign convention
            tolerance: Largest difference treated as balanced
            max_batch_operations: Optional lower batch ceiling
            today: Reference date for opening balances (defaults to today)
        """
        self.db = db
        self.roles = roles
        self.account_roles = dict(account_roles or {})
        self.policy = policy
        self.tolerance = tolerance
        self.max_batch_operations = max_batch_operations
        self.today = today

    def _resolve_roles(self) -> AccountRoleMap:
        if self.roles is not None:
            return self.roles
        accounts = [mappers.account_to_domain(doc) for doc in self.db.get_all(collections.ACCOUNTS)]
        return AccountRoleMap.resolve(accounts, self.account_roles)

    def apply_fix(
        self,
        issues: Sequence[Issue],
        dry_run: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> FixResult:
        """Fix the given issues.

        Args:
            issues: Issues from the detectors
            dry_run: Plan and count fixes without writing anything
            on_progress: Batch progress callback

        Returns:
            FixResult. Issues already resolved count as skipped; issues that
            cannot be fixed automatically count as unsupported; per-entity
            and per-batch failures are listed in ``errors``.

        Raises:
            ValidationError: If an account role the issues need cannot be
                resolved. Raised before anything is written.
        """
        fixable = [issue for issue in issues if issue.fixable]
        unsupported = len(issues) - len(fixable)

        roles = self._resolve_roles()
        roles.require(required_roles(fixable))

        state = _RunState()
        plans: list[_Plan] = []
        skipped = 0
        errors: list[FixError] = []
        openings: Optional[set[tuple[date, Optional[str]]]] = None

        for issue in fixable:
            try:
                if isinstance(issue, MissingProductionPosting) and openings is None:
                    openings = self._load_openings()
                plan = self._plan(issue, roles, state, openings or set())
            except Exception as e:
                logger.error("fix_failed", entity_id=issue.entity_id, kind=issue.kind.value, error=str(e))
                errors.append(FixError(issue.entity_id, str(e)))
                continue
            if plan is None:
                skipped += 1
                logger.debug("fix_skipped", entity_id=issue.entity_id, kind=issue.kind.value)
                continue
            state.add(plan.entries)
            plans.append(plan)

        planned_entries = tuple(entry for plan in plans for entry in plan.entries)
        if dry_run:
            return FixResult(
                fixed_count=len(plans),
                skipped_count=skipped,
                unsupported_count=unsupported,
                errors=tuple(errors),
                dry_run=True,
                planned_entries=planned_entries,
            )

        units = [
            WriteUnit(
                plan.entity_id,
                tuple(
                    WriteOperation.set(collections.LEDGER, mappers.ledger_entry_to_document(entry))
                    for entry in plan.entries
                )
                + plan.operations,
            )
            for plan in plans
        ]
        writer = BatchWriter(self.db, on_progress=on_progress, max_operations=self.max_batch_operations)
        written = writer.write(units)
        errors.extend(written.errors)

        touched = {
            op.data["accountId"]
            for unit in written.written
            for op in unit.operations
            if op.collection == collections.LEDGER
        }
        if touched:
            recalculated = BalanceRecalculator(
                self.db, self.policy, max_batch_operations=self.max_batch_operations
            ).recalculate_owners(touched)
            errors.extend(recalculated.errors)

        result = FixResult(
            fixed_count=len(written.written),
            skipped_count=skipped,
            unsupported_count=unsupported,
            errors=tuple(errors),
            planned_entries=planned_entries,
        )
        logger.info(
            "fix_run_finished",
            fixed=result.fixed_count,
            skipped=result.skipped_count,
            unsupported=result.unsupported_count,
            errors=len(result.errors),
        )
        return result

    def _plan(
        self,
        issue: Issue,
        roles: AccountRoleMap,
        state: _RunState,
        openings: set[tuple[date, Optional[str]]],
    ) -> Optional[_Plan]:
        if isinstance(issue, UnbalancedTransaction):
            return self._plan_balancing_leg(issue, roles, state)
        if isinstance(issue, BalanceMismatch):
            return self._plan_balance_overwrite(issue, state)
        if isinstance(issue, MissingOpeningBalance):
            return self._plan_opening_balance(issue, roles, state)
        if isinstance(issue, MissingPurchasePosting):
            return self._plan_purchase_posting(issue, roles, state)
        if isinstance(issue, MissingProductionPosting):
            return self._plan_production_posting(issue, roles, state, openings)
        if isinstance(issue, MissingCogsPosting):
            return self._plan_cogs_posting(issue, roles, state)
        raise ValidationError(f"No automatic fix for {issue.kind.value} issues")

    def _live_group(self, transaction_id: str, state: _RunState) -> list[LedgerEntry]:
        docs = self.db.get_transaction(transaction_id)
        # A leg stored without a transaction id is grouped under its own id
        loose = self.db.get(collections.LEDGER, transaction_id)
        if loose is not None and not loose.get("transactionId"):
            docs = [loose, *docs]
        stored = [mappers.ledger_entry_to_domain(doc) for doc in docs]
        return stored + state.by_transaction.get(transaction_id, [])

    def _load_openings(self) -> set[tuple[date, Optional[str]]]:
        openings = [mappers.original_opening_to_domain(doc) for doc in self.db.get_all(collections.ORIGINAL_OPENINGS)]
        return {(opening.date, opening.factory_id) for opening in openings}

    def _plan_balancing_leg(
        self, issue: UnbalancedTransaction, roles: AccountRoleMap, state: _RunState
    ) -> Optional[_Plan]:
        group = self._live_group(issue.transaction_id, state)
        if not group:
            return None
        debit, credit = group_totals(group)
        difference = debit - credit
        if abs(difference) <= self.tolerance:
            return None

        if issue.transaction_id.startswith(PRODUCTION_PREFIX):
            account = roles.account(AccountRole.PRODUCTION_GAIN)
        elif issue.transaction_id.startswith(PURCHASE_INVOICE_PREFIX) and difference < 0:
            account = roles.account(AccountRole.RAW_MATERIALS)
        else:
            account = roles.account(AccountRole.BALANCE_ADJUSTMENT)

        first = group[0]
        leg = LedgerEntry(
            id=None,
            transaction_id=issue.transaction_id,
            date=first.date,
            transaction_type=first.transaction_type,
            account_id=account.id,
            account_name=account.name,
            debit=-difference if difference < 0 else ZERO,
            credit=difference if difference > 0 else ZERO,
            currency=first.currency,
            exchange_rate=first.exchange_rate,
            fcy_amount=fcy_amount(abs(difference), first.exchange_rate),
            narration=f"Balancing entry: {issue.transaction_id}",
            factory_id=first.factory_id,
            is_adjustment=True,
        )
        return _Plan(issue.entity_id, (leg,))

    def _plan_balance_overwrite(self, issue: BalanceMismatch, state: _RunState) -> Optional[_Plan]:
        if issue.entity_id in state.balance_updates:
            return None
        collection = collections.ACCOUNTS if issue.owner_kind == OwnerKind.ACCOUNT else collections.PARTNERS
        doc = self.db.get(collection, issue.entity_id)
        if doc is None:
            raise NotFoundError(owner_not_found(issue.owner_kind.value, issue.entity_id))
        owner: Account | Partner = (
            mappers.account_to_domain(doc) if issue.owner_kind == OwnerKind.ACCOUNT else mappers.partner_to_domain(doc)
        )
        entries = [
            mappers.ledger_entry_to_domain(entry_doc)
            for entry_doc in self.db.query_by_field(collections.LEDGER, "accountId", owner.id)
        ]
        entries += state.by_owner.get(owner.id, [])
        derived = derive_balance(entries, owner.type, self.policy)
        if abs(derived - owner.balance) <= self.tolerance:
            return None
        state.balance_updates.add(owner.id)
        operation = WriteOperation.update(collection, owner.id, {"balance": mappers.decimal_to_document(derived)})
        return _Plan(owner.id, operations=(operation,))

    def _plan_opening_balance(
        self, issue: MissingOpeningBalance, roles: AccountRoleMap, state: _RunState
    ) -> Optional[_Plan]:
        doc = self.db.get(collections.PARTNERS, issue.entity_id)
        if doc is None:
            raise NotFoundError(owner_not_found(OwnerKind.PARTNER.value, issue.entity_id))
        partner = mappers.partner_to_domain(doc)
        if abs(partner.balance) <= self.tolerance:
            return None
        transaction_id = opening_balance_id(partner.id)
        group = self._live_group(transaction_id, state)
        if any(entry.transaction_type == TransactionType.OPENING_BALANCE for entry in group):
            return None

        equity = roles.account(AccountRole.OPENING_EQUITY)
        amount = abs(partner.balance)
        partner_debit = to_debit_normal(partner.balance, partner.type, self.policy) > 0
        posted_on = end_of_previous_year(self.today)
        common = dict(
            transaction_id=transaction_id,
            date=posted_on,
            transaction_type=TransactionType.OPENING_BALANCE,
            fcy_amount=amount,
            is_adjustment=True,
        )
        partner_leg = LedgerEntry(
            id=None,
            account_id=partner.id,
            account_name=partner.name,
            debit=amount if partner_debit else ZERO,
            credit=ZERO if partner_debit else amount,
            narration=f"Opening Balance - {partner.name}",
            partner_id=partner.id,
            **common,
        )
        equity_leg = LedgerEntry(
            id=None,
            account_id=equity.id,
            account_name=equity.name,
            debit=ZERO if partner_debit else amount,
            credit=amount if partner_debit else ZERO,
            narration=f"Opening Balance - {partner.name}",
            **common,
        )
        return _Plan(partner.id, (partner_leg, equity_leg))

    def _plan_purchase_posting(
        self, issue: MissingPurchasePosting, roles: AccountRoleMap, state: _RunState
    ) -> Optional[_Plan]:
        transaction_id = purchase_opening_id(issue.entity_id)
        if self._live_group(transaction_id, state):
            return None
        doc = self.db.get(collections.PURCHASES, issue.entity_id)
        if doc is None:
            raise NotFoundError(f"Purchase {issue.entity_id} not found")
        purchase = mappers.purchase_to_domain(doc)
        if purchase.total_landed_cost <= 0:
            return None

        inventory = roles.account(AccountRole.RAW_MATERIALS)
        capital = roles.account(AccountRole.CAPITAL)
        amount = purchase.total_landed_cost
        common = dict(
            id=None,
            transaction_id=transaction_id,
            date=purchase.date,
            transaction_type=TransactionType.PURCHASE_INVOICE,
            fcy_amount=amount,
            factory_id=purchase.factory_id,
            is_adjustment=True,
        )
        return _Plan(
            purchase.id,
            (
                LedgerEntry(
                    account_id=inventory.id,
                    account_name=inventory.name,
                    debit=amount,
                    narration=f"Raw material inventory: batch {purchase.batch_number}",
                    **common,
                ),
                LedgerEntry(
                    account_id=capital.id,
                    account_name=capital.name,
                    credit=amount,
                    narration=f"Opening purchase: batch {purchase.batch_number}",
                    **common,
                ),
            ),
        )

    def _plan_production_posting(
        self,
        issue: MissingProductionPosting,
        roles: AccountRoleMap,
        state: _RunState,
        openings: set[tuple[date, Optional[str]]],
    ) -> Optional[_Plan]:
        group = self._live_group(issue.transaction_id, state)
        production_date = issue.date or (group[0].date if group else None)
        if production_date is None:
            raise ValidationError(f"Production {issue.entity_id} has no date")
        has_opening = (production_date, issue.factory_id) in openings
        credit_role = AccountRole.WORK_IN_PROGRESS if has_opening else AccountRole.PRODUCTION_GAIN
        credit_account = roles.account(credit_role)

        if group:
            if not lacks_production_credit(group, roles):
                return None
            debit, credit = group_totals(group)
            amount = debit - credit
            if amount <= self.tolerance:
                raise ValidationError(
                    f"{issue.transaction_id} lacks a WIP or gain credit but is not short of credit"
                )
            first = group[0]
            leg = LedgerEntry(
                id=None,
                transaction_id=issue.transaction_id,
                date=first.date,
                transaction_type=first.transaction_type,
                account_id=credit_account.id,
                account_name=credit_account.name,
                credit=amount,
                currency=first.currency,
                exchange_rate=first.exchange_rate,
                fcy_amount=fcy_amount(amount, first.exchange_rate),
                narration=f"Production credit: {issue.transaction_id}",
                factory_id=first.factory_id,
                is_adjustment=True,
            )
            return _Plan(issue.entity_id, (leg,))

        amount = issue.expected_value
        if amount <= 0:
            raise ValidationError(f"Production {issue.entity_id} has no production price or item average cost")
        finished_goods = roles.account(AccountRole.FINISHED_GOODS)
        common = dict(
            id=None,
            transaction_id=issue.transaction_id,
            date=production_date,
            transaction_type=TransactionType.PRODUCTION,
            fcy_amount=amount,
            factory_id=issue.factory_id,
            is_adjustment=True,
        )
        return _Plan(
            issue.entity_id,
            (
                LedgerEntry(
                    account_id=finished_goods.id,
                    account_name=finished_goods.name,
                    debit=amount,
                    narration=f"Production: {issue.entity_id}",
                    **common,
                ),
                LedgerEntry(
                    account_id=credit_account.id,
                    account_name=credit_account.name,
                    credit=amount,
                    narration=f"Production credit: {issue.entity_id}",
                    **common,
                ),
            ),
        )

    def _plan_cogs_posting(
        self, issue: MissingCogsPosting, roles: AccountRoleMap, state: _RunState
    ) -> Optional[_Plan]:
        if has_cogs_posting(self._live_group(issue.transaction_id, state), roles):
            return None
        amount = issue.expected_value
        if amount <= 0:
            raise ValidationError(f"Invoice {issue.invoice_no} has no item average cost to post")
        if issue.date is None:
            raise ValidationError(f"Invoice {issue.invoice_no} has no date")

        cogs = roles.account(AccountRole.COST_OF_GOODS_SOLD)
        finished_goods = roles.account(AccountRole.FINISHED_GOODS)
        common = dict(
            id=None,
            transaction_id=issue.transaction_id,
            date=issue.date,
            transaction_type=TransactionType.SALES_INVOICE,
            fcy_amount=amount,
            factory_id=issue.factory_id,
            is_adjustment=True,
        )
        return _Plan(
            issue.entity_id,
            (
                LedgerEntry(
                    account_id=cogs.id,
                    account_name=cogs.name,
                    debit=amount,
                    narration=f"COGS: {issue.invoice_no}",
                    **common,
                ),
                LedgerEntry(
                    account_id=finished_goods.id,
                    account_name=finished_goods.name,
                    credit=amount,
                    narration=f"Inventory Reduction: {issue.invoice_no}",
                    **common,
                ),
            ),
        )
