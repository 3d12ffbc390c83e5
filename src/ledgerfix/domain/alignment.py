"""Retroactive alignment of one account or partner balance to a target value."""

from datetime import date, timedelta
from decimal import Decimal
from typing import Mapping, Optional

import structlog

from ledgerfix.database import collections
from ledgerfix.database import mappers
from ledgerfix.database.base import LedgerStore
from ledgerfix.domain.balance import DEFAULT_POLICY, DEFAULT_TOLERANCE, BalancePolicy, derive_balance
from ledgerfix.domain.conventions import JOURNAL_VOUCHER_PREFIX, journal_voucher_id, next_voucher_number
from ledgerfix.domain.entities import ZERO, Account, LedgerEntry, OwnerKind, Partner, TransactionType
from ledgerfix.domain.errors import NotFoundError, ValidationError, owner_not_found
from ledgerfix.domain.issues import AlignmentResult
from ledgerfix.domain.ledger import LedgerService
from ledgerfix.domain.roles import AccountRole, AccountRoleMap
from ledgerfix.utils.date_parser import start_of_year

logger = structlog.get_logger(__name__)


class BalanceAlignmentService:
    """Posts journal vouchers that move an owner's balance to a target."""

    def __init__(
        self,
        db: LedgerStore,
        roles: Optional[AccountRoleMap] = None,
        account_roles: Optional[Mapping[str, str]] = None,
        policy: BalancePolicy = DEFAULT_POLICY,
        tolerance: Decimal = DEFAULT_TOLERANCE,
        factory_id: Optional[str] = None,
    ):
        self.db = db
        self.roles = roles
        self.account_roles = dict(account_roles or {})
        self.policy = policy
        self.tolerance = tolerance
        self.factory_id = factory_id

    def _load_owner(self, owner_id: str, owner_kind: OwnerKind) -> Account | Partner:
        if owner_kind == OwnerKind.ACCOUNT:
            doc = self.db.get(collections.ACCOUNTS, owner_id)
            mapper = mappers.account_to_domain
        else:
            doc = self.db.get(collections.PARTNERS, owner_id)
            mapper = mappers.partner_to_domain
        if doc is None:
            raise NotFoundError(owner_not_found(owner_kind.value, owner_id))
        return mapper(doc)

    def next_voucher_id(self) -> str:
        """Return ``JV-<n>`` with n one past the highest voucher number in the ledger."""
        transaction_ids = (str(doc.get("transactionId") or "") for doc in self.db.get_all(collections.LEDGER))
        return journal_voucher_id(next_voucher_number(transaction_ids, JOURNAL_VOUCHER_PREFIX))

    def align_balance(
        self,
        owner_id: str,
        owner_kind: OwnerKind,
        target: Decimal,
        today: Optional[date] = None,
    ) -> AlignmentResult:
        """Align an owner's ledger balance to ``target``.

        The current balance reported is derived from the owner's regular
        entries only. The voucher is sized against every entry, earlier
        adjustments included, so aligning twice to the same target posts
        nothing the second time.

        Args:
            owner_id: Account or partner id
            owner_kind: Whether ``owner_id`` is an account or a partner
            target: Balance to reach, in the owner's own sign convention
            today: Reference date when the owner has no entries yet

        Returns:
            AlignmentResult with the posted amount and voucher id

        Raises:
            NotFoundError: If the owner does not exist
            ValidationError: If no adjustment account can be resolved or the
                owner is the adjustment account itself
        """
        owner = self._load_owner(owner_id, owner_kind)
        entries = [
            mappers.ledger_entry_to_domain(doc)
            for doc in self.db.query_by_field(collections.LEDGER, "accountId", owner.id)
        ]
        regular = [entry for entry in entries if not entry.is_adjustment]
        current = derive_balance(regular, owner.type, self.policy)
        adjustment = target - derive_balance(entries, owner.type, self.policy)

        if abs(adjustment) <= self.tolerance:
            return AlignmentResult(
                success=True,
                message="Balance already matches target. No adjustment needed.",
                adjustment_amount=ZERO,
            )

        roles = self.roles
        if roles is None:
            accounts = [mappers.account_to_domain(doc) for doc in self.db.get_all(collections.ACCOUNTS)]
            roles = AccountRoleMap.resolve(accounts, self.account_roles)
        contra = roles.account(AccountRole.BALANCE_ADJUSTMENT)
        if contra.id == owner.id:
            raise ValidationError(f"{owner.name} is the balance adjustment account and cannot be aligned against itself")

        if regular:
            posted_on = min(entry.date for entry in regular) - timedelta(days=1)
        else:
            posted_on = start_of_year(today)

        transaction_id = self.next_voucher_id()
        amount = abs(adjustment)
        # Raising a debit-normal balance is a debit; raising a credit-normal one is a credit
        debit_owner = (adjustment > 0) == self.policy.is_debit_normal(owner.type)
        common = dict(
            id=None,
            transaction_id=transaction_id,
            date=posted_on,
            transaction_type=TransactionType.JOURNAL_VOUCHER,
            fcy_amount=amount,
            factory_id=self.factory_id,
            is_adjustment=True,
        )
        owner_leg = LedgerEntry(
            account_id=owner.id,
            account_name=owner.name,
            debit=amount if debit_owner else ZERO,
            credit=ZERO if debit_owner else amount,
            narration=f"Balance Adjustment - Target: {target:.2f}, Current: {current:.2f}",
            partner_id=owner.id if owner_kind == OwnerKind.PARTNER else None,
            **common,
        )
        contra_leg = LedgerEntry(
            account_id=contra.id,
            account_name=contra.name,
            debit=ZERO if debit_owner else amount,
            credit=amount if debit_owner else ZERO,
            narration=f"Balance Adjustment - {owner.name}",
            **common,
        )

        LedgerService(self.db, factory_id=self.factory_id, policy=self.policy, tolerance=self.tolerance).post_transaction(
            [owner_leg, contra_leg]
        )
        logger.info("balance_aligned", owner_id=owner.id, transaction_id=transaction_id, adjustment=str(adjustment))
        return AlignmentResult(
            success=True,
            message=f"Balance adjustment posted successfully. Transaction: {transaction_id}",
            adjustment_amount=adjustment,
            transaction_id=transaction_id,
        )
