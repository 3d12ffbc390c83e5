"""Logical account roles used by corrective postings.

Corrective postings never search the chart of accounts by name while they
run. Roles are resolved once, from an explicit role → account id mapping with
a name-based fallback chain, and the caller validates the roles it needs
before writing anything.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Optional

import structlog

from ledgerfix.domain.entities import Account, AccountType
from ledgerfix.domain.errors import ValidationError, unresolved_role

logger = structlog.get_logger(__name__)


class AccountRole(str, Enum):
    BALANCE_ADJUSTMENT = "BALANCE_ADJUSTMENT"
    CAPITAL = "CAPITAL"
    OPENING_EQUITY = "OPENING_EQUITY"
    PRODUCTION_GAIN = "PRODUCTION_GAIN"
    WORK_IN_PROGRESS = "WORK_IN_PROGRESS"
    FINISHED_GOODS = "FINISHED_GOODS"
    RAW_MATERIALS = "RAW_MATERIALS"
    COST_OF_GOODS_SOLD = "COST_OF_GOODS_SOLD"


# Name fragments tried in order (case-insensitive) when a role is not mapped.
ROLE_NAME_HINTS: dict[AccountRole, tuple[str, ...]] = {
    AccountRole.BALANCE_ADJUSTMENT: ("Balance Adjustment", "Suspense"),
    AccountRole.CAPITAL: ("Capital", "Retained Earnings"),
    AccountRole.OPENING_EQUITY: ("Opening Equity", "Opening Balance"),
    AccountRole.PRODUCTION_GAIN: ("Production Gain",),
    AccountRole.WORK_IN_PROGRESS: ("Work in Progress", "WIP"),
    AccountRole.FINISHED_GOODS: ("Finished Goods",),
    AccountRole.RAW_MATERIALS: ("Raw Material",),
    AccountRole.COST_OF_GOODS_SOLD: ("Cost of Goods Sold", "COGS"),
}

# Role used when neither the mapping nor the name hints find an account.
ROLE_FALLBACKS: dict[AccountRole, AccountRole] = {
    AccountRole.BALANCE_ADJUSTMENT: AccountRole.CAPITAL,
    AccountRole.OPENING_EQUITY: AccountRole.CAPITAL,
    AccountRole.PRODUCTION_GAIN: AccountRole.CAPITAL,
}

CAPITAL_ACCOUNT_CODE = "3000"


@dataclass(frozen=True)
class AccountRoleMap:
    """Resolved role → account table."""

    accounts: Mapping[AccountRole, Account] = field(default_factory=dict)
    attempted: Mapping[AccountRole, tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def resolve(
        cls,
        accounts: Iterable[Account],
        mapping: Optional[Mapping[str, str]] = None,
    ) -> "AccountRoleMap":
        """Resolve every role against a chart of accounts.

        Args:
            accounts: Chart of accounts
            mapping: Explicit role name → account id overrides

        Returns:
            AccountRoleMap. Roles that could not be resolved are absent from
            ``accounts`` and keep the names tried in ``attempted``.

        Raises:
            ValidationError: If the mapping names an unknown role or account
        """
        accounts = list(accounts)
        by_id = {account.id: account for account in accounts}
        explicit: dict[AccountRole, Account] = {}
        for role_name, account_id in (mapping or {}).items():
            try:
                role = AccountRole(role_name.strip().upper())
            except ValueError as e:
                raise ValidationError(f"Unknown account role '{role_name}'") from e
            if account_id not in by_id:
                raise ValidationError(
                    f"Account role {role.value} is mapped to unknown account '{account_id}'"
                )
            explicit[role] = by_id[account_id]

        resolved: dict[AccountRole, Account] = {}
        attempted: dict[AccountRole, tuple[str, ...]] = {}

        def lookup(role: AccountRole) -> Optional[Account]:
            if role in resolved:
                return resolved[role]
            tried: list[str] = []
            account = explicit.get(role)
            if account is None:
                tried.append(f"mapping:{role.value}")
                for hint in ROLE_NAME_HINTS[role]:
                    tried.append(hint)
                    account = _find_by_name(accounts, hint)
                    if account is not None:
                        break
            if account is None and role == AccountRole.CAPITAL:
                tried.append(f"code {CAPITAL_ACCOUNT_CODE}")
                account = next((a for a in accounts if a.code == CAPITAL_ACCOUNT_CODE), None)
                if account is None:
                    tried.append("any EQUITY account")
                    account = next((a for a in accounts if a.type == AccountType.EQUITY), None)
            if account is None and role in ROLE_FALLBACKS:
                account = lookup(ROLE_FALLBACKS[role])
                tried.extend(attempted.get(ROLE_FALLBACKS[role], ()))
            if account is None:
                attempted[role] = tuple(tried)
            else:
                resolved[role] = account
            return account

        for role in AccountRole:
            lookup(role)

        logger.debug(
            "account_roles_resolved",
            resolved={role.value: account.id for role, account in resolved.items()},
            unresolved=[role.value for role in attempted],
        )
        return cls(accounts=resolved, attempted=attempted)

    def get(self, role: AccountRole) -> Optional[Account]:
        return self.accounts.get(role)

    def account(self, role: AccountRole) -> Account:
        """Return the account for a role.

        Raises:
            ValidationError: If the role is unresolved
        """
        account = self.accounts.get(role)
        if account is None:
            raise ValidationError(unresolved_role(role.value, self.attempted.get(role, ())))
        return account

    def account_id(self, role: AccountRole) -> Optional[str]:
        account = self.accounts.get(role)
        return account.id if account is not None else None

    def require(self, roles: Iterable[AccountRole]) -> None:
        """Fail fast if any of the given roles is unresolved.

        Raises:
            ValidationError: Naming every missing role and the names tried
        """
        missing = [role for role in dict.fromkeys(roles) if role not in self.accounts]
        if missing:
            raise ValidationError(
                "; ".join(unresolved_role(role.value, self.attempted.get(role, ())) for role in missing)
            )


def _find_by_name(accounts: list[Account], fragment: str) -> Optional[Account]:
    needle = fragment.lower()
    return next((account for account in accounts if needle in account.name.lower()), None)
