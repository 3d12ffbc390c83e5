"""Destructive data reset, guarded by a confirmation phrase and an authorization code."""

import hmac
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import structlog

from ledgerfix.database import collections
from ledgerfix.database.base import LedgerStore, WriteOperation
from ledgerfix.domain.batching import BatchWriter, ProgressCallback, WriteUnit
from ledgerfix.domain.errors import AuthorizationError, ValidationError
from ledgerfix.domain.issues import FixError

logger = structlog.get_logger(__name__)

CONFIRMATION_PHRASE = "DELETE ALL DATA"


class ResetScope(str, Enum):
    TRANSACTIONS = "transactions"
    COMPLETE = "complete"

    @property
    def collections(self) -> tuple[str, ...]:
        if self == ResetScope.COMPLETE:
            return collections.TRANSACTION_COLLECTIONS + collections.SETUP_COLLECTIONS
        return collections.TRANSACTION_COLLECTIONS


@dataclass(frozen=True)
class ResetResult:
    scope: ResetScope
    deleted: dict[str, int] = field(default_factory=dict)
    errors: tuple[FixError, ...] = ()

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values())

    @property
    def success(self) -> bool:
        return not self.errors


class ResetService:
    """Service that wipes transactional (or all) collections."""

    def __init__(
        self,
        db: LedgerStore,
        admin_code: Optional[str],
        on_progress: Optional[ProgressCallback] = None,
    ):
        """Initialize reset service.

        Args:
            db: Ledger store
            admin_code: Configured authorization code; resets are refused
                when it is not set
            on_progress: Batch progress callback
        """
        self.db = db
        self.admin_code = admin_code
        self.on_progress = on_progress

    def reset(self, scope: ResetScope, confirmation: str, authorization_code: str) -> ResetResult:
        """Delete every document in the collections of ``scope``.

        Raises:
            ValidationError: If the confirmation phrase does not match
            AuthorizationError: If no code is configured or the code is wrong
        """
        if confirmation.strip() != CONFIRMATION_PHRASE:
            raise ValidationError(f"Type '{CONFIRMATION_PHRASE}' to confirm the reset")
        if not self.admin_code:
            raise AuthorizationError("No admin authorization code is configured")
        if not hmac.compare_digest(authorization_code.encode(), self.admin_code.encode()):
            logger.warning("reset_refused", scope=scope.value)
            raise AuthorizationError("Invalid authorization code")

        units: list[WriteUnit] = []
        for collection in scope.collections:
            for doc in self.db.get_all(collection):
                units.append(WriteUnit(f"{collection}/{doc['id']}", (WriteOperation.delete(collection, doc["id"]),)))

        written = BatchWriter(self.db, on_progress=self.on_progress).write(units)
        deleted: dict[str, int] = {collection: 0 for collection in scope.collections}
        for unit in written.written:
            deleted[unit.operations[0].collection] += 1

        logger.warning("data_reset", scope=scope.value, deleted=sum(deleted.values()), errors=len(written.errors))
        return ResetResult(scope=scope, deleted=deleted, errors=tuple(written.errors))
