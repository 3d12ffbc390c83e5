"""Shared domain error messages and error types."""

from typing import Iterable


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class AuthorizationError(DomainError):
    """A destructive operation was requested without valid authorization."""


class BatchLimitError(DomainError):
    """A single store batch exceeded the per-batch operation ceiling."""


class PartialBatchFailure(DomainError):
    """One batch of a multi-batch write failed to commit.

    Earlier batches stay committed; the failed batch's operations are not
    applied.
    """

    def __init__(self, batch_index: int, batch_count: int, cause: Exception):
        self.batch_index = batch_index
        self.batch_count = batch_count
        self.cause = cause
        super().__init__(batch_failed(batch_index, batch_count, cause))


def batch_failed(batch_index: int, batch_count: int, cause: Exception) -> str:
    """Return message for a batch that failed to commit."""
    return f"Batch {batch_index}/{batch_count} failed to commit: {cause}"


def batch_too_large(size: int, limit: int) -> str:
    """Return message for a batch over the operation ceiling."""
    return f"Batch of {size} operations exceeds the limit of {limit} per batch"


def owner_not_found(owner_kind: str, owner_id: str) -> str:
    """Return message for a missing account or partner."""
    return f"{owner_kind.capitalize()} {owner_id} not found"


def transaction_not_found(transaction_id: str) -> str:
    """Return message for a missing transaction group."""
    return f"Transaction '{transaction_id}' not found"


def unresolved_role(role: str, attempted: Iterable[str]) -> str:
    """Return message for an account role that could not be resolved."""
    names = ", ".join(f"'{name}'" for name in attempted)
    return f"No account found for role {role} (tried: {names})"


def unbalanced_posting(transaction_id: str, debit, credit) -> str:
    """Return message for a posting whose legs do not balance."""
    return (
        f"Transaction '{transaction_id}' does not balance: "
        f"debit {debit:.2f} != credit {credit:.2f}"
    )
