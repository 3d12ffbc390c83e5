"""Abstract ledger store interface.

The store holds schemaless documents (plain dicts carrying an ``id`` key)
grouped into named collections. Writes go through batches; a batch commits
atomically and may hold at most ``max_batch_operations`` operations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence

from ledgerfix.database.collections import LEDGER

Document = dict[str, Any]

DEFAULT_MAX_BATCH_OPERATIONS = 500


class WriteKind(str, Enum):
    SET = "set"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class WriteOperation:
    """One mutation inside a store batch."""

    kind: WriteKind
    collection: str
    doc_id: Optional[str] = None
    data: Document = field(default_factory=dict)

    @classmethod
    def set(cls, collection: str, data: Document, doc_id: Optional[str] = None) -> "WriteOperation":
        """Create or overwrite a document. A missing id is generated by the store."""
        return cls(WriteKind.SET, collection, doc_id if doc_id is not None else data.get("id"), data)

    @classmethod
    def update(cls, collection: str, doc_id: str, fields: Document) -> "WriteOperation":
        """Merge fields into an existing document."""
        return cls(WriteKind.UPDATE, collection, doc_id, fields)

    @classmethod
    def delete(cls, collection: str, doc_id: str) -> "WriteOperation":
        return cls(WriteKind.DELETE, collection, doc_id)


class LedgerStore(ABC):
    """Abstract document store used by the reconciliation engine."""

    max_batch_operations: int = DEFAULT_MAX_BATCH_OPERATIONS

    @abstractmethod
    def connect(self) -> None:
        """Connect to the store."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the store."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Create backing tables if needed."""
        pass

    @abstractmethod
    def get_all(self, collection: str) -> list[Document]:
        """Return every document in a collection, in insertion order."""
        pass

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Return one document by id."""
        pass

    @abstractmethod
    def query_by_field(self, collection: str, field: str, value: Any) -> list[Document]:
        """Return documents whose ``field`` equals ``value``, in insertion order."""
        pass

    @abstractmethod
    def commit_batch(self, operations: Sequence[WriteOperation]) -> list[str]:
        """Apply operations atomically. Returns the affected document ids.

        Raises:
            BatchLimitError: If the batch holds more than
                ``max_batch_operations`` operations
        """
        pass

    def append_batch(self, collection: str, documents: Sequence[Document]) -> list[str]:
        """Insert documents as one batch. Returns the new document ids."""
        return self.commit_batch([WriteOperation.set(collection, doc) for doc in documents])

    def update_fields(self, collection: str, doc_id: str, fields: Document) -> None:
        """Merge fields into one document."""
        self.commit_batch([WriteOperation.update(collection, doc_id, fields)])

    def delete_by_transaction_id(self, collection: str, transaction_id: str) -> int:
        """Delete every document of a transaction group. Returns the count deleted."""
        documents = self.query_by_field(collection, "transactionId", transaction_id)
        operations = [WriteOperation.delete(collection, doc["id"]) for doc in documents]
        for start in range(0, len(operations), self.max_batch_operations):
            self.commit_batch(operations[start:start + self.max_batch_operations])
        return len(operations)

    def get_transaction(self, transaction_id: str) -> list[Document]:
        """Return the ledger documents of one transaction group."""
        return self.query_by_field(LEDGER, "transactionId", transaction_id)
