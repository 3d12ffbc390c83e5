"""Sequential batched writes under the store's per-batch operation ceiling."""

from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Sequence

import structlog

from ledgerfix.database.base import LedgerStore, WriteOperation
from ledgerfix.domain.errors import (
    BatchLimitError,
    PartialBatchFailure,
    batch_failed,
    batch_too_large,
)
from ledgerfix.domain.issues import BatchProgress, FixError

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[BatchProgress], None]


@dataclass(frozen=True)
class WriteUnit:
    """Operations that belong to one entity and must land in the same batch."""

    entity_id: str
    operations: tuple[WriteOperation, ...]

    @property
    def size(self) -> int:
        return len(self.operations)


@dataclass
class BatchWriteResult:
    written: list[WriteUnit] = field(default_factory=list)
    errors: list[FixError] = field(default_factory=list)
    batch_sizes: list[int] = field(default_factory=list)
    ids: list[str] = field(default_factory=list)

    @property
    def operation_count(self) -> int:
        return sum(unit.size for unit in self.written)


def plan_batches(units: Sequence[WriteUnit], limit: int) -> list[list[WriteUnit]]:
    """Pack units into batches of at most ``limit`` operations, in order.

    A unit is never split across batches. Units larger than ``limit`` are
    left out; the caller reports them.
    """
    batches: list[list[WriteUnit]] = []
    current: list[WriteUnit] = []
    current_size = 0
    for unit in units:
        if unit.size == 0 or unit.size > limit:
            continue
        if current and current_size + unit.size > limit:
            batches.append(current)
            current, current_size = [], 0
        current.append(unit)
        current_size += unit.size
    if current:
        batches.append(current)
    return batches


def single_operation_units(operations: Iterable[WriteOperation]) -> list[WriteUnit]:
    """Wrap operations that carry no grouping constraint into one unit each."""
    return [WriteUnit(op.doc_id or f"{op.collection}#{index}", (op,)) for index, op in enumerate(operations)]


class BatchWriter:
    """Commits write units batch by batch, strictly one after another.

    There is no rollback across batches: a failed batch leaves earlier batches
    committed. Callers rely on idempotent reruns to finish the job.
    """

    def __init__(
        self,
        store: LedgerStore,
        on_progress: Optional[ProgressCallback] = None,
        max_operations: Optional[int] = None,
    ):
        """Initialize batch writer.

        Args:
            store: Store to commit to
            on_progress: Called after every batch with the running totals
            max_operations: Batch ceiling; defaults to the store's ceiling
                and can only lower it
        """
        self.store = store
        self.on_progress = on_progress
        limit = store.max_batch_operations
        if max_operations is not None:
            limit = min(limit, max_operations)
        self.limit = limit

    def write(self, units: Sequence[WriteUnit], continue_on_error: bool = True) -> BatchWriteResult:
        """Write units in sequential batches.

        Args:
            units: Write units in the order they should be committed
            continue_on_error: Record a failed batch against each of its
                entities and keep going. When False the first failure raises.

        Returns:
            BatchWriteResult with the committed units and recorded errors

        Raises:
            PartialBatchFailure: If a batch fails and continue_on_error is False
            BatchLimitError: If a unit exceeds the ceiling and
                continue_on_error is False
        """
        result = BatchWriteResult()
        for unit in units:
            if unit.size > self.limit:
                message = batch_too_large(unit.size, self.limit)
                if not continue_on_error:
                    raise BatchLimitError(message)
                logger.warning("write_unit_too_large", entity_id=unit.entity_id, size=unit.size, limit=self.limit)
                result.errors.append(FixError(unit.entity_id, message))

        batches = plan_batches(units, self.limit)
        total = sum(unit.size for batch in batches for unit in batch)
        batch_count = len(batches)
        current = 0

        for index, batch in enumerate(batches, start=1):
            operations = [op for unit in batch for op in unit.operations]
            try:
                ids = self.store.commit_batch(operations)
            except Exception as e:
                logger.error("batch_failed", batch=index, batch_count=batch_count, error=str(e))
                if not continue_on_error:
                    raise PartialBatchFailure(index, batch_count, e) from e
                message = batch_failed(index, batch_count, e)
                result.errors.extend(FixError(unit.entity_id, message) for unit in batch)
            else:
                result.written.extend(batch)
                result.ids.extend(ids)
                logger.info("batch_committed", batch=index, batch_count=batch_count, operations=len(operations))
            result.batch_sizes.append(len(operations))
            current += len(operations)
            if self.on_progress is not None:
                self.on_progress(BatchProgress(current, total, index, batch_count))

        return result
