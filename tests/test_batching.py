"""Tests for batched writes."""

import pytest

from ledgerfix.database import collections
from ledgerfix.database.base import WriteOperation
from ledgerfix.domain.batching import (
    BatchWriter,
    WriteUnit,
    plan_batches,
    single_operation_units,
)
from ledgerfix.domain.errors import BatchLimitError, PartialBatchFailure


class RecordingStore:
    """Store double that records batch sizes and fails chosen batches."""

    max_batch_operations = 500

    def __init__(self, fail_on=()):
        self.batches = []
        self.fail_on = set(fail_on)

    def commit_batch(self, operations):
        operations = list(operations)
        if len(operations) > self.max_batch_operations:
            raise BatchLimitError("too many")
        self.batches.append(len(operations))
        if len(self.batches) in self.fail_on:
            raise RuntimeError("commit rejected")
        return [op.doc_id for op in operations]


def units_of(count, size=1, prefix="doc"):
    return [
        WriteUnit(
            f"{prefix}-{i}",
            tuple(WriteOperation.set(collections.LEDGER, {"n": i}, f"{prefix}-{i}-{j}") for j in range(size)),
        )
        for i in range(count)
    ]


def test_large_write_is_split_at_the_ceiling():
    store = RecordingStore()
    progress = []
    result = BatchWriter(store, on_progress=progress.append).write(units_of(1234))

    assert store.batches == [500, 500, 234]
    assert result.batch_sizes == [500, 500, 234]
    assert result.operation_count == 1234
    assert len(result.ids) == 1234
    assert [p.current for p in progress] == [500, 1000, 1234]
    assert all(p.total == 1234 and p.batch_count == 3 for p in progress)
    assert progress[-1].done


def test_units_are_never_split():
    batches = plan_batches(units_of(5, size=3), limit=7)
    assert [[unit.entity_id for unit in batch] for batch in batches] == [
        ["doc-0", "doc-1"],
        ["doc-2", "doc-3"],
        ["doc-4"],
    ]


def test_lower_limit_only():
    store = RecordingStore()
    assert BatchWriter(store, max_operations=100).limit == 100
    assert BatchWriter(store, max_operations=900).limit == 500


def test_oversized_unit_is_reported():
    store = RecordingStore()
    store.max_batch_operations = 4
    units = units_of(1, size=5, prefix="big") + units_of(2)
    result = BatchWriter(store).write(units)

    assert [e.entity_id for e in result.errors] == ["big-0"]
    assert store.batches == [2]

    with pytest.raises(BatchLimitError):
        BatchWriter(store).write(units, continue_on_error=False)


def test_failed_batch_keeps_earlier_batches_and_continues():
    store = RecordingStore(fail_on={2})
    result = BatchWriter(store, max_operations=2).write(units_of(5))

    assert store.batches == [2, 2, 1]
    assert [u.entity_id for u in result.written] == ["doc-0", "doc-1", "doc-4"]
    assert [e.entity_id for e in result.errors] == ["doc-2", "doc-3"]
    assert result.errors[0].message == "Batch 2/3 failed to commit: commit rejected"


def test_failed_batch_raises_when_asked():
    store = RecordingStore(fail_on={2})
    with pytest.raises(PartialBatchFailure) as exc_info:
        BatchWriter(store, max_operations=2).write(units_of(5), continue_on_error=False)
    assert exc_info.value.batch_index == 2
    assert exc_info.value.batch_count == 3
    assert store.batches == [2, 2]


def test_single_operation_units():
    ops = [WriteOperation.delete(collections.LEDGER, "a"), WriteOperation.set(collections.LEDGER, {})]
    units = single_operation_units(ops)
    assert [u.entity_id for u in units] == ["a", "ledger#1"]
    assert all(u.size == 1 for u in units)


def test_sqlite_store_enforces_ceiling(temp_db):
    temp_db.max_batch_operations = 3
    ops = [WriteOperation.set(collections.ITEMS, {"name": str(i)}) for i in range(4)]
    with pytest.raises(BatchLimitError):
        temp_db.commit_batch(ops)
    assert temp_db.get_all(collections.ITEMS) == []
