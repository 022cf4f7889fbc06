"""Tests for batch planning and reference padding."""

import pytest

from algo_did.batching import (
    Batch,
    Operation,
    OperationKind,
    plan_allocate_batch,
    plan_delete_batches,
    plan_finalize_batch,
    plan_start_delete_batch,
    plan_write_batches,
    slot_key,
)
from algo_did.config import StoreLimits
from algo_did.partition import Chunk, chunks_for

OWNER = bytes(range(32))


@pytest.fixture
def limits():
    return StoreLimits()


def _chunks(n):
    return [Chunk(offset=i * 10, data=b"x" * 10) for i in range(n)]


class TestSlotKey:
    """Test box key encoding."""

    def test_big_endian_uint64(self):
        assert slot_key(1) == b"\x00" * 7 + b"\x01"
        assert slot_key(258) == b"\x00" * 6 + b"\x01\x02"
        assert len(slot_key(0)) == 8


class TestWriteBatches:
    """Test grouping chunk writes."""

    def test_sixteen_chunks_two_full_batches(self, limits):
        batches = plan_write_batches(1, _chunks(16), OWNER, limits)
        assert [len(b.operations) for b in batches] == [8, 8]

    def test_seventeen_chunks_balanced(self, limits):
        """A full box goes out as 6/6/5 so every batch covers the box budget."""
        batches = plan_write_batches(0, _chunks(17), OWNER, limits)
        assert [len(b.operations) for b in batches] == [6, 6, 5]

    def test_order_preserved(self, limits):
        chunks = _chunks(17)
        batches = plan_write_batches(0, chunks, OWNER, limits)
        offsets = [op.args[2] for b in batches for op in b.operations]
        assert offsets == [c.offset for c in chunks]

    def test_references_padded_to_floor(self, limits):
        """Each write references the box key up to the floor plus the owner key."""
        batch = plan_write_batches(3, _chunks(1), OWNER, limits)[0]
        op = batch.operations[0]
        assert len(op.references) == limits.reference_floor
        assert op.references.count(slot_key(3)) == limits.reference_floor - 1
        assert OWNER in op.references
        assert batch.references == [slot_key(3), OWNER]

    def test_write_arguments(self, limits):
        op = plan_write_batches(2, [Chunk(offset=2002, data=b"abc")], OWNER, limits)[0].operations[0]
        assert op.kind == OperationKind.WRITE
        assert op.args == (OWNER, 2, 2002, b"abc")

    def test_labels(self, limits):
        batches = plan_write_batches(4, _chunks(9), OWNER, limits)
        assert [b.label for b in batches] == ["write 4/0", "write 4/1"]

    def test_empty_box_single_write(self, limits):
        batches = plan_write_batches(0, chunks_for(b"", limits.write_payload), OWNER, limits)
        assert len(batches) == 1
        assert batches[0].operations[0].args[3] == b""

    def test_no_chunks_no_batches(self, limits):
        assert plan_write_batches(0, [], OWNER, limits) == []


class TestDeleteBatches:
    """Test padded erase batches."""

    def test_one_batch_per_box_ascending(self, limits):
        batches = plan_delete_batches(3, 5, OWNER, limits)
        assert [b.label for b in batches] == ["erase 3", "erase 4", "erase 5"]

    def test_erase_then_padding(self, limits):
        batch = plan_delete_batches(0, 0, OWNER, limits)[0]
        assert batch.count(OperationKind.ERASE) == 1
        assert batch.count(OperationKind.NOOP) == limits.noop_padding
        assert batch.operations[0].kind == OperationKind.ERASE

    def test_erase_operation(self, limits):
        erase = plan_delete_batches(7, 7, OWNER, limits)[0].operations[0]
        assert erase.args == (OWNER, 7)
        assert erase.fee == limits.erase_fee
        assert erase.references[0] == OWNER
        assert erase.references[1:] == (slot_key(7),) * (limits.reference_floor - 1)

    def test_padding_references_and_notes(self, limits):
        padding = plan_delete_batches(2, 2, OWNER, limits)[0].operations[1:]
        assert all(op.references == (slot_key(2),) * limits.reference_floor for op in padding)
        assert [op.note for op in padding] == [b"dummy 0", b"dummy 1", b"dummy 2", b"dummy 3"]
        assert all(op.fee is None for op in padding)

    def test_single_box_range(self, limits):
        assert len(plan_delete_batches(4, 4, OWNER, limits)) == 1

    def test_invalid_range(self, limits):
        with pytest.raises(ValueError):
            plan_delete_batches(5, 4, OWNER, limits)


class TestLifecycleBatches:
    """Test allocation, finalize and start-delete batches."""

    def test_allocate(self, limits):
        batch = plan_allocate_batch(OWNER, 2, 31232, 25_639_900, limits)
        op = batch.operations[0]
        assert batch.label == "allocate"
        assert op.kind == OperationKind.ALLOCATE
        assert op.args == (OWNER, 2, 31232)
        assert op.funding == 25_639_900
        assert op.references == (OWNER,)

    def test_finalize(self, limits):
        batch = plan_finalize_batch(OWNER, limits)
        assert batch.label == "finalize"
        assert batch.operations[0].kind == OperationKind.FINALIZE
        assert batch.references == [OWNER]

    def test_start_delete(self, limits):
        batch = plan_start_delete_batch(OWNER, limits)
        assert batch.operations[0].kind == OperationKind.START_DELETE
        assert batch.operations[0].args == (OWNER,)


class TestBatch:
    """Test Batch helpers."""

    def test_references_distinct_in_order(self):
        batch = Batch(label="t", operations=(
            Operation(kind=OperationKind.NOOP, references=(b"b", b"a", b"b")),
            Operation(kind=OperationKind.NOOP, references=(b"c", b"a")),
        ))
        assert batch.references == [b"b", b"a", b"c"]

    def test_operation_kinds_are_method_names(self):
        assert OperationKind.ALLOCATE.value == "startUpload"
        assert OperationKind.ERASE.value == "deleteData"
        assert OperationKind.NOOP.value == "dummy"
