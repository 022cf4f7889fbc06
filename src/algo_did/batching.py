"""Group operations into batches that satisfy the store's reference rules.

The program requires every call in a group to declare a fixed number of box
references (the reference floor) whether or not it touches that many boxes.
Writes therefore repeat the data box key, and each erase is padded with
no-op calls whose only job is to carry the remaining references.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

from .config import StoreLimits
from .errors import ConfigurationError
from .partition import Chunk


class OperationKind(str, Enum):
    """Program calls, valued by their ABI method names."""
    ALLOCATE = "startUpload"
    WRITE = "upload"
    FINALIZE = "finishUpload"
    START_DELETE = "startDelete"
    ERASE = "deleteData"
    NOOP = "dummy"


@dataclass(frozen=True)
class Operation:
    """One program call inside a batch.

    references lists box keys in declaration order, repeats included.
    fee, when set, is a flat fee for this call only. funding is the amount of
    a payment transaction passed to the call (allocation only).
    """
    kind: OperationKind
    args: Tuple[Any, ...] = ()
    references: Tuple[bytes, ...] = ()
    note: bytes = b""
    fee: Optional[int] = None
    funding: int = 0


@dataclass(frozen=True)
class Batch:
    """Operations submitted together as one atomic group."""
    label: str
    operations: Tuple[Operation, ...] = field(default_factory=tuple)

    @property
    def references(self) -> List[bytes]:
        """Distinct box keys referenced anywhere in the batch."""
        seen: List[bytes] = []
        for op in self.operations:
            for ref in op.references:
                if ref not in seen:
                    seen.append(ref)
        return seen

    def count(self, kind: OperationKind) -> int:
        return sum(1 for op in self.operations if op.kind == kind)


def slot_key(index: int) -> bytes:
    """Box key for data slot index: 8-byte big-endian."""
    return index.to_bytes(8, "big")


def _check_batch(batch: Batch, limits: StoreLimits) -> Batch:
    if not 1 <= len(batch.operations) <= limits.max_group_size:
        raise ConfigurationError(
            f"Batch '{batch.label}' has {len(batch.operations)} operations; "
            f"allowed 1..{limits.max_group_size}"
        )
    for op in batch.operations:
        if len(op.references) > limits.reference_floor:
            raise ConfigurationError(
                f"Batch '{batch.label}' declares {len(op.references)} references "
                f"for {op.kind.value}; limit is {limits.reference_floor}"
            )
    return batch


def plan_allocate_batch(
    owner_key: bytes,
    num_slots: int,
    tail_size: int,
    funding: int,
    limits: StoreLimits,
) -> Batch:
    """Allocation call plus the rent payment, referencing only the owner key."""
    op = Operation(
        kind=OperationKind.ALLOCATE,
        args=(owner_key, num_slots, tail_size),
        references=(owner_key,),
        funding=funding,
    )
    return _check_batch(Batch(label="allocate", operations=(op,)), limits)


def plan_write_batches(
    slot_index: int,
    chunks: Sequence[Chunk],
    owner_key: bytes,
    limits: StoreLimits,
) -> List[Batch]:
    """Group one box's chunk writes into batches of at most write_ops_per_batch.

    Each write references the box key repeated up to the floor, plus the
    owner key (whose metadata the program checks on every write). Writes are
    spread evenly over the fewest batches possible: every batch must carry
    enough references to cover the whole box's I/O budget, so a full box
    (17 chunks) goes out as 6/6/5 rather than 8/8/1.
    """
    key = slot_key(slot_index)
    references = (key,) * (limits.reference_floor - 1) + (owner_key,)
    ops = [
        Operation(
            kind=OperationKind.WRITE,
            args=(owner_key, slot_index, chunk.offset, chunk.data),
            references=references,
        )
        for chunk in chunks
    ]

    num_batches = -(-len(ops) // limits.write_ops_per_batch)
    if num_batches == 0:
        return []
    base, extra = divmod(len(ops), num_batches)

    batches = []
    start = 0
    for n in range(num_batches):
        end = start + base + (1 if n < extra else 0)
        batch = Batch(label=f"write {slot_index}/{n}", operations=tuple(ops[start:end]))
        batches.append(_check_batch(batch, limits))
        start = end
    return batches


def plan_finalize_batch(owner_key: bytes, limits: StoreLimits) -> Batch:
    op = Operation(kind=OperationKind.FINALIZE, args=(owner_key,), references=(owner_key,))
    return _check_batch(Batch(label="finalize", operations=(op,)), limits)


def plan_start_delete_batch(owner_key: bytes, limits: StoreLimits) -> Batch:
    op = Operation(kind=OperationKind.START_DELETE, args=(owner_key,), references=(owner_key,))
    return _check_batch(Batch(label="start delete", operations=(op,)), limits)


def plan_delete_batches(
    start: int,
    end: int,
    owner_key: bytes,
    limits: StoreLimits,
) -> List[Batch]:
    """One padded erase batch per box in [start, end], ascending.

    The erase call references the owner key and the box key; noop_padding
    no-op calls each reference the box key up to the floor. Notes on the
    no-ops only tell them apart in explorers.
    """
    if end < start:
        raise ValueError(f"Invalid box range: start={start} end={end}")

    batches = []
    for index in range(start, end + 1):
        key = slot_key(index)
        erase = Operation(
            kind=OperationKind.ERASE,
            args=(owner_key, index),
            references=(owner_key,) + (key,) * (limits.reference_floor - 1),
            fee=limits.erase_fee,
        )
        padding = tuple(
            Operation(
                kind=OperationKind.NOOP,
                references=(key,) * limits.reference_floor,
                note=f"dummy {i}".encode(),
            )
            for i in range(limits.noop_padding)
        )
        batch = Batch(label=f"erase {index}", operations=(erase,) + padding)
        batches.append(_check_batch(batch, limits))
    return batches
