"""Split a document into box payloads and box payloads into write chunks."""

from dataclasses import dataclass
from typing import List

from .config import ExactMultiplePolicy, StoreConfig
from .cost import CostEstimate, estimate_for_limits, slot_layout
from .errors import EmptyInputError


@dataclass(frozen=True)
class Chunk:
    """A write-sized piece of one box payload."""
    offset: int
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class Layout:
    """Planned box payloads for one document, in upload order."""
    slots: List[bytes]
    cost: CostEstimate

    @property
    def num_slots(self) -> int:
        return len(self.slots)

    @property
    def tail_size(self) -> int:
        return self.cost.tail_size


def partition(
    blob: bytes,
    slot_capacity: int,
    policy: ExactMultiplePolicy = ExactMultiplePolicy.TRAILING_SLOT,
) -> List[bytes]:
    """Split blob into box payloads of at most slot_capacity bytes.

    Raises:
        EmptyInputError: If blob is empty
    """
    if not blob:
        raise EmptyInputError()

    num_slots, _ = slot_layout(len(blob), slot_capacity, policy)
    # With the trailing-slot policy the final slice is empty for exact multiples
    return [blob[i * slot_capacity:(i + 1) * slot_capacity] for i in range(num_slots)]


def chunks_for(slot_payload: bytes, chunk_size: int) -> List[Chunk]:
    """Split one box payload into chunks written at increasing offsets.

    An empty payload still yields one empty chunk at offset 0: the program
    creates the box on the first write.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if not slot_payload:
        return [Chunk(offset=0, data=b"")]
    return [
        Chunk(offset=offset, data=slot_payload[offset:offset + chunk_size])
        for offset in range(0, len(slot_payload), chunk_size)
    ]


def plan_layout(blob: bytes, config: StoreConfig) -> Layout:
    """Partition blob and price the resulting layout."""
    slots = partition(blob, config.limits.slot_capacity, config.exact_multiple)
    cost = estimate_for_limits(len(blob), config.limits, config.exact_multiple)
    return Layout(slots=slots, cost=cost)
