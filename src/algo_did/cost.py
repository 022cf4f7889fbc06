"""Rent (minimum balance) cost model for box storage.

The figures here must match the program's own formula exactly: an
under-funded allocation is rejected on-chain.
"""

from typing import Tuple

from pydantic import BaseModel

from .config import ExactMultiplePolicy, StoreLimits

# Each data box is keyed by its uint64 index
SLOT_KEY_BYTES = 8


class CostEstimate(BaseModel):
    """Layout and funding required to store one document."""
    num_slots: int
    tail_size: int
    total: int


def slot_layout(
    blob_length: int,
    slot_capacity: int,
    policy: ExactMultiplePolicy = ExactMultiplePolicy.TRAILING_SLOT,
) -> Tuple[int, int]:
    """Return (num_slots, tail_size) for a document of blob_length bytes.

    The remainder rule gives a tail of 0 for exact multiples of the box size,
    which would leave the last full box unpaid; the policy decides whether an
    extra empty box is declared or the last box is declared full.
    """
    full, tail_size = divmod(blob_length, slot_capacity)
    if tail_size:
        return full + 1, tail_size
    if policy == ExactMultiplePolicy.EXACT:
        return full, slot_capacity
    return full + 1, 0


def layout_cost(
    num_slots: int,
    tail_size: int,
    slot_capacity: int,
    per_byte_rate: int,
    per_slot_rate: int,
    metadata_fixed_bytes: int,
) -> int:
    """Cost of an explicit layout of num_slots boxes with the given tail."""
    return (
        num_slots * per_slot_rate                               # data boxes
        + (num_slots - 1) * slot_capacity * per_byte_rate       # full boxes
        + num_slots * SLOT_KEY_BYTES * per_byte_rate            # box keys
        + tail_size * per_byte_rate                             # last box
        + per_slot_rate + metadata_fixed_bytes * per_byte_rate  # metadata box
    )


def estimate_cost(
    blob_length: int,
    slot_capacity: int,
    per_byte_rate: int,
    per_slot_rate: int,
    metadata_fixed_bytes: int,
    policy: ExactMultiplePolicy = ExactMultiplePolicy.TRAILING_SLOT,
) -> CostEstimate:
    """Estimate the funding needed to store blob_length bytes.

    Args:
        blob_length: Document size in bytes
        slot_capacity: Maximum box size
        per_byte_rate: Rent per stored byte
        per_slot_rate: Rent per box
        metadata_fixed_bytes: Size of the metadata record plus its key
        policy: Layout used when blob_length is a multiple of slot_capacity

    Returns:
        CostEstimate with the box count, tail size and total funding
    """
    num_slots, tail_size = slot_layout(blob_length, slot_capacity, policy)
    total = layout_cost(
        num_slots, tail_size, slot_capacity, per_byte_rate, per_slot_rate, metadata_fixed_bytes
    )
    return CostEstimate(num_slots=num_slots, tail_size=tail_size, total=total)


def estimate_for_limits(
    blob_length: int,
    limits: StoreLimits,
    policy: ExactMultiplePolicy = ExactMultiplePolicy.TRAILING_SLOT,
) -> CostEstimate:
    """Estimate cost using configured store limits."""
    return estimate_cost(
        blob_length,
        limits.slot_capacity,
        limits.per_byte_rate,
        limits.per_slot_rate,
        limits.metadata_fixed_bytes,
        policy,
    )


def cost_for_layout(num_slots: int, tail_size: int, limits: StoreLimits) -> CostEstimate:
    """Price an already-declared layout (what the program charges at allocation)."""
    total = layout_cost(
        num_slots,
        tail_size,
        limits.slot_capacity,
        limits.per_byte_rate,
        limits.per_slot_rate,
        limits.metadata_fixed_bytes,
    )
    return CostEstimate(num_slots=num_slots, tail_size=tail_size, total=total)
