"""In-process ledger that enforces the storage program's rules.

Used by the test suite and by `--dry-run`. Each batch is applied to a copy
of the state and committed only if every operation succeeds, mirroring the
all-or-nothing semantics of an atomic group.

Rules enforced:
- group size and per-call reference limits
- every box a call touches is referenced somewhere in the group
- box I/O budget: each reference grants BOX_IO_BUDGET bytes; the group's
  references must cover the size of every box it touches
- funding equals the layout cost, status transitions, box bounds
- the metadata record is removed when the last data box is erased
"""

import copy
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from .batching import Batch, Operation, OperationKind, slot_key
from .config import StoreConfig
from .cost import cost_for_layout
from .errors import NotFoundError, RemoteRejectionError
from .ledger import Codec
from .metadata import MetadataRecord, MetadataStatus, encode_metadata

logger = logging.getLogger(__name__)

BOX_IO_BUDGET = 1024


@dataclass
class _State:
    records: Dict[bytes, MetadataRecord] = field(default_factory=dict)
    boxes: Dict[bytes, bytearray] = field(default_factory=dict)
    next_index: int = 0
    balance: int = 0


class InMemoryLedger:
    """Ledger double holding boxes in memory."""

    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        codec: Optional[Codec] = None,
        max_group_size: int = 16,
        max_references: int = 8,
        start_index: int = 0,
    ):
        if codec is None:
            from .algod import AbiCodec
            codec = AbiCodec()
        self.config = config or StoreConfig()
        self.codec = codec
        self.max_group_size = max_group_size
        self.max_references = max_references
        self.executed: List[Batch] = []
        self._state = _State(next_index=start_index)
        self._failures: List[Tuple[str, Exception]] = []
        self._tx_counter = 0
        self._lock = threading.Lock()

    # ----- test hooks -----

    def fail_next(self, error: Exception, times: int = 1, label_prefix: str = "") -> None:
        """Raise error from the next `times` matching execute calls, applying nothing.

        Only batches whose label starts with label_prefix are affected.
        """
        self._failures.extend([(label_prefix, error)] * times)

    @property
    def balance(self) -> int:
        """Funding currently held for boxes."""
        return self._state.balance

    @property
    def data_boxes(self) -> Dict[bytes, bytes]:
        return {key: bytes(value) for key, value in self._state.boxes.items()}

    # ----- LedgerClient -----

    def read_box(self, key: bytes) -> bytes:
        with self._lock:
            state = self._state
            if key in state.records:
                return self._encode(state.records[key])
            if key in state.boxes:
                return bytes(state.boxes[key])
        raise NotFoundError(f"box not found: {key.hex()}")

    def execute(self, batch: Batch) -> List[str]:
        with self._lock:
            for n, (prefix, error) in enumerate(self._failures):
                if batch.label.startswith(prefix):
                    del self._failures[n]
                    raise error

            self._check_group(batch)
            state = copy.deepcopy(self._state)
            touched: Set[bytes] = set()
            sizes: Dict[bytes, int] = {}
            for op in batch.operations:
                self._apply(state, op, batch.label, touched, sizes)

            self._check_references(batch, touched, sizes)
            self._state = state
            self.executed.append(batch)

            tx_ids = []
            for op in batch.operations:
                count = 2 if op.kind == OperationKind.ALLOCATE else 1
                for _ in range(count):
                    self._tx_counter += 1
                    tx_ids.append(f"TX{self._tx_counter:06d}")
            return tx_ids

    # ----- rules -----

    def _encode(self, record: MetadataRecord) -> bytes:
        return encode_metadata(record, self.codec, self.config.status_codes)

    def _check_group(self, batch: Batch) -> None:
        if not 1 <= len(batch.operations) <= self.max_group_size:
            raise RemoteRejectionError(
                f"group size {len(batch.operations)} outside 1..{self.max_group_size}", batch.label
            )
        for op in batch.operations:
            if len(op.references) > self.max_references:
                raise RemoteRejectionError(
                    f"{op.kind.value} declares {len(op.references)} box references "
                    f"(max {self.max_references})",
                    batch.label,
                )

    def _check_references(self, batch: Batch, touched: Set[bytes], sizes: Dict[bytes, int]) -> None:
        declared = set(batch.references)
        missing = touched - declared
        if missing:
            raise RemoteRejectionError(
                f"invalid box reference {sorted(missing)[0].hex()}", batch.label
            )
        total_refs = sum(len(op.references) for op in batch.operations)
        needed = sum(sizes.get(key, 0) for key in declared)
        if total_refs * BOX_IO_BUDGET < needed:
            raise RemoteRejectionError(
                f"box read/write budget exceeded: {total_refs} references cover "
                f"{total_refs * BOX_IO_BUDGET} bytes, {needed} needed",
                batch.label,
            )

    def _record(self, state: _State, owner: bytes, label: str) -> MetadataRecord:
        if owner not in state.records:
            raise RemoteRejectionError("metadata box does not exist", label)
        return state.records[owner]

    def _touch(self, state: _State, key: bytes, touched: Set[bytes], sizes: Dict[bytes, int]) -> None:
        touched.add(key)
        if key in state.records:
            size = len(self._encode(state.records[key]))
        else:
            size = len(state.boxes.get(key, b""))
        sizes[key] = max(sizes.get(key, 0), size)

    def _apply(
        self,
        state: _State,
        op: Operation,
        label: str,
        touched: Set[bytes],
        sizes: Dict[bytes, int],
    ) -> None:
        limits = self.config.limits

        if op.kind == OperationKind.NOOP:
            return

        owner = op.args[0]
        if op.kind == OperationKind.ALLOCATE:
            _, num_slots, tail_size = op.args
            if owner in state.records:
                raise RemoteRejectionError("metadata already exists for this address", label)
            if num_slots < 1 or not 0 <= tail_size <= limits.slot_capacity:
                raise RemoteRejectionError(
                    f"invalid layout: {num_slots} boxes, tail {tail_size}", label
                )
            expected = cost_for_layout(num_slots, tail_size, limits).total
            if op.funding != expected:
                raise RemoteRejectionError(
                    f"payment of {op.funding} does not match required {expected}", label
                )
            start = state.next_index
            state.records[owner] = MetadataRecord(
                start=start,
                end=start + num_slots - 1,
                status=MetadataStatus.PENDING,
                tail_size=tail_size,
            )
            state.next_index = start + num_slots
            state.balance += op.funding
            self._touch(state, owner, touched, sizes)
            return

        record = self._record(state, owner, label)
        self._touch(state, owner, touched, sizes)

        if op.kind == OperationKind.WRITE:
            _, index, offset, data = op.args
            if record.status != MetadataStatus.PENDING:
                raise RemoteRejectionError(f"upload not allowed in status {record.status.value}", label)
            if not record.start <= index <= record.end:
                raise RemoteRejectionError(
                    f"box {index} outside {record.start}..{record.end}", label
                )
            key = slot_key(index)
            if offset == 0 and key not in state.boxes:
                size = record.tail_size if index == record.end else limits.slot_capacity
                state.boxes[key] = bytearray(size)
            if key not in state.boxes:
                raise RemoteRejectionError(f"box {index} not created", label)
            box = state.boxes[key]
            if offset + len(data) > len(box):
                raise RemoteRejectionError(
                    f"write of {len(data)} bytes at {offset} overflows box {index} ({len(box)} bytes)",
                    label,
                )
            box[offset:offset + len(data)] = data
            self._touch(state, key, touched, sizes)

        elif op.kind == OperationKind.FINALIZE:
            if record.status != MetadataStatus.PENDING:
                raise RemoteRejectionError(f"cannot finish upload in status {record.status.value}", label)
            state.records[owner] = record.model_copy(update={"status": MetadataStatus.READY})

        elif op.kind == OperationKind.START_DELETE:
            if record.status != MetadataStatus.READY:
                raise RemoteRejectionError(f"cannot start delete in status {record.status.value}", label)
            state.records[owner] = record.model_copy(update={"status": MetadataStatus.DELETING})

        elif op.kind == OperationKind.ERASE:
            _, index = op.args
            if record.status != MetadataStatus.DELETING:
                raise RemoteRejectionError(f"delete not allowed in status {record.status.value}", label)
            if not record.start <= index <= record.end:
                raise RemoteRejectionError(
                    f"box {index} outside {record.start}..{record.end}", label
                )
            if op.fee is None or op.fee < limits.erase_fee:
                raise RemoteRejectionError("fee too low to cover the refund payment", label)
            key = slot_key(index)
            if key not in state.boxes:
                raise RemoteRejectionError(f"box {index} does not exist", label)
            self._touch(state, key, touched, sizes)
            del state.boxes[key]

            remaining = [
                i for i in range(record.start, record.end + 1) if slot_key(i) in state.boxes
            ]
            if not remaining:
                refund = cost_for_layout(record.num_slots, record.tail_size, limits).total
                state.balance -= refund
                del state.records[owner]
                logger.debug("Last box erased; metadata for %s removed", owner.hex()[:12])
        else:
            raise RemoteRejectionError(f"unknown method {op.kind}", label)
