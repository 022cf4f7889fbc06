"""Upload state machine: allocate boxes, write every chunk, finalize.

States advance strictly in order; any failure moves the orchestrator to
FAILED and re-raises. Nothing is repaired: how far a failed run got is
visible in the metadata record.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable, List, Optional

from .batching import plan_allocate_batch, plan_finalize_batch, plan_write_batches
from .config import StoreConfig
from .errors import DataValidationError, RemoteRejectionError
from .execution import submit, submit_with_retry
from .ledger import Codec, LedgerClient
from .metadata import MetadataStatus, read_metadata
from .partition import Layout, chunks_for, plan_layout
from .service_types import BatchReceipt, ProgressCallback, UploadPlan, UploadResult

logger = logging.getLogger(__name__)


class UploadState(str, Enum):
    NOT_ALLOCATED = "not_allocated"
    ALLOCATING = "allocating"
    WRITING = "writing"
    FINALIZING = "finalizing"
    READY = "ready"
    FAILED = "failed"


def plan_upload(blob: bytes, config: StoreConfig) -> UploadPlan:
    """Compute the upload plan for blob without touching the ledger.

    Raises:
        EmptyInputError: If blob is empty
        DataValidationError: If the layout does not reproduce blob
    """
    layout = _checked_layout(blob, config)
    write_payload = config.limits.write_payload
    per_batch = config.limits.write_ops_per_batch
    chunk_counts = [len(chunks_for(slot, write_payload)) for slot in layout.slots]
    return UploadPlan(
        document_size=len(blob),
        slot_sizes=[len(slot) for slot in layout.slots],
        chunk_counts=chunk_counts,
        write_batches=sum(-(-count // per_batch) for count in chunk_counts),
        cost=layout.cost,
    )


def _checked_layout(blob: bytes, config: StoreConfig) -> Layout:
    layout = plan_layout(blob, config)
    joined = b"".join(layout.slots)
    if joined != blob:
        raise DataValidationError(len(blob), len(joined))
    return layout


class UploadOrchestrator:
    """Drives one document upload through the store protocol."""

    def __init__(
        self,
        ledger: LedgerClient,
        codec: Codec,
        config: StoreConfig,
        progress: Optional[ProgressCallback] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.ledger = ledger
        self.codec = codec
        self.config = config
        self.progress = progress
        self._sleep = sleep
        self._state = UploadState.NOT_ALLOCATED

    @property
    def state(self) -> UploadState:
        return self._state

    def _transition(self, state: UploadState) -> None:
        logger.info("Upload: %s -> %s", self._state.value, state.value)
        self._state = state
        if self.progress:
            self.progress.on_state(state.value)

    def run(self, blob: bytes, owner_key: bytes) -> UploadResult:
        """Upload blob under owner_key.

        Returns:
            UploadResult with the final metadata and per-batch receipts

        Raises:
            EmptyInputError: If blob is empty
            ConfigurationError: If limits do not fit the ledger
            RemoteRejectionError: If the program refuses a batch, allocates a
                different layout, or finalize does not leave the document ready
            NotFoundError, TransportError: On ledger failure
        """
        if self._state != UploadState.NOT_ALLOCATED:
            raise RuntimeError(f"Upload already run (state: {self._state.value})")

        limits = self.config.limits
        limits.check_against(self.ledger.max_group_size, self.ledger.max_references)
        layout = _checked_layout(blob, self.config)

        receipts: List[BatchReceipt] = []
        try:
            self._transition(UploadState.ALLOCATING)
            receipts.append(self._allocate(layout, owner_key))

            self._transition(UploadState.WRITING)
            metadata = read_metadata(self.ledger, owner_key, self.codec, self.config.status_codes)
            if metadata.num_slots != layout.num_slots:
                raise RemoteRejectionError(
                    f"program allocated {metadata.num_slots} boxes but {layout.num_slots} "
                    f"were planned; allocation is already on-chain and store limits do "
                    f"not match the deployed program",
                    "allocate",
                )
            receipts.extend(self._write_all(layout, metadata.start, owner_key))

            self._transition(UploadState.FINALIZING)
            receipts.append(submit(self.ledger, plan_finalize_batch(owner_key, limits), self.progress))

            metadata = read_metadata(self.ledger, owner_key, self.codec, self.config.status_codes)
            if metadata.status != MetadataStatus.READY:
                raise RemoteRejectionError(
                    f"finalize left status {metadata.status.value}", "finalize"
                )
            self._transition(UploadState.READY)
        except Exception:
            self._transition(UploadState.FAILED)
            raise

        return UploadResult(metadata=metadata, cost=layout.cost, receipts=receipts)

    def _allocate(self, layout: Layout, owner_key: bytes) -> BatchReceipt:
        cost = layout.cost
        logger.info(
            "Allocating %d boxes (tail %d bytes), funding %d",
            cost.num_slots, cost.tail_size, cost.total,
        )
        batch = plan_allocate_batch(
            owner_key, cost.num_slots, cost.tail_size, cost.total, self.config.limits
        )
        return submit(self.ledger, batch, self.progress)

    def _write_all(self, layout: Layout, start: int, owner_key: bytes) -> List[BatchReceipt]:
        indexed = [(start + offset, payload) for offset, payload in enumerate(layout.slots)]
        workers = min(self.config.parallel_slots, len(indexed))

        if workers <= 1:
            per_slot = [self._write_slot(index, payload, owner_key) for index, payload in indexed]
        else:
            # One task per box; batches within a box stay sequential
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = [
                    pool.submit(self._write_slot, index, payload, owner_key)
                    for index, payload in indexed
                ]
                per_slot = [future.result() for future in futures]

        return [receipt for slot_receipts in per_slot for receipt in slot_receipts]

    def _write_slot(self, slot_index: int, payload: bytes, owner_key: bytes) -> List[BatchReceipt]:
        limits = self.config.limits
        chunks = chunks_for(payload, limits.write_payload)
        batches = plan_write_batches(slot_index, chunks, owner_key, limits)
        logger.debug(
            "Box %d: %d bytes in %d chunks, %d batches",
            slot_index, len(payload), len(chunks), len(batches),
        )
        return [
            submit_with_retry(
                self.ledger, batch, self.config.write_retries, self.progress, self._sleep
            )
            for batch in batches
        ]
