"""Service layer types for algo-did."""

from typing import List, Optional, Protocol

from pydantic import BaseModel, Field

from .cost import CostEstimate
from .metadata import MetadataRecord


class BatchReceipt(BaseModel):
    """Transaction ids returned for one submitted batch."""
    label: str
    tx_ids: List[str]


class UploadPlan(BaseModel):
    """What an upload will allocate and submit, computed without I/O."""
    document_size: int
    slot_sizes: List[int]
    chunk_counts: List[int]
    write_batches: int
    cost: CostEstimate

    @property
    def num_slots(self) -> int:
        return len(self.slot_sizes)

    @property
    def total_batches(self) -> int:
        # allocate + writes + finalize
        return self.write_batches + 2


class UploadResult(BaseModel):
    """Result of a completed upload."""
    metadata: MetadataRecord
    cost: CostEstimate
    receipts: List[BatchReceipt] = Field(default_factory=list)

    @property
    def batches_submitted(self) -> int:
        return len(self.receipts)


class DeleteResult(BaseModel):
    """Result of a completed delete."""
    start: int
    end: int
    receipts: List[BatchReceipt] = Field(default_factory=list)

    @property
    def slots_erased(self) -> int:
        return self.end - self.start + 1


class UpdateResult(BaseModel):
    """Result of replacing a stored document."""
    deleted: Optional[DeleteResult] = None
    uploaded: UploadResult


class ProgressCallback(Protocol):
    """Progress reporting interface."""

    def on_state(self, state: str) -> None:
        """Called when an orchestrator enters a new state."""
        ...

    def on_batch_complete(self, label: str, tx_ids: List[str]) -> None:
        """Called after a batch is confirmed."""
        ...
