"""Delete state machine: mark the document for deletion, erase every box.

The program removes the metadata record itself when the last box is erased,
so a NotFoundError on the final lookup is the success signal.
"""

import logging
from enum import Enum
from typing import List, Optional

from .batching import plan_delete_batches, plan_start_delete_batch
from .config import StoreConfig
from .errors import NotFoundError, RemoteRejectionError
from .execution import submit
from .ledger import Codec, LedgerClient
from .metadata import read_metadata
from .service_types import BatchReceipt, DeleteResult, ProgressCallback

logger = logging.getLogger(__name__)


class DeleteState(str, Enum):
    NOT_STARTED = "not_started"
    MARKED_FOR_DELETION = "marked_for_deletion"
    ERASING = "erasing"
    GONE = "gone"
    FAILED = "failed"


class DeleteOrchestrator:
    """Drives removal of one stored document."""

    def __init__(
        self,
        ledger: LedgerClient,
        codec: Codec,
        config: StoreConfig,
        progress: Optional[ProgressCallback] = None,
    ):
        self.ledger = ledger
        self.codec = codec
        self.config = config
        self.progress = progress
        self._state = DeleteState.NOT_STARTED

    @property
    def state(self) -> DeleteState:
        return self._state

    def _transition(self, state: DeleteState) -> None:
        logger.info("Delete: %s -> %s", self._state.value, state.value)
        self._state = state
        if self.progress:
            self.progress.on_state(state.value)

    def run(self, owner_key: bytes) -> DeleteResult:
        """Delete the document stored under owner_key.

        Raises:
            RemoteRejectionError: If no document is stored for owner_key, the
                program refuses a batch, or the metadata record survives the
                last erase
            TransportError: On ledger failure
        """
        if self._state != DeleteState.NOT_STARTED:
            raise RuntimeError(f"Delete already run (state: {self._state.value})")

        limits = self.config.limits
        limits.check_against(self.ledger.max_group_size, self.ledger.max_references)
        codes = self.config.status_codes

        receipts: List[BatchReceipt] = []
        try:
            receipts.append(submit(self.ledger, plan_start_delete_batch(owner_key, limits), self.progress))
            self._transition(DeleteState.MARKED_FOR_DELETION)

            metadata = read_metadata(self.ledger, owner_key, self.codec, codes)
            self._transition(DeleteState.ERASING)
            logger.info("Erasing boxes %d..%d", metadata.start, metadata.end)
            for batch in plan_delete_batches(metadata.start, metadata.end, owner_key, limits):
                receipts.append(submit(self.ledger, batch, self.progress))

            self._confirm_gone(owner_key)
            self._transition(DeleteState.GONE)
        except Exception:
            self._transition(DeleteState.FAILED)
            raise

        return DeleteResult(start=metadata.start, end=metadata.end, receipts=receipts)

    def _confirm_gone(self, owner_key: bytes) -> None:
        try:
            self.ledger.read_box(owner_key)
        except NotFoundError:
            return
        raise RemoteRejectionError(
            "metadata record still present after erasing every box", "erase"
        )
