"""Batch submission shared by the upload and delete orchestrators."""

import logging
import time
from typing import Callable, Optional

from .batching import Batch
from .errors import TransportError
from .ledger import LedgerClient
from .service_types import BatchReceipt, ProgressCallback

logger = logging.getLogger(__name__)


def submit(
    ledger: LedgerClient,
    batch: Batch,
    progress: Optional[ProgressCallback] = None,
) -> BatchReceipt:
    """Submit one batch and wait for confirmation."""
    logger.debug(
        "Submitting batch '%s' (%d operations, %d distinct references)",
        batch.label, len(batch.operations), len(batch.references),
    )
    tx_ids = ledger.execute(batch)
    if progress:
        progress.on_batch_complete(batch.label, tx_ids)
    return BatchReceipt(label=batch.label, tx_ids=tx_ids)


def submit_with_retry(
    ledger: LedgerClient,
    batch: Batch,
    retries: int,
    progress: Optional[ProgressCallback] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchReceipt:
    """Submit a batch, retrying transport failures up to retries times.

    Only safe for batches that can be applied twice (chunk writes rewrite the
    same bytes at the same offset). Rejections are never retried.
    """
    attempt = 0
    while True:
        try:
            return submit(ledger, batch, progress)
        except TransportError as e:
            attempt += 1
            if attempt > retries:
                raise
            delay = 0.5 * attempt
            logger.warning(
                "Failed to send batch '%s': %s. Retrying in %.1fs (%d/%d)",
                batch.label, e, delay, attempt, retries,
            )
            sleep(delay)
