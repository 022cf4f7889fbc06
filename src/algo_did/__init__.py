"""algo-did: store DID documents in Algorand application boxes."""

from .batching import Batch, Operation, OperationKind, plan_delete_batches, plan_write_batches, slot_key
from .config import ExactMultiplePolicy, StoreConfig, StoreLimits, load_config
from .constants import ALGO_DID_VERSION
from .cost import CostEstimate, estimate_cost
from .delete import DeleteOrchestrator, DeleteState
from .errors import (
    ConfigurationError,
    DataValidationError,
    DocumentNotReadyError,
    EmptyBlob,
    EmptyInputError,
    InvalidDIDError,
    NotFoundError,
    RemoteRejectionError,
    StoreError,
    TransportError,
)
from .metadata import MetadataRecord, MetadataStatus
from .partition import Chunk, chunks_for, partition
from .service import DIDService, ServiceDeps
from .upload import UploadOrchestrator, UploadState, plan_upload

__version__ = ALGO_DID_VERSION

__all__ = [
    "Batch",
    "Chunk",
    "ConfigurationError",
    "CostEstimate",
    "DIDService",
    "DataValidationError",
    "DeleteOrchestrator",
    "DeleteState",
    "DocumentNotReadyError",
    "EmptyBlob",
    "EmptyInputError",
    "ExactMultiplePolicy",
    "InvalidDIDError",
    "MetadataRecord",
    "MetadataStatus",
    "NotFoundError",
    "Operation",
    "OperationKind",
    "RemoteRejectionError",
    "ServiceDeps",
    "StoreConfig",
    "StoreError",
    "StoreLimits",
    "TransportError",
    "UploadOrchestrator",
    "UploadState",
    "chunks_for",
    "estimate_cost",
    "load_config",
    "partition",
    "plan_delete_batches",
    "plan_upload",
    "plan_write_batches",
    "slot_key",
]
