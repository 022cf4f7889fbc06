"""Custom exceptions for algo-did.

This module defines typed exceptions for better error handling and clearer
error messages throughout the application. Every error is fatal to the
operation that raised it; nothing here is retried implicitly.
"""


class StoreError(RuntimeError):
    """Base class for all algo-did errors."""
    pass


# Configuration Errors
class ConfigurationError(StoreError):
    """Store constants missing or inconsistent, or config file invalid."""
    pass


# Input Errors
class EmptyInputError(StoreError, ValueError):
    """Zero-length blob offered for upload."""

    def __init__(self):
        super().__init__(
            "Cannot store an empty document: the store requires at least one box"
        )


EmptyBlob = EmptyInputError


class InvalidDIDError(StoreError, ValueError):
    """DID string is not a valid did:algo identifier."""
    pass


# Remote Errors
class RemoteError(StoreError):
    """Base class for ledger communication errors."""
    pass


class RemoteRejectionError(RemoteError):
    """The on-chain program rejected a batch."""

    def __init__(self, detail: str, batch_label: str = ""):
        self.detail = detail
        self.batch_label = batch_label
        prefix = f"Batch '{batch_label}' rejected" if batch_label else "Batch rejected"
        super().__init__(f"{prefix}: {detail}")


class NotFoundError(RemoteError):
    """Box or metadata record not found (404)."""
    pass


class TransportError(RemoteError):
    """Network or ledger client failure."""
    pass


# Integrity Errors
class DataValidationError(StoreError):
    """Planned box payloads do not reproduce the document."""

    def __init__(self, expected_size: int, actual_size: int):
        self.expected_size = expected_size
        self.actual_size = actual_size
        super().__init__(
            f"Data validation failed: planned boxes hold {actual_size} bytes "
            f"but the document is {expected_size} bytes, or contents differ"
        )


class DocumentNotReadyError(StoreError):
    """Metadata record exists but the document is not in the ready state."""

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"DID document is not ready (status: {status})")
