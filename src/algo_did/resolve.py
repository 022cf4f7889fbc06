"""Resolve did:algo identifiers to the documents stored in boxes."""

import logging
from dataclasses import dataclass

from algosdk import encoding

from .batching import slot_key
from .config import StoreConfig
from .errors import DocumentNotReadyError, InvalidDIDError
from .ledger import Codec, LedgerClient
from .metadata import read_metadata

logger = logging.getLogger(__name__)

UINT64_MAX = 2**64 - 1


@dataclass(frozen=True)
class DIDReference:
    """Parsed did:algo:<address>-<app id>."""
    address: str
    public_key: bytes
    app_id: int

    def __str__(self) -> str:
        return format_did(self.address, self.app_id)


def format_did(address: str, app_id: int) -> str:
    return f"did:algo:{address}-{app_id}"


def parse_did(did: str) -> DIDReference:
    """Parse a did:algo identifier.

    Raises:
        InvalidDIDError: On a wrong scheme, method, address or app id
    """
    parts = did.split(":")
    if len(parts) != 3:
        raise InvalidDIDError(f"Invalid DID. Expected 'did:algo:<address>-<app id>', got {did!r}")
    scheme, method, identifier = parts
    if scheme != "did":
        raise InvalidDIDError(f"Invalid protocol. Expected 'did', got {scheme!r}")
    if method != "algo":
        raise InvalidDIDError(f"Invalid DID method. Expected 'algo', got {method!r}")

    address, _, app_part = identifier.partition("-")
    try:
        public_key = encoding.decode_address(address)
    except Exception as e:
        raise InvalidDIDError(f"Invalid public key. Expected Algorand address, got {address!r}") from e
    if not isinstance(public_key, bytes) or len(public_key) != 32:
        raise InvalidDIDError(f"Invalid public key. Expected Algorand address, got {address!r}")

    try:
        app_id = int(app_part)
    except ValueError:
        raise InvalidDIDError(f"Invalid app ID. Expected uint64, got {app_part!r}")
    if not 0 <= app_id <= UINT64_MAX:
        raise InvalidDIDError(f"Invalid app ID. Expected uint64, got {app_part!r}")

    return DIDReference(address=address, public_key=public_key, app_id=app_id)


def resolve_document(
    ledger: LedgerClient,
    codec: Codec,
    owner_key: bytes,
    config: StoreConfig,
) -> bytes:
    """Read back the document stored under owner_key.

    Raises:
        NotFoundError: If nothing is stored for owner_key
        DocumentNotReadyError: If the document is still uploading or deleting
    """
    metadata = read_metadata(ledger, owner_key, codec, config.status_codes)
    if not metadata.is_ready:
        raise DocumentNotReadyError(metadata.status.value)

    logger.debug("Reading boxes %d..%d", metadata.start, metadata.end)
    return b"".join(
        ledger.read_box(slot_key(index))
        for index in range(metadata.start, metadata.end + 1)
    )
