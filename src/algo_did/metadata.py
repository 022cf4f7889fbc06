"""Metadata record describing one stored document's box range and status."""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from .config import StatusCodes
from .constants import METADATA_ABI_TYPE
from .errors import ConfigurationError
from .ledger import Codec, LedgerClient


class MetadataStatus(str, Enum):
    """Lifecycle status of a stored document."""
    PENDING = "pending"
    READY = "ready"
    DELETING = "deleting"


class MetadataRecord(BaseModel):
    """Metadata box contents (stored under the owner key).

    This is the authoritative source for where a document lives; the client
    never assumes its own layout matches what the program allocated.
    """

    model_config = ConfigDict(frozen=True)

    start: int
    end: int
    status: MetadataStatus
    tail_size: int
    reserved: int = 0

    @property
    def num_slots(self) -> int:
        return self.end - self.start + 1

    @property
    def is_ready(self) -> bool:
        return self.status == MetadataStatus.READY


def status_from_code(code: int, codes: StatusCodes) -> MetadataStatus:
    mapping = {
        codes.ready: MetadataStatus.READY,
        codes.pending: MetadataStatus.PENDING,
        codes.deleting: MetadataStatus.DELETING,
    }
    try:
        return mapping[code]
    except KeyError:
        raise ConfigurationError(
            f"Metadata status code {code} is not configured "
            f"(ready={codes.ready}, pending={codes.pending}, deleting={codes.deleting})"
        )


def status_to_code(status: MetadataStatus, codes: StatusCodes) -> int:
    return getattr(codes, status.value)


def decode_metadata(raw: bytes, codec: Codec, codes: StatusCodes) -> MetadataRecord:
    """Decode a metadata box value."""
    start, end, status, tail_size, reserved = codec.decode(raw, METADATA_ABI_TYPE)
    return MetadataRecord(
        start=start,
        end=end,
        status=status_from_code(status, codes),
        tail_size=tail_size,
        reserved=reserved,
    )


def encode_metadata(record: MetadataRecord, codec: Codec, codes: StatusCodes) -> bytes:
    """Encode a metadata record the way the program stores it."""
    value = [
        record.start,
        record.end,
        status_to_code(record.status, codes),
        record.tail_size,
        record.reserved,
    ]
    return codec.encode(value, METADATA_ABI_TYPE)


def read_metadata(
    ledger: LedgerClient,
    owner_key: bytes,
    codec: Codec,
    codes: StatusCodes,
) -> MetadataRecord:
    """Read and decode the metadata record for owner_key.

    Raises:
        NotFoundError: If no document is stored for owner_key
    """
    return decode_metadata(ledger.read_box(owner_key), codec, codes)
