"""Protocols for the external collaborators of the storage protocol.

The planners and orchestrators only ever talk to these interfaces; concrete
implementations live in algod.py (a real node) and memory.py (in-process).
"""

from dataclasses import dataclass
from typing import Any, List, Protocol

from .batching import Batch


@dataclass(frozen=True)
class Account:
    """A signing account as exported from a key source."""
    address: str
    public_key: bytes
    private_key: str

    def __repr__(self) -> str:
        return f"Account(address={self.address!r})"


class LedgerClient(Protocol):
    """
    Protocol for submitting batches to the store and reading boxes back.

    Implementations raise RemoteRejectionError, NotFoundError or
    TransportError; they never retry on behalf of the caller.
    """

    max_group_size: int
    max_references: int

    def execute(self, batch: Batch) -> List[str]:
        """
        Sign and submit one batch atomically, waiting for confirmation.

        Args:
            batch: Planned batch

        Returns:
            Transaction ids, one per submitted transaction
        """
        ...

    def read_box(self, key: bytes) -> bytes:
        """
        Read a box value.

        Raises:
            NotFoundError: If the box does not exist
        """
        ...


class Codec(Protocol):
    """ABI encoding of scalar and tuple values."""

    def encode(self, value: Any, type_str: str) -> bytes:
        ...

    def decode(self, data: bytes, type_str: str) -> Any:
        ...


class KeySource(Protocol):
    """Lists the accounts available for signing."""

    def accounts(self) -> List[Account]:
        ...


class ProgramLoader(Protocol):
    """Compiles program source to bytecode."""

    def compile(self, source: str) -> bytes:
        ...
