"""High-level service layer for DID document operations."""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import StoreConfig, load_config
from .delete import DeleteOrchestrator
from .errors import NotFoundError
from .ledger import Account, Codec, KeySource, LedgerClient
from .metadata import MetadataRecord, read_metadata
from .resolve import resolve_document
from .service_types import (
    DeleteResult,
    ProgressCallback,
    UpdateResult,
    UploadPlan,
    UploadResult,
)
from .upload import UploadOrchestrator, plan_upload

logger = logging.getLogger(__name__)


@dataclass
class ServiceDeps:
    """Dependency injection container for testability."""
    ledger: LedgerClient
    codec: Codec
    config: StoreConfig


def make_algod_deps(
    config: StoreConfig,
    account: Account,
    app_id: Optional[int] = None,
) -> ServiceDeps:
    """Wire the service to a live algod node."""
    from .algod import AbiCodec, AlgodLedgerClient, make_algod_client

    client = make_algod_client(config.algod)
    ledger = AlgodLedgerClient(client, app_id if app_id is not None else config.app_id, account)
    return ServiceDeps(ledger=ledger, codec=AbiCodec(), config=config)


def default_account(keys: KeySource) -> Account:
    """First account of the key source (the localnet dispenser)."""
    accounts = keys.accounts()
    if not accounts:
        raise NotFoundError("Key source has no accounts")
    return accounts[0]


class DIDService:
    """Store, resolve and delete DID documents.

    Each operation builds a fresh orchestrator: orchestrators are single-use
    state machines, and nothing is cached between calls.
    """

    def __init__(self, deps: Optional[ServiceDeps] = None):
        if deps is None:
            from .algod import KmdKeySource

            config = load_config()
            account = default_account(KmdKeySource(config.kmd))
            deps = make_algod_deps(config, account)
        self.deps = deps

    @property
    def config(self) -> StoreConfig:
        return self.deps.config

    def plan_upload(self, blob: bytes) -> UploadPlan:
        """Describe what an upload of blob would allocate and submit."""
        return plan_upload(blob, self.config)

    def upload(
        self,
        blob: bytes,
        owner_key: bytes,
        progress: Optional[ProgressCallback] = None,
    ) -> UploadResult:
        orchestrator = UploadOrchestrator(
            self.deps.ledger, self.deps.codec, self.config, progress=progress
        )
        return orchestrator.run(blob, owner_key)

    def delete(
        self,
        owner_key: bytes,
        progress: Optional[ProgressCallback] = None,
    ) -> DeleteResult:
        orchestrator = DeleteOrchestrator(
            self.deps.ledger, self.deps.codec, self.config, progress=progress
        )
        return orchestrator.run(owner_key)

    def update(
        self,
        blob: bytes,
        owner_key: bytes,
        progress: Optional[ProgressCallback] = None,
    ) -> UpdateResult:
        """Replace the stored document: delete the old one, upload the new one.

        Not atomic: if the upload fails after the delete, nothing is stored.
        """
        plan_upload(blob, self.config)

        deleted = None
        if self.metadata(owner_key) is not None:
            deleted = self.delete(owner_key, progress)
        else:
            logger.info("No existing document; uploading fresh")
        uploaded = self.upload(blob, owner_key, progress)
        return UpdateResult(deleted=deleted, uploaded=uploaded)

    def resolve(self, owner_key: bytes) -> bytes:
        return resolve_document(self.deps.ledger, self.deps.codec, owner_key, self.config)

    def metadata(self, owner_key: bytes) -> Optional[MetadataRecord]:
        """Metadata record for owner_key, or None if nothing is stored."""
        try:
            return read_metadata(
                self.deps.ledger, owner_key, self.deps.codec, self.config.status_codes
            )
        except NotFoundError:
            return None
