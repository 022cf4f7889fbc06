"""Algorand adapters for the ledger, codec, key source and program loader.

All py-algorand-sdk usage is confined to this module. SDK errors are mapped
onto the algo-did error hierarchy: 404 -> NotFoundError, 401/403 ->
ConfigurationError, program and validation failures (including rejected
groups) -> RemoteRejectionError, network failures and confirmation timeouts
-> TransportError.
"""

import base64
import copy
import logging
from typing import Any, Dict, List, Optional
from urllib.error import URLError

from algosdk import abi, encoding, logic, transaction
from algosdk.atomic_transaction_composer import (
    AccountTransactionSigner,
    AtomicTransactionComposer,
    TransactionWithSigner,
)
from algosdk.error import (
    AlgodHTTPError,
    AtomicTransactionComposerError,
    ConfirmationTimeoutError,
    KMDHTTPError,
    TransactionRejectedError,
)
from algosdk.kmd import KMDClient
from algosdk.v2client.algod import AlgodClient

from .batching import Batch, Operation, OperationKind
from .config import AlgodSettings, KmdSettings
from .constants import APP_MIN_BALANCE
from .errors import ConfigurationError, NotFoundError, RemoteRejectionError, TransportError
from .ledger import Account

logger = logging.getLogger(__name__)

# ABI signatures of the deployed program
METHOD_SIGNATURES = {
    "createApplication": "createApplication()void",
    OperationKind.ALLOCATE.value: "startUpload(address,uint64,uint64,pay)void",
    OperationKind.WRITE.value: "upload(address,uint64,uint64,byte[])void",
    OperationKind.FINALIZE.value: "finishUpload(address)void",
    OperationKind.START_DELETE.value: "startDelete(address)void",
    OperationKind.ERASE.value: "deleteData(address,uint64)void",
    OperationKind.NOOP.value: "dummy()void",
}

WAIT_ROUNDS = 3


def make_algod_client(settings: AlgodSettings) -> AlgodClient:
    return AlgodClient(settings.token, settings.address)


def get_method(name: str) -> abi.Method:
    return abi.Method.from_signature(METHOD_SIGNATURES[name])


def _map_http_error(e: AlgodHTTPError, context: str) -> Exception:
    code = getattr(e, "code", None)
    if code == 404:
        return NotFoundError(f"{context}: {e}")
    if code in (401, 403):
        return ConfigurationError(f"{context}: algod refused the API token ({code}): {e}")
    if code is None or code >= 500:
        return TransportError(f"{context}: {e}")
    return RemoteRejectionError(str(e), context)


def _map_submit_error(e: Exception, context: str) -> Exception:
    """Map a failure while submitting or confirming a group."""
    if isinstance(e, AlgodHTTPError):
        return _map_http_error(e, context)
    if isinstance(e, (TransactionRejectedError, AtomicTransactionComposerError)):
        return RemoteRejectionError(str(e), context)
    return TransportError(f"{context}: {e}")


# Failures raised by group submission and confirmation
SUBMIT_ERRORS = (
    AlgodHTTPError,
    AtomicTransactionComposerError,
    ConfirmationTimeoutError,
    TransactionRejectedError,
    URLError,
    OSError,
)


class AbiCodec:
    """ABI encoding via algosdk.abi."""

    def __init__(self):
        self._types: Dict[str, abi.ABIType] = {}

    def _type(self, type_str: str) -> abi.ABIType:
        if type_str not in self._types:
            self._types[type_str] = abi.ABIType.from_string(type_str)
        return self._types[type_str]

    def encode(self, value: Any, type_str: str) -> bytes:
        return bytes(self._type(type_str).encode(value))

    def decode(self, data: bytes, type_str: str) -> Any:
        return self._type(type_str).decode(data)


class AlgodLedgerClient:
    """Submits batches as atomic transaction groups against one application."""

    max_group_size = 16
    max_references = 8

    def __init__(
        self,
        client: AlgodClient,
        app_id: int,
        account: Account,
        wait_rounds: int = WAIT_ROUNDS,
    ):
        self.client = client
        self.app_id = app_id
        self.account = account
        self.signer = AccountTransactionSigner(account.private_key)
        self.wait_rounds = wait_rounds

    @property
    def app_address(self) -> str:
        return logic.get_application_address(self.app_id)

    def execute(self, batch: Batch) -> List[str]:
        try:
            sp = self.client.suggested_params()
            atc = AtomicTransactionComposer()
            for op in batch.operations:
                self._add_operation(atc, op, sp)
            result = atc.execute(self.client, self.wait_rounds)
        except SUBMIT_ERRORS as e:
            raise _map_submit_error(e, batch.label) from e
        logger.debug("Batch '%s' confirmed in round %s", batch.label, result.confirmed_round)
        return list(result.tx_ids)

    def _add_operation(
        self,
        atc: AtomicTransactionComposer,
        op: Operation,
        sp: transaction.SuggestedParams,
    ) -> None:
        # Per-call copy so a flat fee never leaks into other calls
        params = copy.copy(sp)
        if op.fee is not None:
            params.fee = op.fee
            params.flat_fee = True

        method_args = list(op.args)
        if op.kind == OperationKind.ALLOCATE:
            payment = transaction.PaymentTxn(
                self.account.address, copy.copy(sp), self.app_address, op.funding
            )
            method_args.append(TransactionWithSigner(payment, self.signer))

        atc.add_method_call(
            app_id=self.app_id,
            method=get_method(op.kind.value),
            sender=self.account.address,
            sp=params,
            signer=self.signer,
            method_args=method_args,
            boxes=[(0, ref) for ref in op.references],
            note=op.note or None,
        )

    def read_box(self, key: bytes) -> bytes:
        try:
            response = self.client.application_box_by_name(self.app_id, key)
        except AlgodHTTPError as e:
            raise _map_http_error(e, "read box") from e
        except (URLError, OSError) as e:
            raise TransportError(f"read box: {e}") from e
        return base64.b64decode(response["value"])


class KmdKeySource:
    """Lists and exports the accounts of one KMD wallet."""

    def __init__(self, settings: KmdSettings, client: Optional[KMDClient] = None):
        self.settings = settings
        self.client = client or KMDClient(settings.token, settings.address)

    def accounts(self) -> List[Account]:
        name = self.settings.wallet_name
        password = self.settings.wallet_password
        try:
            wallets = self.client.list_wallets()
            wallet_id = next((w["id"] for w in wallets if w["name"] == name), None)
            if not wallet_id:
                raise NotFoundError(f"No wallet named {name}")

            handle = self.client.init_wallet_handle(wallet_id, password)
            try:
                accounts = []
                for address in self.client.list_keys(handle):
                    private_key = self.client.export_key(handle, password, address)
                    accounts.append(Account(
                        address=address,
                        public_key=encoding.decode_address(address),
                        private_key=private_key,
                    ))
            finally:
                self.client.release_wallet_handle(handle)
        except KMDHTTPError as e:
            raise TransportError(f"KMD request failed: {e}") from e
        except (URLError, OSError) as e:
            raise TransportError(f"Cannot reach KMD at {self.settings.address}: {e}") from e
        return accounts


class AlgodProgramLoader:
    """Compiles TEAL source with the node's compiler."""

    def __init__(self, client: AlgodClient):
        self.client = client

    def compile(self, source: str) -> bytes:
        try:
            result = self.client.compile(source)
        except AlgodHTTPError as e:
            raise _map_http_error(e, "compile") from e
        return base64.b64decode(result["result"])


def create_application(
    client: AlgodClient,
    loader: AlgodProgramLoader,
    account: Account,
    approval_source: str,
    clear_source: str,
) -> int:
    """Deploy the program and fund its account with the minimum balance.

    Returns:
        The new application id
    """
    signer = AccountTransactionSigner(account.private_key)
    try:
        sp = client.suggested_params()
        atc = AtomicTransactionComposer()
        atc.add_method_call(
            app_id=0,
            method=get_method("createApplication"),
            sender=account.address,
            sp=sp,
            signer=signer,
            approval_program=loader.compile(approval_source),
            clear_program=loader.compile(clear_source),
            global_schema=transaction.StateSchema(num_uints=1, num_byte_slices=0),
            local_schema=transaction.StateSchema(num_uints=0, num_byte_slices=0),
        )
        result = atc.execute(client, WAIT_ROUNDS)
        app_id = client.pending_transaction_info(result.tx_ids[0])["application-index"]
        logger.info("Created application %d", app_id)

        payment = transaction.PaymentTxn(
            account.address, sp, logic.get_application_address(app_id), APP_MIN_BALANCE
        )
        txid = client.send_transaction(payment.sign(account.private_key))
        transaction.wait_for_confirmation(client, txid, WAIT_ROUNDS)
    except SUBMIT_ERRORS as e:
        raise _map_submit_error(e, "create application") from e
    return app_id
