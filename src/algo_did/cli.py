"""CLI for algo-did."""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional, Tuple

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import AlgodSettings, StoreConfig, load_config, save_config
from .context import ProjectContext
from .errors import InvalidDIDError, StoreError
from .ledger import Account
from .service import DIDService, ServiceDeps, default_account, make_algod_deps
from .upload import plan_upload
from .utils import format_algos, humanize_size

app = typer.Typer(help="""\
Store DID documents in Algorand application boxes. Plan the box layout,
upload, resolve, update and delete documents.""")

console = Console()


class ConsoleProgress:
    """Prints state transitions and confirmed batches."""

    def on_state(self, state: str) -> None:
        console.print(f"[bold]→ {state}[/bold]")

    def on_batch_complete(self, label: str, tx_ids: List[str]) -> None:
        console.print(f"  [green]✓[/green] {label} ({len(tx_ids)} txns)")


@contextmanager
def handle_errors():
    """Report the first error and exit non-zero."""
    try:
        yield
    except StoreError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _decode_owner(owner: str) -> bytes:
    from algosdk import encoding

    try:
        return encoding.decode_address(owner)
    except Exception as e:
        raise InvalidDIDError(f"Invalid owner. Expected Algorand address, got {owner!r}") from e


def _connect(
    config: StoreConfig,
    owner: Optional[str],
    app_id: Optional[int],
    dry_run: bool = False,
) -> Tuple[DIDService, bytes]:
    """Build the service and resolve the owner key."""
    if dry_run:
        from .memory import InMemoryLedger

        ledger = InMemoryLedger(config)
        service = DIDService(ServiceDeps(ledger=ledger, codec=ledger.codec, config=config))
        return service, _decode_owner(owner) if owner else bytes(32)

    from .algod import KmdKeySource

    account: Account = default_account(KmdKeySource(config.kmd))
    service = DIDService(make_algod_deps(config, account, app_id))
    return service, _decode_owner(owner) if owner else account.public_key


def _read_document(path: Path) -> bytes:
    if not path.exists():
        console.print(f"[red]✗[/red] File not found: {path}")
        raise typer.Exit(1)
    return path.read_bytes()


@app.command()
def init(
    app_id: int = typer.Option(0, "--app-id", help="Application id of the deployed program"),
    algod_address: Optional[str] = typer.Option(None, "--algod", help="algod address"),
):
    """Create .algo-did/config.yaml in the current directory."""
    if ProjectContext.is_initialized():
        console.print("[yellow]Already initialized[/yellow]")
        raise typer.Exit(1)

    with handle_errors():
        ctx = ProjectContext.init()
        config = StoreConfig(app_id=app_id)
        if algod_address:
            config = config.model_copy(update={"algod": AlgodSettings(address=algod_address)})
        save_config(config, ctx)
    console.print(f"[green]✓[/green] Initialized {ctx.config_path}")


@app.command()
def plan(
    file: Path = typer.Argument(..., help="Document to store"),
):
    """Show the box layout, cost and batches an upload would need."""
    data = _read_document(file)
    with handle_errors():
        upload_plan = plan_upload(data, load_config())

    table = Table(title=f"{file.name} ({humanize_size(upload_plan.document_size)})")
    table.add_column("Box", justify="right")
    table.add_column("Bytes", justify="right")
    table.add_column("Chunks", justify="right")
    for i, (size, chunks) in enumerate(zip(upload_plan.slot_sizes, upload_plan.chunk_counts)):
        table.add_row(f"+{i}", str(size), str(chunks))
    console.print(table)
    console.print(f"Boxes: {upload_plan.num_slots} (tail {upload_plan.cost.tail_size} bytes)")
    console.print(
        f"Funding: {upload_plan.cost.total} microAlgos ({format_algos(upload_plan.cost.total)})"
    )
    console.print(f"Batches: {upload_plan.total_batches} ({upload_plan.write_batches} write)")


@app.command()
def upload(
    file: Path = typer.Argument(..., help="Document to store"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner address (default: signing account)"),
    app_id: Optional[int] = typer.Option(None, "--app-id", help="Override configured application id"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Run against an in-memory ledger"),
):
    """Upload a document into boxes."""
    data = _read_document(file)
    with handle_errors():
        config = load_config()
        service, owner_key = _connect(config, owner, app_id, dry_run)
        result = service.upload(data, owner_key, progress=ConsoleProgress())

    meta = result.metadata
    console.print(
        f"[green]✓[/green] Stored {humanize_size(len(data))} in boxes "
        f"{meta.start}..{meta.end} ({result.batches_submitted} batches)"
    )


@app.command()
def delete(
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner address (default: signing account)"),
    app_id: Optional[int] = typer.Option(None, "--app-id", help="Override configured application id"),
):
    """Delete a stored document and reclaim its box funding."""
    with handle_errors():
        config = load_config()
        service, owner_key = _connect(config, owner, app_id)
        result = service.delete(owner_key, progress=ConsoleProgress())
    console.print(f"[green]✓[/green] Erased {result.slots_erased} boxes")


@app.command()
def update(
    file: Path = typer.Argument(..., help="Replacement document"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner address (default: signing account)"),
    app_id: Optional[int] = typer.Option(None, "--app-id", help="Override configured application id"),
):
    """Replace a stored document (delete, then upload)."""
    data = _read_document(file)
    with handle_errors():
        config = load_config()
        service, owner_key = _connect(config, owner, app_id)
        result = service.update(data, owner_key, progress=ConsoleProgress())
    meta = result.uploaded.metadata
    console.print(f"[green]✓[/green] Updated document in boxes {meta.start}..{meta.end}")


@app.command()
def resolve(
    did: str = typer.Argument(..., help="did:algo:<address>-<app id>"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write document to file"),
):
    """Resolve a DID to its stored document."""
    from .algod import AbiCodec, AlgodLedgerClient, make_algod_client
    from .resolve import parse_did

    with handle_errors():
        ref = parse_did(did)
        config = load_config()
        # Reads need no signer
        reader = Account(address=ref.address, public_key=ref.public_key, private_key="")
        ledger = AlgodLedgerClient(make_algod_client(config.algod), ref.app_id, reader)
        service = DIDService(ServiceDeps(ledger=ledger, codec=AbiCodec(), config=config))
        document = service.resolve(ref.public_key)

    if output:
        output.write_bytes(document)
        console.print(f"[green]✓[/green] Wrote {humanize_size(len(document))} to {output}")
    else:
        console.print(document.decode("utf-8", errors="replace"), markup=False, highlight=False)


@app.command()
def status(
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner address (default: signing account)"),
    app_id: Optional[int] = typer.Option(None, "--app-id", help="Override configured application id"),
):
    """Show the metadata record for a stored document."""
    with handle_errors():
        config = load_config()
        service, owner_key = _connect(config, owner, app_id)
        meta = service.metadata(owner_key)

    if meta is None:
        console.print("[yellow]No document stored[/yellow]")
        return
    table = Table(show_header=False)
    table.add_row("Status", meta.status.value)
    table.add_row("Boxes", f"{meta.start}..{meta.end} ({meta.num_slots})")
    table.add_row("Tail size", str(meta.tail_size))
    console.print(table)


@app.command("create-app")
def create_app(
    approval: Path = typer.Argument(..., help="Approval program (TEAL)"),
    clear: Path = typer.Argument(..., help="Clear program (TEAL)"),
):
    """Deploy the storage program and record its id in the config."""
    from .algod import AlgodProgramLoader, KmdKeySource, create_application, make_algod_client

    with handle_errors():
        config = load_config()
        client = make_algod_client(config.algod)
        account = default_account(KmdKeySource(config.kmd))
        new_id = create_application(
            client, AlgodProgramLoader(client), account,
            _read_document(approval).decode(), _read_document(clear).decode(),
        )

    console.print(f"[green]✓[/green] Created application {new_id}")
    if ProjectContext.is_initialized():
        config.app_id = new_id
        save_config(config, ProjectContext())
        console.print("  Saved app_id to config")


if __name__ == "__main__":
    app()
