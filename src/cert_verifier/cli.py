"""
Command-line interface for the certificate verifier.

Usage:
    cert-verify verify 42
    cert-verify list --holder 0xabc...
    cert-verify list --issuer 0xdef... --status revoked
    cert-verify roles 0xabc...
    cert-verify hash metadata.json
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, NoReturn

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from cert_verifier import __version__
from cert_verifier.canonical import canonicalize, keccak256, parse_content
from cert_verifier.classifier import CredentialStatus, View, parse_status
from cert_verifier.config import LOG_LEVELS, Settings, load_settings
from cert_verifier.content import DEFAULT_GATEWAY
from cert_verifier.discovery import IdentifierDiscovery
from cert_verifier.errors import CertVerifierError
from cert_verifier.ledger import ParticipantRole
from cert_verifier.loader import BatchLoader, summarize
from cert_verifier.logging_config import setup_logging
from cert_verifier.metadata import prepare_metadata
from cert_verifier.resolver import CredentialRecord, CredentialResolver


console = Console()

STATUS_STYLES = {
    CredentialStatus.VALID: "green",
    CredentialStatus.REVOKED: "red",
    CredentialStatus.INVALID: "red",
    CredentialStatus.NOT_FOUND: "yellow",
    CredentialStatus.ERROR: "yellow",
}


def _format_time(epoch: int | None) -> str:
    if not epoch:
        return "-"
    return datetime.fromtimestamp(epoch, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _short(address: str | None) -> str:
    if not address:
        return "-"
    if len(address) <= 13:
        return address
    return f"{address[:6]}...{address[-4:]}"


def _fail(message: str, json_output: bool) -> NoReturn:
    if json_output:
        console.print_json(data={"error": message})
    else:
        console.print(f"[red]Error:[/] {message}")
    sys.exit(2)


def format_record(record: CredentialRecord, view: View) -> None:
    """Format and print a single verification result."""
    style = STATUS_STYLES[record.status]

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="dim")
    table.add_column("Value")

    table.add_row("Status", f"[bold {style}]{record.label(view)}[/]")
    table.add_row("Certificate ID", str(record.identifier))

    if record.issuer:
        table.add_row("Issuer", record.issuer)
    if record.holder:
        table.add_row("Holder", record.holder)
    if record.issued_at is not None:
        table.add_row("Issued At", _format_time(record.issued_at))
    if record.content_uri:
        table.add_row("Content URI", record.content_uri)
    if record.onchain_hash:
        table.add_row("On-chain Hash", record.onchain_hash)
    if record.computed_hash:
        hash_style = "green" if record.computed_hash == record.onchain_hash else "red"
        table.add_row("Computed Hash", f"[{hash_style}]{record.computed_hash}[/]")

    if isinstance(record.content, dict):
        for key in ("name", "type", "specialization", "issuedBy", "issuedDate"):
            if key in record.content:
                table.add_row(key, str(record.content[key]))

    console.print(Panel(table, title="Certificate Verification", border_style=style))

    if record.error:
        console.print(f"\n[bold red]Error:[/] {record.error}")

    if record.warnings:
        console.print("\n[bold yellow]Warnings:[/]")
        for warning in record.warnings:
            console.print(f"  [yellow]![/] {warning}")


def format_records(records: list[CredentialRecord], view: View) -> None:
    """Print a batch of results as a table with a per-status summary."""
    table = Table(title="Certificates")
    table.add_column("ID", justify="right")
    table.add_column("Status")
    table.add_column("Holder" if view is View.ISSUER else "Issuer")
    table.add_column("Name")
    table.add_column("Issued At")

    for record in records:
        style = STATUS_STYLES[record.status]
        counterpart = record.holder if view is View.ISSUER else record.issuer
        name = record.content.get("name", "") if isinstance(record.content, dict) else ""
        table.add_row(
            str(record.identifier),
            f"[{style}]{record.label(view)}[/]",
            _short(counterpart),
            str(name) or "-",
            _format_time(record.issued_at)[:10],
        )

    console.print(table)
    summary = ", ".join(f"{label}: {count}" for label, count in summarize(records, view).items() if count)
    console.print(f"[dim]{len(records)} certificates[/]" + (f" [dim]({summary})[/]" if summary else ""))


def load_document(source: str, settings: Settings) -> Any:
    """Load a JSON document from file, URL, or stdin.

    Args:
        source: File path, URL, or "-" for stdin.
        settings: Used to build the content fetcher for URLs.
    """
    if source == "-":
        return parse_content(sys.stdin.buffer.read())

    if source.startswith(("http://", "https://", "ipfs://")):
        with settings.content_fetcher() as fetcher:
            return parse_content(fetcher.fetch(source))

    path = Path(source)
    if not path.exists():
        raise click.ClickException(f"File not found: {source}")
    return parse_content(path.read_bytes())


@click.group()
@click.option("--rpc-url", help="Ethereum JSON-RPC endpoint [env: CERT_RPC_URL]")
@click.option("--contract", "contract_address", help="Registry contract address [env: CERT_CONTRACT_ADDRESS]")
@click.option(
    "--deploy-block",
    type=click.IntRange(min=0),
    help="Block the registry was deployed at, where event scans start [env: CERT_DEPLOY_BLOCK]",
)
@click.option(
    "--gateway",
    "ipfs_gateway",
    help=f"IPFS gateway for ipfs:// locators [env: CERT_IPFS_GATEWAY; default: {DEFAULT_GATEWAY}]",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    help="Per-request timeout in seconds [env: CERT_TIMEOUT; default: 30]",
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    help="Parallel certificate lookups [env: CERT_CONCURRENCY; default: 5]",
)
@click.option(
    "--max-block-range",
    type=click.IntRange(min=1),
    help="Widest block window per eth_getLogs call [env: CERT_MAX_BLOCK_RANGE; default: 10000]",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="[env: CERT_LOG_LEVEL; default: warning]",
)
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, **options: Any) -> None:
    """Verify blockchain-anchored certificates.

    Every option can also be set through its CERT_* environment variable;
    options win over the environment.
    """
    try:
        settings = load_settings(**options)
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    setup_logging(settings.log_level)
    ctx.obj = settings


@main.command()
@click.argument("token_id", type=click.IntRange(min=0))
@click.option("--issuer-view", is_flag=True, help="Label valid certificates as ACTIVE")
@click.option("--json-output", is_flag=True, help="Output result as JSON")
@click.pass_obj
def verify(settings: Settings, token_id: int, issuer_view: bool, json_output: bool) -> None:
    """Verify one certificate by TOKEN_ID.

    Exits 0 when the certificate is valid, 1 when it is revoked, tampered
    or unknown, and 2 when the check could not be completed.
    """
    view = View.ISSUER if issuer_view else View.HOLDER
    try:
        with settings.registry_reader() as ledger, settings.content_fetcher() as fetcher:
            record = CredentialResolver(ledger, fetcher).resolve(token_id)
    except CertVerifierError as e:
        _fail(str(e), json_output)

    if json_output:
        console.print_json(data=record.to_dict(view))
    else:
        format_record(record, view)

    if record.status is CredentialStatus.ERROR:
        sys.exit(2)
    sys.exit(0 if record.is_valid else 1)


@main.command(name="list")
@click.option("--holder", help="List certificates issued to this address")
@click.option("--issuer", help="List certificates issued by this address")
@click.option("--limit", type=click.IntRange(min=1), default=50, show_default=True, help="Newest N certificates")
@click.option("--status", "status_filter", help="Only show VALID/ACTIVE, REVOKED, INVALID, NOT_FOUND or ERROR")
@click.option("--retries", type=click.IntRange(min=0), default=0, show_default=True, help="Retries on transport errors")
@click.option("--json-output", is_flag=True, help="Output results as JSON")
@click.pass_obj
def list_certificates(
    settings: Settings,
    holder: str | None,
    issuer: str | None,
    limit: int,
    status_filter: str | None,
    retries: int,
    json_output: bool,
) -> None:
    """Discover and verify certificates for a holder or an issuer."""
    if bool(holder) == bool(issuer):
        raise click.UsageError("Pass exactly one of --holder or --issuer")

    wanted: CredentialStatus | None = None
    if status_filter:
        try:
            wanted = parse_status(status_filter)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--status") from e

    role = ParticipantRole.HOLDER if holder else ParticipantRole.ISSUER
    view = View.HOLDER if holder else View.ISSUER
    participant = holder or issuer

    try:
        with settings.registry_reader() as ledger, settings.content_fetcher() as fetcher:
            loader = BatchLoader(
                CredentialResolver(ledger, fetcher),
                discovery=IdentifierDiscovery(ledger),
                concurrency=settings.concurrency,
                retries=retries,
            )
            records = loader.load_for_participant(participant, role, limit=limit)
    except CertVerifierError as e:
        _fail(str(e), json_output)

    if wanted is not None:
        records = [record for record in records if record.status is wanted]

    if json_output:
        console.print_json(
            data={
                "participant": participant,
                "role": role.value,
                "summary": summarize(records, view),
                "certificates": [record.to_dict(view) for record in records],
            }
        )
    else:
        format_records(records, view)


@main.command()
@click.argument("address")
@click.option("--json-output", is_flag=True, help="Output result as JSON")
@click.pass_obj
def roles(settings: Settings, address: str, json_output: bool) -> None:
    """Show the registry roles held by ADDRESS."""
    try:
        with settings.registry_reader() as ledger:
            user_roles = ledger.check_roles(address)
    except CertVerifierError as e:
        _fail(str(e), json_output)

    if json_output:
        console.print_json(
            data={"address": user_roles.address, "admin": user_roles.is_admin, "issuer": user_roles.is_issuer}
        )
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Address", user_roles.address)
    table.add_row("Admin", "[green]yes[/]" if user_roles.is_admin else "[dim]no[/]")
    table.add_row("Issuer", "[green]yes[/]" if user_roles.is_issuer else "[dim]no[/]")
    console.print(Panel(table, title="Registry Roles"))


@main.command(name="hash")
@click.argument("source")
@click.option("--raw", is_flag=True, help="Hash the document as-is instead of validating it as certificate metadata")
@click.option("--json-output", is_flag=True, help="Output result as JSON")
@click.pass_obj
def hash_document(settings: Settings, source: str, raw: bool, json_output: bool) -> None:
    """Compute the canonical hash of a metadata document.

    SOURCE can be a file path, a URL, or "-" to read from stdin.
    """
    try:
        document = load_document(source, settings)
        if raw:
            canonical = canonicalize(document)
            canonical_json, content_hash = canonical.decode("utf-8"), keccak256(canonical)
        else:
            prepared = prepare_metadata(document)
            canonical_json, content_hash = prepared.canonical_json, prepared.content_hash
    except CertVerifierError as e:
        _fail(str(e), json_output)

    if json_output:
        console.print_json(data={"contentHash": content_hash, "canonicalJson": canonical_json})
    else:
        console.print(f"[bold]Content hash:[/] {content_hash}")
        console.print("[dim]Canonical JSON:[/]")
        console.print(canonical_json, markup=False, highlight=False, soft_wrap=True)


if __name__ == "__main__":
    main()
