"""
Command line interface for the mint authorization service.
"""
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError as ModelValidationError

from .config import ServiceConfig
from .exceptions import SigningError
from .logging_config import configure_logging
from .models import Voucher
from .signer import SigningAuthority, VoucherDomain, VoucherSigner, encode_voucher

app = typer.Typer(help="Signature-based mint authorization service")

logger = logging.getLogger(__name__)


def _domain(config: ServiceConfig) -> VoucherDomain:
    return VoucherDomain(
        chain_id=config.chain_id,
        verifying_contract=config.collection_address,
        name=config.domain_name,
        version=config.domain_version,
    )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Interface to bind"),
    port: int = typer.Option(8000, help="Port to bind"),
):
    """Run the HTTP API."""
    import uvicorn
    from .server import create_app

    config = ServiceConfig.from_env()
    configure_logging(config.log_level)
    try:
        application = create_app(config=config)
    except (SigningError, ValueError) as e:
        typer.echo(f"Cannot start: {e}", err=True)
        raise typer.Exit(code=1)
    uvicorn.run(application, host=host, port=port, log_level=config.log_level.lower())


@app.command()
def verify(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON response from /mint-authorization"),
    signer: Optional[str] = typer.Option(None, help="Expected signer address (defaults to the configured key's address)"),
):
    """Verify a signed voucher against the configured domain."""
    config = ServiceConfig.from_env()
    domain = _domain(config)

    if signer is None:
        try:
            signer = SigningAuthority.from_key(config.signer_key, domain).address
        except SigningError as e:
            typer.echo(f"No signer given and {e}", err=True)
            raise typer.Exit(code=2)

    try:
        document = json.loads(path.read_text(encoding="utf-8"))
        voucher = Voucher.model_validate(document["voucher"])
        signature = document["signature"]
    except (ValueError, KeyError, TypeError, ModelValidationError) as e:
        typer.echo(f"Invalid voucher document: {e}", err=True)
        raise typer.Exit(code=2)

    if VoucherSigner.verify_encoded(encode_voucher(voucher, domain), signature, signer):
        typer.echo(f"OK: voucher {voucher.sequence_number} for {voucher.to} signed by {signer}")
        return
    typer.echo("INVALID: signature does not match voucher, domain or signer", err=True)
    raise typer.Exit(code=1)


@app.command()
def address():
    """Print the signing authority's address."""
    config = ServiceConfig.from_env()
    try:
        authority = SigningAuthority.from_key(config.signer_key, _domain(config))
    except SigningError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    typer.echo(authority.address)


def main():
    app()


if __name__ == "__main__":
    main()
