"""Holder command line.

Commands:
    holder issue [OFFER]   Run one issuance (prompts for the offer if omitted)
    holder serve           Run the inbound DIDComm endpoint only
"""

import asyncio
import json
import logging
from typing import Optional

import typer
import uvicorn

from holder.config import CHAT_ENABLED, LISTEN_HOST, LISTEN_PORT, LOG_LEVEL, validate_config
from holder.core.logging import configure_logging
from holder.issuance.models import CredentialResult, Failed, Issued
from holder.server import create_app
from holder.service import HolderService

log = logging.getLogger("holder")

EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_CANCELLED = 130

app = typer.Typer(
    name="holder",
    help="OID4VCI holder with DIDComm token confirmation.",
    no_args_is_help=True,
)


def _setup(verbose: bool) -> None:
    configure_logging(log_level="DEBUG" if verbose else LOG_LEVEL)
    issues = validate_config()
    if issues:
        for issue in issues:
            log.error(f"Configuration error: {issue}")
        raise typer.Exit(EXIT_CONFIG_ERROR)


def _build_server(service: HolderService, host: str, port: int) -> uvicorn.Server:
    config = uvicorn.Config(create_app(service), host=host, port=port, log_config=None)
    return uvicorn.Server(config)


async def _issue(offer: Optional[str], chat: bool, host: str, port: int) -> CredentialResult:
    service = HolderService.from_config(chat_enabled=chat)
    server = _build_server(service, host, port)
    server_task = asyncio.create_task(server.serve())

    try:
        while not server.started and not server_task.done():
            await asyncio.sleep(0.05)
        log.info(f"DIDComm endpoint listening on http://{host}:{port}")
        return await service.issue_credential(offer)
    finally:
        server.should_exit = True
        await server_task
        await service.aclose()


async def _serve(host: str, port: int) -> None:
    service = HolderService.from_config(chat_enabled=False)
    try:
        await _build_server(service, host, port).serve()
    finally:
        await service.aclose()


@app.command("issue")
def issue_cmd(
    offer: Optional[str] = typer.Argument(
        None,
        help="Credential offer URI or JSON; prompted for if omitted",
    ),
    chat: bool = typer.Option(
        CHAT_ENABLED,
        "--chat/--no-chat",
        help="Open a DIDComm chat with the issuer after issuance",
    ),
    host: str = typer.Option(LISTEN_HOST, "--host", help="Inbound endpoint host"),
    port: int = typer.Option(LISTEN_PORT, "--port", help="Inbound endpoint port"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Run one credential issuance and print the credential."""
    _setup(verbose)

    try:
        result = asyncio.run(_issue(offer, chat, host, port))
    except KeyboardInterrupt:
        typer.echo("Issuance cancelled", err=True)
        raise typer.Exit(EXIT_CANCELLED)

    if isinstance(result, Issued):
        typer.echo(json.dumps(result.credential, indent=2))
        return

    if isinstance(result, Failed):
        typer.echo(f"Credential error: {result.reason}", err=True)
        if result.error_code:
            typer.echo(f"Issuer error code: {result.error_code}", err=True)
    raise typer.Exit(EXIT_FAILED)


@app.command("serve")
def serve_cmd(
    host: str = typer.Option(LISTEN_HOST, "--host", help="Inbound endpoint host"),
    port: int = typer.Option(LISTEN_PORT, "--port", help="Inbound endpoint port"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Run the inbound DIDComm endpoint; re-offers start issuance runs."""
    _setup(verbose)
    try:
        asyncio.run(_serve(host, port))
    except KeyboardInterrupt:
        pass


def run() -> None:
    """Run the CLI."""
    app()


if __name__ == "__main__":
    run()
