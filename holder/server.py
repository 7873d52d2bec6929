"""Inbound DIDComm endpoint.

FastAPI app the issuer delivers DIDComm messages to. Messages are
accepted with 202 immediately and dispatched in a background task.
"""

import logging

from fastapi import BackgroundTasks, FastAPI, Request, Response
from pydantic import BaseModel, Field

from holder import __version__
from holder.config import DIDCOMM_PATH
from holder.core.exceptions import TransportError
from holder.service import HolderService

log = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    ok: bool = Field(..., description="Service is up")
    version: str = Field(..., description="Holder version")
    holder_did: str = Field(..., description="Holder DID")
    outstanding_confirmations: int = Field(..., description="Tokens awaiting acknowledgment")


async def _handle_message(service: HolderService, raw: str) -> None:
    try:
        outcome = await service.on_inbound_message(raw)
        log.debug(f"Inbound message dispatched: {outcome.value}")
    except TransportError as e:
        log.warning(f"Dropped inbound message: {e}")
    except Exception as e:
        log.error(f"Inbound message handling failed: {e}", exc_info=True)


def create_app(service: HolderService) -> FastAPI:
    """Create the inbound endpoint app bound to one holder service."""
    app = FastAPI(title="OID4VCI Holder", version=__version__)
    app.state.holder = service

    @app.post(DIDCOMM_PATH, status_code=202)
    async def didcomm(request: Request, background_tasks: BackgroundTasks) -> Response:
        """Accept a packed DIDComm message."""
        raw = (await request.body()).decode("utf-8", errors="replace")
        background_tasks.add_task(_handle_message, request.app.state.holder, raw)
        return Response(status_code=202)

    @app.get("/healthz", response_model=HealthResponse)
    async def healthz(request: Request) -> HealthResponse:
        """Health check endpoint."""
        holder: HolderService = request.app.state.holder
        return HealthResponse(
            ok=True,
            version=__version__,
            holder_did=holder.holder_did,
            outstanding_confirmations=len(holder.confirmations),
        )

    return app
