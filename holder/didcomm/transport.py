"""DIDComm messaging transport.

``MessagingTransport`` is the contract the orchestrator, dispatcher and
chat use. ``DIDCommTransport`` implements it over an injected packer
(encryption/decoding) and endpoint resolver (DID resolution), delivering
packed messages with httpx. Delivery is fire-and-forget: the only
acknowledgment is a protocol-level reply message.
"""

import json
import logging
from typing import Any, Optional, Protocol
from uuid import uuid4

import httpx

from holder.config import HTTP_TIMEOUT
from holder.core.exceptions import TransportError
from holder.didcomm.messages import DecodedMessage

log = logging.getLogger(__name__)

PLAINTEXT_MEDIA_TYPE = "application/didcomm-plain+json"


class MessagingTransport(Protocol):
    async def send(
        self,
        to: str,
        from_: str,
        type: str,
        body: dict[str, Any],
        thid: Optional[str] = None,
    ) -> str:
        ...

    async def receive(self, raw: str) -> DecodedMessage:
        ...


class MessagePacker(Protocol):
    """Packs outbound and unpacks inbound DIDComm messages."""

    media_type: str

    async def pack(self, message: dict[str, Any]) -> str:
        ...

    async def unpack(self, raw: str) -> dict[str, Any]:
        ...


class EndpointResolver(Protocol):
    async def resolve_endpoint(self, did: str) -> str:
        ...


class PlaintextPacker:
    """DIDComm plaintext packing (no encryption). For local development."""

    media_type = PLAINTEXT_MEDIA_TYPE

    async def pack(self, message: dict[str, Any]) -> str:
        return json.dumps(message)

    async def unpack(self, raw: str) -> dict[str, Any]:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError as e:
            raise TransportError(f"Message is not valid JSON: {e}") from e
        if not isinstance(message, dict):
            raise TransportError("Message must be a JSON object")
        return message


class StaticEndpointResolver:
    """Resolves DIDs from a fixed DID -> endpoint map."""

    def __init__(self, endpoints: dict[str, str]):
        self._endpoints = dict(endpoints)

    async def resolve_endpoint(self, did: str) -> str:
        endpoint = self._endpoints.get(did)
        if not endpoint:
            raise TransportError(f"No DIDComm endpoint known for {did}")
        return endpoint


class DIDCommTransport:
    """Sends and receives DIDComm messages.

    Args:
        packer: Packs/unpacks message envelopes
        resolver: Maps recipient DIDs to service endpoints
        timeout: HTTP timeout in seconds
        http_client: Pre-built client (tests inject one with a MockTransport)
    """

    def __init__(
        self,
        packer: MessagePacker,
        resolver: EndpointResolver,
        timeout: float = HTTP_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._packer = packer
        self._resolver = resolver
        self._timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def send(
        self,
        to: str,
        from_: str,
        type: str,
        body: dict[str, Any],
        thid: Optional[str] = None,
    ) -> str:
        """Pack and deliver a message.

        Returns:
            The message id.

        Raises:
            TransportError: Packing, resolution or delivery failed.
        """
        message: dict[str, Any] = {
            "id": uuid4().hex,
            "type": type,
            "to": [to],
            "from": from_,
            "body": body,
        }
        if thid is not None:
            message["thid"] = thid

        endpoint = await self._resolver.resolve_endpoint(to)
        packed = await self._packer.pack(message)

        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)

        try:
            response = await self._client.post(
                endpoint,
                content=packed.encode("utf-8"),
                headers={"Content-Type": self._packer.media_type},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Delivery to {endpoint} failed: {e}") from e

        if not response.is_success:
            raise TransportError(f"Delivery to {endpoint} failed: HTTP {response.status_code}")

        log.debug(f"Sent {type} to {to} (id={message['id']})")
        return message["id"]

    async def receive(self, raw: str) -> DecodedMessage:
        """Unpack a raw inbound message.

        Raises:
            TransportError: Message could not be unpacked or has no type.
        """
        message = await self._packer.unpack(raw)
        msg_type = message.get("type")
        if not msg_type:
            raise TransportError("Message has no type")

        body = message.get("body") or {}
        if not isinstance(body, dict):
            raise TransportError("Message body must be a JSON object")

        return DecodedMessage(
            type=msg_type,
            data=body,
            from_did=message.get("from"),
            id=message.get("id"),
            thid=message.get("thid"),
        )
