"""Tests for the DIDComm transport."""

import json

import httpx
import pytest

from holder.core.exceptions import TransportError
from holder.didcomm.messages import MessageType
from holder.didcomm.transport import (
    PLAINTEXT_MEDIA_TYPE,
    DIDCommTransport,
    PlaintextPacker,
    StaticEndpointResolver,
)

from tests.conftest import HOLDER_DID, ISSUER_DID

ENDPOINT = "http://issuer.test/didcomm"


def _transport(handler, endpoints=None):
    resolver = StaticEndpointResolver(endpoints if endpoints is not None else {ISSUER_DID: ENDPOINT})
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DIDCommTransport(PlaintextPacker(), resolver, http_client=client)


class TestSend:
    """Tests for DIDCommTransport.send."""

    @pytest.mark.asyncio
    async def test_posts_packed_message(self):
        """The message is posted to the resolved endpoint with the packer's media type."""
        received = []

        def handler(request):
            received.append(request)
            return httpx.Response(202)

        transport = _transport(handler)
        msg_id = await transport.send(
            ISSUER_DID, HOLDER_DID, MessageType.PRESENT_TOKEN.value, {"oidtoken": "abc1234"}
        )

        assert len(received) == 1
        request = received[0]
        assert str(request.url) == ENDPOINT
        assert request.headers["Content-Type"] == PLAINTEXT_MEDIA_TYPE
        message = json.loads(request.content)
        assert message == {
            "id": msg_id,
            "type": MessageType.PRESENT_TOKEN.value,
            "to": [ISSUER_DID],
            "from": HOLDER_DID,
            "body": {"oidtoken": "abc1234"},
        }

    @pytest.mark.asyncio
    async def test_thread_id(self):
        received = []

        def handler(request):
            received.append(json.loads(request.content))
            return httpx.Response(200)

        await _transport(handler).send(ISSUER_DID, HOLDER_DID, "t", {}, thid="thread-1")
        assert received[0]["thid"] == "thread-1"

    @pytest.mark.asyncio
    async def test_unique_ids(self):
        transport = _transport(lambda request: httpx.Response(202))
        first = await transport.send(ISSUER_DID, HOLDER_DID, "t", {})
        second = await transport.send(ISSUER_DID, HOLDER_DID, "t", {})
        assert first != second

    @pytest.mark.asyncio
    async def test_unknown_recipient(self):
        """No endpoint for the DID raises TransportError before any request."""
        calls = []
        transport = _transport(lambda request: calls.append(request), endpoints={})

        with pytest.raises(TransportError, match="No DIDComm endpoint known"):
            await transport.send(ISSUER_DID, HOLDER_DID, "t", {})
        assert calls == []

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        transport = _transport(lambda request: httpx.Response(500))

        with pytest.raises(TransportError, match="HTTP 500"):
            await transport.send(ISSUER_DID, HOLDER_DID, "t", {})

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError, match="Delivery to"):
            await _transport(handler).send(ISSUER_DID, HOLDER_DID, "t", {})


class TestReceive:
    """Tests for DIDCommTransport.receive."""

    @pytest.fixture
    def transport(self):
        return _transport(lambda request: httpx.Response(202))

    @pytest.mark.asyncio
    async def test_decodes_message(self, transport):
        raw = json.dumps(
            {
                "id": "m1",
                "thid": "t1",
                "type": MessageType.ACKNOWLEDGE_TOKEN.value,
                "from": ISSUER_DID,
                "body": {"oidtoken": "abc1234"},
            }
        )
        decoded = await transport.receive(raw)

        assert decoded.type == MessageType.ACKNOWLEDGE_TOKEN.value
        assert decoded.data == {"oidtoken": "abc1234"}
        assert decoded.from_did == ISSUER_DID
        assert decoded.id == "m1"
        assert decoded.thid == "t1"

    @pytest.mark.asyncio
    async def test_missing_body_is_empty(self, transport):
        decoded = await transport.receive(json.dumps({"type": "x"}))
        assert decoded.data == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw,match",
        [
            ("not json", "not valid JSON"),
            ("[1, 2]", "JSON object"),
            (json.dumps({"body": {}}), "no type"),
            (json.dumps({"type": "x", "body": "text"}), "body must be"),
        ],
    )
    async def test_malformed(self, transport, raw, match):
        with pytest.raises(TransportError, match=match):
            await transport.receive(raw)


class TestStaticEndpointResolver:
    """Tests for StaticEndpointResolver."""

    @pytest.mark.asyncio
    async def test_resolves_known_did(self):
        resolver = StaticEndpointResolver({ISSUER_DID: ENDPOINT})
        assert await resolver.resolve_endpoint(ISSUER_DID) == ENDPOINT
