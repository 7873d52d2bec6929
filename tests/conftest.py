"""Pytest fixtures for holder tests.

``FakeIssuer`` is an in-memory OID4VCI issuer served through
``httpx.MockTransport``; ``RecordingTransport`` stands in for DIDComm
delivery and lets a test script the issuer's reply to present_token.
"""

import hashlib
import json
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx
import pytest

from holder.core.exceptions import SigningError, TransportError
from holder.didcomm.confirmation import ConfirmationManager
from holder.didcomm.messages import DecodedMessage
from holder.issuance.client import OID4VCIClient
from holder.issuance.codec import CredentialCodec
from holder.issuance.models import PRE_AUTHORIZED_GRANT
from holder.issuance.orchestrator import IssuanceOrchestrator
from holder.issuance.proof import ProofBuilder
from holder.service import HolderService

ISSUER_URL = "http://issuer.test"
ISSUER_DID = "did:web:issuer.test"
HOLDER_DID = "did:web:holder.test"
HOLDER_KID = f"{HOLDER_DID}#key-1"

CREDENTIAL_CLAIMS = {
    "iss": ISSUER_DID,
    "sub": HOLDER_DID,
    "vc": {
        "@context": ["https://www.w3.org/2018/credentials/v1"],
        "type": ["VerifiableCredential", "UniversityDegreeCredential"],
        "credentialSubject": {
            "id": HOLDER_DID,
            "degree": {"type": "BachelorDegree", "name": "Bachelor of Science"},
        },
    },
}


def make_offer_uri(issuer: str = ISSUER_URL, code: str = "preauth-code-1") -> str:
    """Build an openid-credential-offer:// URI with an inline offer."""
    offer = {
        "credential_issuer": issuer,
        "credentials": ["UniversityDegree_JWT"],
        "grants": {PRE_AUTHORIZED_GRANT: {"pre-authorized_code": code, "user_pin_required": False}},
    }
    return "openid-credential-offer://?credential_offer=" + quote(json.dumps(offer))


def make_credential(claims: Optional[dict] = None) -> str:
    return CredentialCodec().encode(claims or CREDENTIAL_CLAIMS, signature=b"issuer-signature")


# =============================================================================
# Fake Issuer
# =============================================================================


class FakeIssuer:
    """Scriptable OID4VCI issuer.

    Attributes:
        didcomm_required: Value of ``didcommRequired`` in metadata
        token_value: Access token returned by the token endpoint
        token_error: If set, token endpoint answers 400 with this error
        token_response: If set, (status, body) returned by the token endpoint as is
        credential_response: (status, body) for the credential endpoint
        deferred_responses: Queue of (status, body) for the deferred endpoint
        requests: Every request received, in order
    """

    def __init__(self):
        self.didcomm_required = "Optional"
        self.advertise_did = True
        self.token_value = "abc1234-access-token"
        self.token_error: Optional[str] = None
        self.token_response: Optional[tuple[int, Any]] = None
        self.credential_response: tuple[int, Any] = (200, {"credential": make_credential()})
        self.deferred_responses: list[tuple[int, Any]] = []
        self.requests: list[httpx.Request] = []

    def metadata(self) -> dict[str, Any]:
        data = {
            "credential_issuer": ISSUER_URL,
            "credential_endpoint": f"{ISSUER_URL}/credentials",
            "token_endpoint": f"{ISSUER_URL}/token",
            "deferred_credential_endpoint": f"{ISSUER_URL}/deferred",
            "credentials_supported": [
                {
                    "id": "UniversityDegree_JWT",
                    "format": "jwt_vc_json",
                    "types": ["VerifiableCredential", "UniversityDegreeCredential"],
                    "didcommRequired": self.didcomm_required,
                }
            ],
        }
        if self.advertise_did:
            data["did"] = ISSUER_DID
        return data

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def count(self, path: str) -> int:
        return self.paths().count(path)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/.well-known/openid-credential-issuer":
            return httpx.Response(200, json=self.metadata())

        if path == "/token":
            if self.token_response is not None:
                status, body = self.token_response
                return httpx.Response(status, json=body)
            if self.token_error:
                return httpx.Response(400, json={"error": self.token_error})
            return httpx.Response(
                200,
                json={
                    "access_token": self.token_value,
                    "token_type": "bearer",
                    "expires_in": 300,
                    "c_nonce": "nonce-123",
                    "c_nonce_expires_in": 300,
                    "scope": "UniversityDegreeCredential",
                },
            )

        if path == "/credentials":
            status, body = self.credential_response
            return httpx.Response(status, json=body)

        if path == "/deferred":
            if not self.deferred_responses:
                return httpx.Response(400, json={"error": "invalid_transaction_id"})
            status, body = self.deferred_responses.pop(0)
            return httpx.Response(status, json=body)

        return httpx.Response(404, json={"detail": "Not Found"})

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


# =============================================================================
# Fake Collaborators
# =============================================================================


class HashSigner:
    """Deterministic signer: sha256 over key_ref and data."""

    def __init__(self, key_ref: str = "holder-key"):
        self.key_ref = key_ref

    def sign(self, key_ref: str, data: bytes, alg: str) -> bytes:
        if key_ref != self.key_ref:
            raise SigningError(f"Key not found: {key_ref}")
        if alg != "EdDSA":
            raise SigningError(f"Algorithm mismatch: {alg}")
        return hashlib.sha256(key_ref.encode() + data).digest()


class RecordingTransport:
    """MessagingTransport that records sends.

    ``on_send`` is called with each outbound message dict and may
    simulate the issuer's reply.
    """

    def __init__(self, on_send: Optional[Callable[[dict], None]] = None, fail: bool = False):
        self.sent: list[dict] = []
        self.on_send = on_send
        self.fail = fail

    async def send(self, to, from_, type, body, thid=None) -> str:
        if self.fail:
            raise TransportError(f"No DIDComm endpoint known for {to}")
        message = {"id": f"msg-{len(self.sent)}", "to": to, "from": from_, "type": type, "body": body}
        if thid is not None:
            message["thid"] = thid
        self.sent.append(message)
        if self.on_send is not None:
            self.on_send(message)
        return message["id"]

    async def receive(self, raw: str) -> DecodedMessage:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError as e:
            raise TransportError(f"Message is not valid JSON: {e}") from e
        if not isinstance(message, dict) or not message.get("type"):
            raise TransportError("Message has no type")
        return DecodedMessage(
            type=message["type"],
            data=message.get("body") or {},
            from_did=message.get("from"),
            id=message.get("id"),
        )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_issuer() -> FakeIssuer:
    return FakeIssuer()


@pytest.fixture
def offer_uri() -> str:
    return make_offer_uri()


@pytest.fixture
def oid_client(fake_issuer) -> OID4VCIClient:
    return OID4VCIClient(http_client=fake_issuer.http_client())


@pytest.fixture
def confirmations() -> ConfirmationManager:
    return ConfirmationManager(default_timeout=0.2)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def proof_builder() -> ProofBuilder:
    return ProofBuilder(HashSigner(), "holder-key", HOLDER_KID, clock=lambda: 1_700_000_000)


@pytest.fixture
def make_orchestrator(oid_client, proof_builder, transport, confirmations):
    """Factory for an orchestrator wired to the fake issuer."""

    def _make(**overrides) -> IssuanceOrchestrator:
        kwargs = dict(
            client=oid_client,
            proof_builder=proof_builder,
            transport=transport,
            confirmations=confirmations,
            holder_did=HOLDER_DID,
            confirmation_timeout=0.2,
            poll_interval=0.01,
        )
        kwargs.update(overrides)
        return IssuanceOrchestrator(**kwargs)

    return _make


@pytest.fixture
def service(oid_client, transport) -> HolderService:
    """Holder service wired to the fake issuer and a recording transport."""
    return HolderService(
        client=oid_client,
        transport=transport,
        signer=HashSigner(),
        holder_did=HOLDER_DID,
        key_ref="holder-key",
        kid=HOLDER_KID,
        proof_alg="EdDSA",
        chat_enabled=False,
        confirmation_timeout=0.5,
        poll_interval=0.01,
    )
