"""Holder service wiring.

One ``HolderService`` owns the collaborators of one holder identity:
the OID4VCI client, the DIDComm transport, the signer, and the
confirmation table shared between the orchestrator and the dispatcher.
Several services can live in one process without sharing registrations.
"""

import logging
from typing import Optional

from holder.chat import ConsoleChat, prompt_offer
from holder.config import (
    CHAT_ENABLED,
    CONFIRMATION_TIMEOUT,
    HOLDER_CREDENTIAL_FORMAT,
    HOLDER_CREDENTIAL_TYPES,
    HOLDER_DID,
    HOLDER_KEY_REF,
    HOLDER_KEY_SEED,
    HOLDER_KID,
    HOLDER_PROOF_ALG,
    POLL_INTERVAL,
    get_didcomm_endpoints,
)
from holder.didcomm.confirmation import ConfirmationManager
from holder.didcomm.dispatcher import DispatchOutcome, MessageDispatcher
from holder.didcomm.messages import decode_inbound
from holder.didcomm.transport import (
    DIDCommTransport,
    MessagingTransport,
    PlaintextPacker,
    StaticEndpointResolver,
)
from holder.issuance.client import OID4VCIClient
from holder.issuance.models import CredentialResult, Failed
from holder.issuance.orchestrator import IssuanceOrchestrator, OfferSource
from holder.issuance.proof import ProofBuilder, Signer

log = logging.getLogger(__name__)


class HolderService:
    """Entry points for one holder: ``issue_credential`` and ``on_inbound_message``.

    Args:
        client: OID4VCI protocol client
        transport: DIDComm transport
        signer: Signer holding ``key_ref``
        holder_did: Holder DID
        key_ref: Signer key reference
        kid: Verification method id used in proofs
        offer_source: Supplies an offer when none is given
        chat_enabled: Start the console chat after a successful issuance
    """

    def __init__(
        self,
        client: OID4VCIClient,
        transport: MessagingTransport,
        signer: Signer,
        holder_did: str = HOLDER_DID,
        key_ref: str = HOLDER_KEY_REF,
        kid: str = HOLDER_KID,
        proof_alg: str = HOLDER_PROOF_ALG,
        offer_source: Optional[OfferSource] = None,
        chat_enabled: bool = CHAT_ENABLED,
        credential_types: Optional[list[str]] = None,
        credential_format: str = HOLDER_CREDENTIAL_FORMAT,
        confirmation_timeout: float = CONFIRMATION_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
    ):
        self.client = client
        self.transport = transport
        self.signer = signer
        self.holder_did = holder_did
        self.confirmations = ConfirmationManager(default_timeout=confirmation_timeout)
        self.dispatcher = MessageDispatcher(self.confirmations, on_reoffer=self._handle_reoffer)
        self.orchestrator = IssuanceOrchestrator(
            client=client,
            proof_builder=ProofBuilder(signer, key_ref, kid, alg=proof_alg),
            transport=transport,
            confirmations=self.confirmations,
            holder_did=holder_did,
            offer_source=offer_source,
            chat=ConsoleChat(transport, holder_did) if chat_enabled else None,
            credential_types=credential_types or list(HOLDER_CREDENTIAL_TYPES),
            credential_format=credential_format,
            confirmation_timeout=confirmation_timeout,
            poll_interval=poll_interval,
        )

    @classmethod
    def from_config(cls, chat_enabled: bool = CHAT_ENABLED) -> "HolderService":
        """Build a service from environment configuration."""
        from holder.signing import Ed25519Signer

        signer = Ed25519Signer()
        seed = bytes.fromhex(HOLDER_KEY_SEED) if HOLDER_KEY_SEED else None
        verkey = signer.add_key(HOLDER_KEY_REF, seed)
        if seed is None:
            log.warning(f"HOLDER_KEY_SEED not set, generated ephemeral key {verkey.hex()[:16]}...")

        transport = DIDCommTransport(PlaintextPacker(), StaticEndpointResolver(get_didcomm_endpoints()))
        return cls(
            client=OID4VCIClient(),
            transport=transport,
            signer=signer,
            offer_source=prompt_offer,
            chat_enabled=chat_enabled,
        )

    async def issue_credential(self, offer_ref: Optional[str] = None) -> CredentialResult:
        """Run one issuance flow."""
        return await self.orchestrator.run(offer_ref)

    async def on_inbound_message(self, raw: str) -> DispatchOutcome:
        """Unpack and dispatch one raw inbound DIDComm message.

        Raises:
            TransportError: Message could not be unpacked.
        """
        decoded = await self.transport.receive(raw)
        log.debug(
            f"Received {decoded.type} from {decoded.from_did}",
            extra={"message_type": decoded.type},
        )
        return self.dispatcher.dispatch(decode_inbound(decoded))

    async def aclose(self) -> None:
        await self.dispatcher.drain()
        await self.client.aclose()
        close = getattr(self.transport, "aclose", None)
        if close is not None:
            await close()

    async def _handle_reoffer(self, offer: str) -> CredentialResult:
        result = await self.issue_credential(offer)
        if isinstance(result, Failed):
            log.error(f"Re-offered credential failed: {result.reason}")
        return result
