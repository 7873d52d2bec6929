"""Credential issuance orchestrator.

Sequences one pre-authorized code issuance:

    metadata -> token -> proof -> [DIDComm token confirmation]
             -> credential request -> issued | deferred polling

Every expected failure ends the flow with a ``Failed`` result; nothing
but unexpected faults (such as an undecodable credential) is raised to
the caller.
"""

import functools
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from holder.config import (
    CONFIRMATION_TIMEOUT,
    HOLDER_CREDENTIAL_FORMAT,
    HOLDER_CREDENTIAL_TYPES,
    POLL_INTERVAL,
)
from holder.core.exceptions import (
    ConfirmationRejected,
    ConfirmationTimeout,
    CredentialRequestError,
    MetadataError,
    SigningError,
    TokenError,
    TransportError,
)
from holder.didcomm.confirmation import ConfirmationManager
from holder.didcomm.messages import MessageType
from holder.didcomm.transport import MessagingTransport
from holder.issuance.client import OID4VCIClient
from holder.issuance.codec import CredentialCodec
from holder.issuance.models import (
    AccessToken,
    CredentialResult,
    Deferred,
    Failed,
    FailureKind,
    IssuerMetadata,
    Issued,
)
from holder.issuance.polling import DeferredPoller
from holder.issuance.proof import ProofBuilder

log = logging.getLogger(__name__)

OfferSource = Callable[[], Awaitable[str]]
ChatStarter = Callable[[str], Awaitable[Any]]


class IssuanceOrchestrator:
    """Runs issuance flows for one holder identity.

    Args:
        client: OID4VCI protocol client
        proof_builder: Builds the proof-of-possession
        transport: DIDComm transport for token presentation
        confirmations: Confirmation table shared with the message dispatcher
        holder_did: Holder DID, sender of DIDComm messages
        codec: Credential decoder
        offer_source: Supplies an offer when ``run`` is called without one
        chat: Started with the issuer DID after a successful issuance
        credential_types: Types requested in the credential request
        credential_format: Format requested in the credential request
        confirmation_timeout: Seconds to wait for token acknowledgment
        poll_interval: Seconds between deferred polls
        user_pin: PIN for offers that require one
    """

    def __init__(
        self,
        client: OID4VCIClient,
        proof_builder: ProofBuilder,
        transport: MessagingTransport,
        confirmations: ConfirmationManager,
        holder_did: str,
        codec: Optional[CredentialCodec] = None,
        offer_source: Optional[OfferSource] = None,
        chat: Optional[ChatStarter] = None,
        credential_types: Optional[list[str]] = None,
        credential_format: str = HOLDER_CREDENTIAL_FORMAT,
        confirmation_timeout: float = CONFIRMATION_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
        user_pin: Optional[str] = None,
    ):
        self._client = client
        self._proof_builder = proof_builder
        self._transport = transport
        self._confirmations = confirmations
        self._holder_did = holder_did
        self._codec = codec or CredentialCodec()
        self._offer_source = offer_source
        self._chat = chat
        self._credential_types = credential_types or list(HOLDER_CREDENTIAL_TYPES)
        self._credential_format = credential_format
        self._confirmation_timeout = confirmation_timeout
        self._poll_interval = poll_interval
        self._user_pin = user_pin

    async def run(self, offer_ref: Optional[str] = None) -> CredentialResult:
        """Run one issuance flow to a terminal result."""
        try:
            result, metadata = await self._run(offer_ref)
        except MetadataError as e:
            log.error(f"Metadata error: {e}")
            return Failed(FailureKind.METADATA_ERROR, detail=str(e))
        except TokenError as e:
            log.error(f"Token error: {e.error_code}")
            return Failed(FailureKind.ISSUER_ERROR, detail=str(e), error_code=e.error_code)
        except SigningError as e:
            log.error(f"Signing error: {e}")
            return Failed(FailureKind.SIGNING_ERROR, detail=str(e))
        except ConfirmationTimeout as e:
            log.error(f"DIDComm confirmation failed, aborting OID4VCI flow: {e}")
            return Failed(FailureKind.CONFIRMATION_TIMEOUT)
        except ConfirmationRejected as e:
            return Failed(FailureKind.CONFIRMATION_REJECTED, detail=e.reason)
        except CredentialRequestError as e:
            log.error(f"Credential error: {e}")
            return Failed(
                FailureKind.CREDENTIAL_REQUEST_ERROR, detail=str(e), error_code=e.error_code
            )

        if isinstance(result, Issued):
            log.info(f"Credential issued by {metadata.credential_issuer}")
            await self._start_chat(metadata)
        return result

    async def _run(
        self, offer_ref: Optional[str]
    ) -> tuple[CredentialResult, IssuerMetadata]:
        if not offer_ref:
            offer_ref = await self._acquire_offer()

        offer, metadata = await self._client.fetch_metadata(offer_ref)

        token = await self._client.acquire_token(offer, metadata, user_pin=self._user_pin)
        log.info(f"Token: '{token.short}'. Scope: [{token.scope}]", extra={"token": token.short})

        proof = self._proof_builder.build(audience=metadata.credential_issuer, nonce=token.c_nonce)

        if metadata.confirmation_required:
            await self._confirm_token(metadata, token)

        log.info(
            f"Requesting credential. Access token: '{token.short}'",
            extra={"token": token.short},
        )
        request = self._client.build_credential_request(
            proof, self._credential_types, self._credential_format
        )
        response = await self._client.submit_credential_request(metadata, token, request)

        return await self._complete(metadata, response), metadata

    async def _acquire_offer(self) -> str:
        if self._offer_source is None:
            raise MetadataError("No credential offer supplied")
        offer_ref = await self._offer_source()
        if not offer_ref:
            raise MetadataError("No credential offer supplied")
        return offer_ref

    async def _confirm_token(self, metadata: IssuerMetadata, token: AccessToken) -> None:
        """Present the token over DIDComm and wait for the issuer's acknowledgment.

        The token is registered before sending so an acknowledgment that
        races the send is not lost. The entry is released on every exit.
        """
        if not metadata.did:
            raise ConfirmationTimeout("Issuer requires DIDComm but advertises no DID")

        async with self._confirmations.register(
            token.value, timeout=self._confirmation_timeout
        ) as handle:
            try:
                await self._transport.send(
                    metadata.did,
                    self._holder_did,
                    MessageType.PRESENT_TOKEN.value,
                    {"oidtoken": token.value},
                )
            except TransportError as e:
                raise ConfirmationTimeout(f"DIDComm connection failed: {e}") from e

            log.info(
                f"Presented token '{token.short}' to {metadata.did}",
                extra={"token": token.short},
            )
            await handle.wait()
            log.info(f"Token '{token.short}' confirmed", extra={"token": token.short})

    async def _complete(
        self, metadata: IssuerMetadata, response: Union[str, Deferred]
    ) -> CredentialResult:
        if isinstance(response, Deferred):
            poller = DeferredPoller(
                functools.partial(self._client.poll_deferred, metadata),
                codec=self._codec,
                interval=self._poll_interval,
            )
            return await poller.poll(poller.session(response.transaction_id, response.c_nonce))

        return Issued(credential=self._codec.decode(response), raw=response)

    async def _start_chat(self, metadata: IssuerMetadata) -> None:
        if self._chat is None or not metadata.did:
            return
        try:
            await self._chat(metadata.did)
        except Exception as e:
            log.warning(f"DIDComm chat ended with error: {e}")
