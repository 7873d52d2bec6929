"""OID4VCI protocol client.

httpx-based async client for the pre-authorized code flow: offer
resolution, issuer metadata, token exchange, credential request and
deferred credential polling.
"""

import json
import logging
from typing import Any, Optional, Union
from urllib.parse import parse_qs, urlparse

import httpx

from holder.config import HTTP_TIMEOUT
from holder.core.exceptions import CredentialRequestError, MetadataError, TokenError
from holder.issuance.models import (
    DIDCOMM_REQUIRED,
    PRE_AUTHORIZED_GRANT,
    AccessToken,
    CredentialOffer,
    Deferred,
    DeferredPollResponse,
    IssuerMetadata,
    ProofOfPossession,
)

log = logging.getLogger(__name__)

ISSUER_WELL_KNOWN = "/.well-known/openid-credential-issuer"
AUTH_SERVER_WELL_KNOWN = "/.well-known/oauth-authorization-server"


def _error_code(response: httpx.Response) -> str:
    """Extract the OAuth ``error`` field, falling back to the HTTP status.

    Only string codes are used; structured bodies such as a validation
    ``detail`` list fall back to ``http_<status>``.
    """
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("error", "detail"):
            if isinstance(data.get(key), str) and data[key]:
                return data[key]
    return f"http_{response.status_code}"


def _first_supported(credentials_supported: Any) -> dict:
    """First credential configuration (list in draft 11, object in later drafts)."""
    if isinstance(credentials_supported, list) and credentials_supported:
        first = credentials_supported[0]
    elif isinstance(credentials_supported, dict) and credentials_supported:
        first = next(iter(credentials_supported.values()))
    else:
        return {}
    return first if isinstance(first, dict) else {}


def _string(value: Any, default: str) -> str:
    return value if isinstance(value, str) and value else default


def _supported_list(credentials_supported: Any) -> list:
    if isinstance(credentials_supported, list):
        return credentials_supported
    if isinstance(credentials_supported, dict):
        return list(credentials_supported.values())
    return []


def parse_offer_json(data: dict, raw_uri: str = "") -> CredentialOffer:
    """Build a CredentialOffer from the offer JSON object.

    Raises:
        MetadataError: Issuer or pre-authorized grant missing.
    """
    if not isinstance(data, dict):
        raise MetadataError("Credential offer must be a JSON object")

    issuer = data.get("credential_issuer")
    if not issuer or not isinstance(issuer, str):
        raise MetadataError("Credential offer has no credential_issuer")

    grants = data.get("grants")
    grant = grants.get(PRE_AUTHORIZED_GRANT) if isinstance(grants, dict) else None
    if not isinstance(grant, dict) or not grant.get("pre-authorized_code"):
        raise MetadataError("Credential offer has no pre-authorized_code grant")

    return CredentialOffer(
        credential_issuer=issuer.rstrip("/"),
        pre_authorized_code=grant["pre-authorized_code"],
        credentials=list(data.get("credentials") or data.get("credential_configuration_ids") or []),
        user_pin_required=bool(grant.get("user_pin_required", False)),
        raw_uri=raw_uri,
    )


class OID4VCIClient:
    """Async HTTP client for an OID4VCI issuer.

    Usage:
        async with OID4VCIClient() as client:
            offer, metadata = await client.fetch_metadata(offer_uri)
    """

    def __init__(
        self,
        timeout: float = HTTP_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize client.

        Args:
            timeout: Request timeout in seconds
            http_client: Pre-built client (tests inject one with a MockTransport)
        """
        self._timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> "OID4VCIClient":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    # -------------------------------------------------------------------------
    # Offer / Metadata
    # -------------------------------------------------------------------------

    async def resolve_offer(self, offer_ref: str) -> CredentialOffer:
        """Parse an offer reference into a CredentialOffer.

        Accepts ``openid-credential-offer://?credential_offer=...``, any URI
        carrying ``credential_offer`` or ``credential_offer_uri``, or the bare
        offer JSON.
        """
        offer_ref = offer_ref.strip()
        if offer_ref.startswith("{"):
            try:
                return parse_offer_json(json.loads(offer_ref), raw_uri=offer_ref)
            except json.JSONDecodeError as e:
                raise MetadataError(f"Offer is not valid JSON: {e}") from e

        query = parse_qs(urlparse(offer_ref).query)

        if "credential_offer" in query:
            try:
                data = json.loads(query["credential_offer"][0])
            except json.JSONDecodeError as e:
                raise MetadataError(f"credential_offer is not valid JSON: {e}") from e
            return parse_offer_json(data, raw_uri=offer_ref)

        if "credential_offer_uri" in query:
            data = await self._get_json(query["credential_offer_uri"][0], "credential offer")
            return parse_offer_json(data, raw_uri=offer_ref)

        raise MetadataError("Offer reference has no credential_offer or credential_offer_uri")

    async def fetch_metadata(self, offer_ref: str) -> tuple[CredentialOffer, IssuerMetadata]:
        """Resolve the offer and fetch the issuer's metadata.

        Raises:
            MetadataError: Offer or metadata unavailable or malformed.
        """
        offer = await self.resolve_offer(offer_ref)
        issuer = offer.credential_issuer

        data = await self._get_json(f"{issuer}{ISSUER_WELL_KNOWN}", "issuer metadata")

        credential_endpoint = data.get("credential_endpoint")
        if not credential_endpoint:
            raise MetadataError("Issuer metadata has no credential_endpoint")

        token_endpoint = data.get("token_endpoint") or await self._discover_token_endpoint(
            data.get("authorization_server") or issuer
        )

        supported = data.get("credentials_supported") or data.get(
            "credential_configurations_supported"
        ) or []
        didcomm_required = _first_supported(supported).get("didcommRequired")

        metadata = IssuerMetadata(
            credential_issuer=_string(data.get("credential_issuer"), issuer).rstrip("/"),
            credential_endpoint=credential_endpoint,
            token_endpoint=token_endpoint,
            deferred_credential_endpoint=data.get("deferred_credential_endpoint")
            or f"{issuer}/deferred",
            did=data.get("did"),
            confirmation_required=didcomm_required == DIDCOMM_REQUIRED,
            credentials_supported=_supported_list(supported),
        )
        log.info(
            f"Metadata for {metadata.credential_issuer}: "
            f"DIDComm {didcomm_required or 'not advertised'}"
        )
        return offer, metadata

    async def _discover_token_endpoint(self, auth_server: str) -> str:
        auth_server = auth_server.rstrip("/")
        try:
            data = await self._get_json(
                f"{auth_server}{AUTH_SERVER_WELL_KNOWN}", "authorization server metadata"
            )
            if data.get("token_endpoint"):
                return data["token_endpoint"]
        except MetadataError as e:
            log.debug(f"No authorization server metadata, using default token endpoint: {e}")
        return f"{auth_server}/token"

    async def _get_json(self, url: str, what: str) -> dict:
        try:
            response = await self.http.get(url)
        except httpx.TimeoutException as e:
            raise MetadataError(f"Timeout fetching {what}") from e
        except httpx.HTTPError as e:
            raise MetadataError(f"Failed to fetch {what}: {e}") from e

        if response.status_code != 200:
            raise MetadataError(f"Failed to fetch {what}: HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError as e:
            raise MetadataError(f"Invalid JSON in {what}") from e
        if not isinstance(data, dict):
            raise MetadataError(f"Invalid {what}: expected JSON object")
        return data

    # -------------------------------------------------------------------------
    # Token
    # -------------------------------------------------------------------------

    async def acquire_token(
        self,
        offer: CredentialOffer,
        metadata: IssuerMetadata,
        user_pin: Optional[str] = None,
    ) -> AccessToken:
        """Exchange the pre-authorized code for an access token.

        Raises:
            TokenError: Issuer returned an error, or the response is unusable.
        """
        form = {
            "grant_type": PRE_AUTHORIZED_GRANT,
            "pre-authorized_code": offer.pre_authorized_code,
        }
        if offer.user_pin_required:
            if not user_pin:
                raise TokenError("Offer requires a user PIN", "invalid_request")
            form["user_pin"] = user_pin

        try:
            response = await self.http.post(metadata.token_endpoint, data=form)
        except httpx.TimeoutException as e:
            raise TokenError("Token request timeout", "timeout") from e
        except httpx.HTTPError as e:
            raise TokenError(f"Token request failed: {e}", "transport_error") from e

        if response.status_code != 200:
            code = _error_code(response)
            log.warning(f"Token request failed: {response.status_code} {code}")
            raise TokenError(f"Token endpoint error: {code}", code)

        try:
            data = response.json()
        except ValueError as e:
            raise TokenError("Token response is not JSON", "invalid_response") from e

        if not isinstance(data, dict):
            raise TokenError("Token response must be a JSON object", "invalid_response")
        if not _string(data.get("access_token"), ""):
            raise TokenError("Token response has no access_token", "invalid_response")

        scope = data.get("scope", "")
        if isinstance(scope, list):
            scope = " ".join(scope)

        return AccessToken(
            value=data["access_token"],
            c_nonce=data.get("c_nonce", ""),
            scope=scope,
            token_type=data.get("token_type", "bearer"),
            expires_in=data.get("expires_in"),
            c_nonce_expires_in=data.get("c_nonce_expires_in"),
        )

    # -------------------------------------------------------------------------
    # Credential
    # -------------------------------------------------------------------------

    def build_credential_request(
        self,
        proof: ProofOfPossession,
        types: list[str],
        format: str,
    ) -> dict[str, Any]:
        """Build the credential request body.

        The proof is repeated under ``didcomm_proof`` so an issuer that
        confirmed the token over DIDComm can bind it to the same key.
        """
        return {
            "format": format,
            "types": list(types),
            "proof": proof.to_dict(),
            "didcomm_proof": proof.to_dict(),
        }

    async def submit_credential_request(
        self,
        metadata: IssuerMetadata,
        token: AccessToken,
        request: dict[str, Any],
    ) -> Union[str, Deferred]:
        """Submit a credential request.

        Returns:
            The raw compact credential for an immediate response, or
            ``Deferred`` when the issuer returns a transaction_id.

        Raises:
            CredentialRequestError: Issuer error or unusable response.
        """
        try:
            response = await self.http.post(
                metadata.credential_endpoint,
                json=request,
                headers={"Authorization": f"Bearer {token.value}"},
            )
        except httpx.TimeoutException as e:
            raise CredentialRequestError("Credential request timeout", "timeout") from e
        except httpx.HTTPError as e:
            raise CredentialRequestError(
                f"Credential request failed: {e}", "transport_error"
            ) from e

        if response.status_code not in (200, 202):
            code = _error_code(response)
            log.warning(f"Credential request failed: {response.status_code} {code}")
            raise CredentialRequestError(f"Credential endpoint error: {code}", code)

        try:
            data = response.json()
        except ValueError as e:
            raise CredentialRequestError(
                "Credential response is not JSON", "invalid_response"
            ) from e

        if not isinstance(data, dict):
            raise CredentialRequestError(
                "Credential response must be a JSON object", "invalid_response"
            )

        if data.get("transaction_id"):
            return Deferred(
                transaction_id=data["transaction_id"],
                c_nonce=data.get("c_nonce") or token.c_nonce,
            )

        credential = data.get("credential")
        if not credential:
            raise CredentialRequestError(
                "Credential response has neither credential nor transaction_id",
                "invalid_response",
            )
        return credential

    async def poll_deferred(
        self,
        metadata: IssuerMetadata,
        transaction_id: str,
        c_nonce: str,
    ) -> DeferredPollResponse:
        """Query the deferred credential endpoint once.

        Never raises for HTTP or transport errors; they are returned as an
        error code for the poller to classify.
        """
        try:
            response = await self.http.post(
                metadata.deferred_credential_endpoint,
                json={"transaction_id": transaction_id, "c_nonce": c_nonce},
            )
        except httpx.TimeoutException:
            log.error("Deferred poll timeout")
            return DeferredPollResponse(error="timeout")
        except httpx.HTTPError as e:
            log.error(f"Deferred poll error: {e}")
            return DeferredPollResponse(error="transport_error")

        if response.is_success:
            try:
                data = response.json()
            except ValueError:
                return DeferredPollResponse(error="invalid_response")
            if not isinstance(data, dict):
                return DeferredPollResponse(error="invalid_response")
            if data.get("credential"):
                return DeferredPollResponse(credential=data["credential"])
            error = data.get("error")
            return DeferredPollResponse(
                error=error if isinstance(error, str) and error else "invalid_response"
            )

        return DeferredPollResponse(error=_error_code(response))
