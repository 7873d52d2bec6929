"""OID4VCI data models.

Plain dataclasses for the values that flow through one issuance:
offer, metadata, token, proof, and the terminal ``CredentialResult``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

PRE_AUTHORIZED_GRANT = "urn:ietf:params:oauth:grant-type:pre-authorized_code"
DIDCOMM_REQUIRED = "Required"


# =============================================================================
# Offer / Metadata / Token
# =============================================================================


@dataclass(frozen=True)
class CredentialOffer:
    """Parsed credential offer (pre-authorized code flow only)."""

    credential_issuer: str
    pre_authorized_code: str
    credentials: list = field(default_factory=list)
    user_pin_required: bool = False
    raw_uri: str = ""


@dataclass(frozen=True)
class IssuerMetadata:
    """Issuer endpoints and capabilities.

    Attributes:
        credential_issuer: Issuer identifier, used as proof ``aud``
        credential_endpoint: URL for credential requests
        token_endpoint: URL for pre-authorized code exchange
        deferred_credential_endpoint: URL polled after a deferral
        did: Issuer DIDComm address, if advertised
        confirmation_required: Whether the token must be confirmed over DIDComm
    """

    credential_issuer: str
    credential_endpoint: str
    token_endpoint: str
    deferred_credential_endpoint: str
    did: Optional[str] = None
    confirmation_required: bool = False
    credentials_supported: list = field(default_factory=list)


@dataclass(frozen=True)
class AccessToken:
    """Access token response from the token endpoint."""

    value: str
    c_nonce: str
    scope: str = ""
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    c_nonce_expires_in: Optional[int] = None

    @property
    def short(self) -> str:
        """First 7 characters, for log output."""
        return self.value[:7]


@dataclass(frozen=True)
class ProofOfPossession:
    """JWT proof binding the c_nonce to the holder key."""

    jwt: str
    proof_type: str = "jwt"

    def to_dict(self) -> dict[str, str]:
        return {"proof_type": self.proof_type, "jwt": self.jwt}


@dataclass(frozen=True)
class DeferredPollResponse:
    """Single response from the deferred credential endpoint.

    Exactly one of ``credential`` or ``error`` is set.
    """

    credential: Optional[str] = None
    error: Optional[str] = None


# =============================================================================
# Credential Result
# =============================================================================


class FailureKind(str, Enum):
    """Terminal failure classification of an issuance flow."""

    METADATA_ERROR = "metadata_error"
    ISSUER_ERROR = "issuer_error"
    SIGNING_ERROR = "signing_error"
    CONFIRMATION_TIMEOUT = "confirmation_timeout"
    CONFIRMATION_REJECTED = "confirmation_rejected"
    CREDENTIAL_REQUEST_ERROR = "credential_request_error"
    SIDE_CHANNEL_UNREACHABLE = "side_channel_unreachable"
    UNKNOWN_TRANSACTION = "unknown_transaction"
    UNCLASSIFIED_ERROR = "unclassified_error"


@dataclass(frozen=True)
class Issued:
    """Credential was issued.

    Attributes:
        credential: Decoded JWT payload (the credential document)
        raw: Credential exactly as returned by the issuer
    """

    credential: dict[str, Any]
    raw: str


@dataclass(frozen=True)
class Deferred:
    """Issuer deferred issuance; poll with these values."""

    transaction_id: str
    c_nonce: str


@dataclass(frozen=True)
class Failed:
    """Flow terminated without a credential.

    Attributes:
        kind: Failure classification
        detail: Human-readable reason (e.g. rejection reason)
        error_code: Raw issuer error code, preserved for diagnostics
    """

    kind: FailureKind
    detail: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def reason(self) -> str:
        if self.detail:
            return f'{self.kind.value}:"{self.detail}"'
        return self.kind.value


CredentialResult = Union[Issued, Deferred, Failed]


@dataclass
class PollingSession:
    """Outstanding deferral. Lives only while the poller runs."""

    transaction_id: str
    c_nonce: str
    interval: float
    attempts: int = 0
