"""Holder exception hierarchy.

Every expected failure of an issuance flow has a class here. The
orchestrator converts these into a terminal ``Failed`` result; only
``CredentialCodecError`` is allowed to escape ``issue_credential``.
"""

from enum import Enum
from typing import Optional


class HolderError(Exception):
    """Base exception for all holder errors."""
    pass


# =============================================================================
# OID4VCI Exceptions
# =============================================================================

class MetadataError(HolderError):
    """Credential offer or issuer metadata could not be resolved."""
    pass


class TokenError(HolderError):
    """Token endpoint rejected the pre-authorized code.

    Attributes:
        error_code: OAuth ``error`` value from the issuer, if any.
    """

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.error_code = error_code


class CredentialRequestError(HolderError):
    """Credential endpoint returned an error response."""

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.error_code = error_code


class PollErrorKind(str, Enum):
    """Classification of a deferred-credential error response."""

    PENDING = "pending"
    UNREACHABLE = "unreachable"
    INVALID_TRANSACTION = "invalid_transaction"
    UNCLASSIFIED = "unclassified"


class PollClassifiedError(HolderError):
    """Deferred endpoint error, classified.

    ``PENDING`` is the only retryable kind and never leaves the poller.
    """

    def __init__(self, kind: PollErrorKind, error_code: Optional[str] = None):
        super().__init__(f"Deferred issuance error: {error_code or kind.value}")
        self.kind = kind
        self.error_code = error_code

    @property
    def retryable(self) -> bool:
        return self.kind == PollErrorKind.PENDING


# =============================================================================
# Signing Exceptions
# =============================================================================

class SigningError(HolderError):
    """Signer could not produce a signature.

    Raised for unknown key references and algorithm mismatches.
    """
    pass


# =============================================================================
# DIDComm Exceptions
# =============================================================================

class ConfirmationError(HolderError):
    """Base exception for token confirmation failures."""
    pass


class ConfirmationTimeout(ConfirmationError):
    """No acknowledgment arrived before the deadline, or the request could not be sent."""
    pass


class ConfirmationRejected(ConfirmationError):
    """Issuer rejected the presented token."""

    def __init__(self, reason: str):
        super().__init__(f"Token rejected: {reason}")
        self.reason = reason


class TransportError(HolderError):
    """DIDComm message could not be packed, resolved or delivered."""
    pass


# =============================================================================
# Codec Exceptions
# =============================================================================

class CredentialCodecError(HolderError):
    """Issuer returned a credential that is not a decodable JWT."""
    pass
