# Holder Core - Shared exceptions and logging

from holder.core.exceptions import (
    HolderError,
    MetadataError,
    TokenError,
    SigningError,
    ConfirmationError,
    ConfirmationTimeout,
    ConfirmationRejected,
    CredentialRequestError,
    PollClassifiedError,
    TransportError,
    CredentialCodecError,
)
from holder.core.logging import configure_logging, JsonFormatter

__all__ = [
    "HolderError",
    "MetadataError",
    "TokenError",
    "SigningError",
    "ConfirmationError",
    "ConfirmationTimeout",
    "ConfirmationRejected",
    "CredentialRequestError",
    "PollClassifiedError",
    "TransportError",
    "CredentialCodecError",
    "configure_logging",
    "JsonFormatter",
]
