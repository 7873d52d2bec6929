"""DIDComm message types.

Inbound messages are decoded once, at the transport boundary, into one
of a closed set of dataclass variants. Anything else becomes
``UnrecognizedMessage``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class MessageType(str, Enum):
    """DIDComm message type URIs used by the holder."""

    PRESENT_TOKEN = "https://didcomm.org/oidassociate/1.0/present_token"
    ACKNOWLEDGE_TOKEN = "https://didcomm.org/oidassociate/1.0/acknowledge_token"
    REJECT_TOKEN = "https://didcomm.org/oidassociate/1.0/reject_token"
    BASIC_MESSAGE = "https://didcomm.org/basicmessage/2.0/message"
    RE_OFFER = "opendid4vci-re-offer"
    REVOCATION = "opendid4vci-revocation"


@dataclass(frozen=True)
class DecodedMessage:
    """Unpacked DIDComm message as produced by the transport.

    Attributes:
        type: Declared message type URI
        from_did: Sender DID, if the packing authenticates it
        data: Message body
        id: Message id
        thid: Thread id, if any
    """

    type: str
    data: dict[str, Any] = field(default_factory=dict)
    from_did: Optional[str] = None
    id: Optional[str] = None
    thid: Optional[str] = None


# =============================================================================
# Inbound Variants
# =============================================================================


@dataclass(frozen=True)
class TokenAcknowledged:
    token: str
    sender: Optional[str] = None


@dataclass(frozen=True)
class TokenRejected:
    token: str
    reason: str
    sender: Optional[str] = None


@dataclass(frozen=True)
class CredentialReOffered:
    offer: str
    sender: Optional[str] = None


@dataclass(frozen=True)
class CredentialRevoked:
    data: dict[str, Any]
    sender: Optional[str] = None


@dataclass(frozen=True)
class ChatMessage:
    content: str
    sender: Optional[str] = None


@dataclass(frozen=True)
class UnrecognizedMessage:
    type: str
    sender: Optional[str] = None


InboundMessage = Union[
    TokenAcknowledged,
    TokenRejected,
    CredentialReOffered,
    CredentialRevoked,
    ChatMessage,
    UnrecognizedMessage,
]


def _text(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    return value if isinstance(value, str) and value else None


def decode_inbound(message: DecodedMessage) -> InboundMessage:
    """Map a decoded DIDComm message to its inbound variant.

    Messages of a known type whose required body field is missing or not
    a string are treated as unrecognized.
    """
    data = message.data or {}
    sender = message.from_did
    msg_type = message.type

    token = _text(data, "oidtoken")

    if msg_type == MessageType.ACKNOWLEDGE_TOKEN.value and token:
        return TokenAcknowledged(token=token, sender=sender)

    if msg_type == MessageType.REJECT_TOKEN.value and token:
        return TokenRejected(
            token=token,
            reason=str(data.get("reason") or "unspecified"),
            sender=sender,
        )

    if msg_type == MessageType.RE_OFFER.value and _text(data, "offer"):
        return CredentialReOffered(offer=data["offer"], sender=sender)

    if msg_type == MessageType.REVOCATION.value:
        return CredentialRevoked(data=dict(data), sender=sender)

    if msg_type == MessageType.BASIC_MESSAGE.value and "content" in data:
        return ChatMessage(content=str(data["content"]), sender=sender)

    return UnrecognizedMessage(type=msg_type, sender=sender)
