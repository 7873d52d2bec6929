# DIDComm side channel - messages, confirmations, dispatch and transport

from holder.didcomm.confirmation import ConfirmationHandle, ConfirmationManager
from holder.didcomm.dispatcher import DispatchOutcome, MessageDispatcher
from holder.didcomm.messages import DecodedMessage, MessageType, decode_inbound
from holder.didcomm.transport import (
    DIDCommTransport,
    MessagingTransport,
    PlaintextPacker,
    StaticEndpointResolver,
)

__all__ = [
    "ConfirmationHandle",
    "ConfirmationManager",
    "DispatchOutcome",
    "MessageDispatcher",
    "DecodedMessage",
    "MessageType",
    "decode_inbound",
    "DIDCommTransport",
    "MessagingTransport",
    "PlaintextPacker",
    "StaticEndpointResolver",
]
