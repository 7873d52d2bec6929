"""Inbound DIDComm message routing.

Routes decoded inbound variants to the confirmation manager, the
re-offer handler or the chat sink. Dispatch is pure routing; unpacking
happens in the transport before a message gets here.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import typer

from holder.didcomm.confirmation import ConfirmationManager
from holder.didcomm.messages import (
    ChatMessage,
    CredentialReOffered,
    CredentialRevoked,
    InboundMessage,
    TokenAcknowledged,
    TokenRejected,
    UnrecognizedMessage,
)

log = logging.getLogger(__name__)

ReOfferHandler = Callable[[str], Awaitable[Any]]
ChatSink = Callable[[ChatMessage], None]


class DispatchOutcome(str, Enum):
    ACKNOWLEDGED = "acknowledged"
    REJECTED = "rejected"
    RE_OFFERED = "re_offered"
    REVOKED = "revoked"
    CHAT = "chat"
    IGNORED = "ignored"


def _print_chat(message: ChatMessage) -> None:
    typer.echo(f">[DIDComm] {message.content}")


class MessageDispatcher:
    """Routes inbound messages for one holder.

    Args:
        confirmations: Shared table of outstanding confirmations
        on_reoffer: Starts a fresh issuance for a re-offered credential
        chat_sink: Receives basic messages (printed by default)
    """

    def __init__(
        self,
        confirmations: ConfirmationManager,
        on_reoffer: Optional[ReOfferHandler] = None,
        chat_sink: Optional[ChatSink] = None,
    ):
        self._confirmations = confirmations
        self._on_reoffer = on_reoffer
        self._chat_sink = chat_sink or _print_chat
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, message: InboundMessage) -> DispatchOutcome:
        """Route one inbound message. Never raises for unknown or late messages."""
        if isinstance(message, TokenAcknowledged):
            if self._confirmations.resolve(message.token):
                log.info(f"Token '{message.token[:7]}' acknowledged")
            else:
                log.info(f"Late or unknown acknowledgment for token '{message.token[:7]}'")
            return DispatchOutcome.ACKNOWLEDGED

        if isinstance(message, TokenRejected):
            log.error(f"Token '{message.token[:7]}' rejected. Reason: '{message.reason}'")
            self._confirmations.reject(message.token, message.reason)
            return DispatchOutcome.REJECTED

        if isinstance(message, CredentialReOffered):
            log.info(f"Credential offer received from {message.sender or 'unknown sender'}")
            if self._on_reoffer is None:
                log.warning("No re-offer handler configured, ignoring offer")
                return DispatchOutcome.IGNORED
            task = asyncio.create_task(self._on_reoffer(message.offer), name="re-offer")
            self._tasks.add(task)
            task.add_done_callback(self._task_done)
            return DispatchOutcome.RE_OFFERED

        if isinstance(message, CredentialRevoked):
            log.warning(f"Credential revoked by {message.sender or 'unknown sender'}")
            return DispatchOutcome.REVOKED

        if isinstance(message, ChatMessage):
            self._chat_sink(message)
            return DispatchOutcome.CHAT

        if isinstance(message, UnrecognizedMessage):
            log.warning(
                f"Unknown message type: '{message.type}'",
                extra={"message_type": message.type},
            )
        return DispatchOutcome.IGNORED

    @property
    def active_tasks(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for re-offer runs started by dispatch to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error(f"Re-offer issuance failed: {exc}", exc_info=exc)
