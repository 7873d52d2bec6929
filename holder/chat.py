"""Console collaborators: offer prompt and DIDComm chat.

Both read stdin in a worker thread so the event loop keeps serving the
inbound DIDComm endpoint while waiting for input.
"""

import asyncio
import logging
from typing import Callable

import typer

from holder.core.exceptions import TransportError
from holder.didcomm.messages import MessageType
from holder.didcomm.transport import MessagingTransport

log = logging.getLogger(__name__)

CHAT_HELP = (
    "/help      shows this help dialog\n"
    "/q /quit   exit to menu\n"
)


async def prompt_offer() -> str:
    """Ask the user for a credential offer (stands in for a QR scan)."""
    try:
        return await asyncio.to_thread(typer.prompt, "Enter Offer")
    except typer.Abort:
        return ""


class ConsoleChat:
    """Line-based DIDComm chat with the issuer.

    Args:
        transport: Sends basic messages
        holder_did: Sender DID
        read_line: Blocking line reader (``typer.prompt`` by default)
        write: Output function
    """

    def __init__(
        self,
        transport: MessagingTransport,
        holder_did: str,
        read_line: Callable[[str], str] = typer.prompt,
        write: Callable[[str], None] = typer.echo,
    ):
        self._transport = transport
        self._holder_did = holder_did
        self._read_line = read_line
        self._write = write

    async def __call__(self, to: str) -> None:
        """Chat with ``to`` until the user quits."""
        self._write("+--------------+\n| DidComm Chat |\n+--------------+")

        while True:
            try:
                text = await asyncio.to_thread(self._read_line, "Enter a message")
            except (typer.Abort, EOFError):
                return

            if text.startswith("/"):
                if text in ("/q", "/quit"):
                    return
                if text == "/help":
                    self._write(CHAT_HELP)
                else:
                    self._write("Unknown command")
                continue

            try:
                await self._transport.send(
                    to, self._holder_did, MessageType.BASIC_MESSAGE.value, {"content": text}
                )
            except TransportError as e:
                log.error(f"Chat message not delivered: {e}")
