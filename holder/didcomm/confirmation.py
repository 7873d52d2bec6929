"""Outstanding token confirmations.

The orchestrator registers an access token before presenting it over
DIDComm; the dispatcher resolves or rejects it when the issuer answers.
Each entry holds a single-fulfilment future, so the first of
acknowledgment, rejection or timeout wins and later signals are no-ops.

All mutations are synchronous, so per-key updates are atomic on the
event loop without a lock. Share one manager between the orchestrator
and the dispatcher of a holder; do not use it across event loops.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from holder.config import CONFIRMATION_TIMEOUT
from holder.core.exceptions import ConfirmationRejected, ConfirmationTimeout

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Resolution:
    acknowledged: bool
    reason: Optional[str] = None


_ACKNOWLEDGED = _Resolution(acknowledged=True)


@dataclass
class OutstandingConfirmation:
    """One pending confirmation.

    Attributes:
        key: Access token value
        future: Fulfilled once with the resolution
        deadline: Event loop time after which the wait times out
    """

    key: str
    future: "asyncio.Future[_Resolution]"
    deadline: float


class ConfirmationHandle:
    """Disposable handle returned by ``ConfirmationManager.register``.

    Use as an async context manager so the entry is released however the
    wait ends:

        async with manager.register(token.value) as handle:
            await send_present_token(...)
            await handle.wait()
    """

    def __init__(self, manager: "ConfirmationManager", entry: OutstandingConfirmation):
        self._manager = manager
        self._entry = entry

    @property
    def token(self) -> str:
        return self._entry.key

    @property
    def done(self) -> bool:
        return self._entry.future.done()

    async def wait(self) -> None:
        """Wait for acknowledgment until the entry's deadline.

        Raises:
            ConfirmationTimeout: Deadline passed without a resolution.
            ConfirmationRejected: Issuer rejected the token.
        """
        loop = asyncio.get_running_loop()
        remaining = max(0.0, self._entry.deadline - loop.time())
        try:
            resolution = await asyncio.wait_for(self._entry.future, timeout=remaining)
        except asyncio.TimeoutError:
            raise ConfirmationTimeout(
                f"No acknowledgment for token '{self.token[:7]}' before deadline"
            ) from None
        finally:
            if self._entry.future.done():
                self.release()

        if not resolution.acknowledged:
            raise ConfirmationRejected(resolution.reason or "unspecified")

    def release(self) -> None:
        """Remove the entry and cancel its future if still pending. Idempotent."""
        self._manager._release(self._entry)

    async def __aenter__(self) -> "ConfirmationHandle":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


class ConfirmationManager:
    """Table of outstanding confirmations keyed by access token."""

    def __init__(self, default_timeout: float = CONFIRMATION_TIMEOUT):
        self._default_timeout = default_timeout
        self._pending: dict[str, OutstandingConfirmation] = {}

    @property
    def default_timeout(self) -> float:
        return self._default_timeout

    def register(self, token: str, timeout: Optional[float] = None) -> ConfirmationHandle:
        """Create an outstanding confirmation for ``token``.

        The deadline starts now, before the present_token message is sent.

        Raises:
            ValueError: Token already has an outstanding confirmation.
        """
        if token in self._pending:
            raise ValueError(f"Token '{token[:7]}' already awaiting confirmation")

        loop = asyncio.get_running_loop()
        timeout = self._default_timeout if timeout is None else timeout
        entry = OutstandingConfirmation(
            key=token,
            future=loop.create_future(),
            deadline=loop.time() + timeout,
        )
        self._pending[token] = entry
        log.debug(f"Registered token '{token[:7]}' (timeout={timeout}s, outstanding={len(self)})")
        return ConfirmationHandle(self, entry)

    def resolve(self, token: str) -> bool:
        """Mark ``token`` acknowledged.

        Returns:
            True if a waiting confirmation was resolved, False for unknown,
            already-resolved or expired tokens.
        """
        return self._fulfil(token, _ACKNOWLEDGED)

    def reject(self, token: str, reason: str) -> bool:
        """Record a rejection for ``token``. The waiter sees ConfirmationRejected."""
        return self._fulfil(token, _Resolution(acknowledged=False, reason=reason))

    def pending(self, token: str) -> bool:
        return token in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def _fulfil(self, token: str, resolution: _Resolution) -> bool:
        entry = self._pending.pop(token, None)
        if entry is None or entry.future.done():
            log.debug(f"Ignoring resolution for unknown token '{token[:7]}'")
            return False
        entry.future.set_result(resolution)
        return True

    def _release(self, entry: OutstandingConfirmation) -> None:
        if self._pending.get(entry.key) is entry:
            del self._pending[entry.key]
        if not entry.future.done():
            entry.future.cancel()
