"""Deferred credential polling.

After a deferral the holder queries the issuer's deferred endpoint at a
fixed interval until the response classifies as terminal. The loop runs
as its own asyncio task and exits on the first terminal classification.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from holder.config import POLL_INTERVAL
from holder.core.exceptions import PollClassifiedError, PollErrorKind
from holder.issuance.codec import CredentialCodec
from holder.issuance.models import (
    CredentialResult,
    DeferredPollResponse,
    Failed,
    FailureKind,
    Issued,
    PollingSession,
)

log = logging.getLogger(__name__)

ISSUANCE_PENDING = "issuance_pending"
DIDCOMM_UNREACHABLE = "didcomm_unreachable"
INVALID_TRANSACTION_ID = "invalid_transaction_id"

_POLL_ERROR_KINDS = {
    ISSUANCE_PENDING: PollErrorKind.PENDING,
    DIDCOMM_UNREACHABLE: PollErrorKind.UNREACHABLE,
    INVALID_TRANSACTION_ID: PollErrorKind.INVALID_TRANSACTION,
}

_FAILURE_KINDS = {
    PollErrorKind.UNREACHABLE: FailureKind.SIDE_CHANNEL_UNREACHABLE,
    PollErrorKind.INVALID_TRANSACTION: FailureKind.UNKNOWN_TRANSACTION,
    PollErrorKind.UNCLASSIFIED: FailureKind.UNCLASSIFIED_ERROR,
}

DeferredQuery = Callable[[str, str], Awaitable[DeferredPollResponse]]


def classify_poll_error(error_code: Optional[str]) -> PollClassifiedError:
    """Classify a deferred endpoint error code."""
    if not isinstance(error_code, str):
        return PollClassifiedError(PollErrorKind.UNCLASSIFIED, None)
    kind = _POLL_ERROR_KINDS.get(error_code, PollErrorKind.UNCLASSIFIED)
    return PollClassifiedError(kind, error_code)


def failure_from_poll_error(error: PollClassifiedError) -> Failed:
    """Terminal result for a non-retryable poll error."""
    if error.retryable:
        raise ValueError("issuance_pending is not terminal")
    return Failed(
        kind=_FAILURE_KINDS[error.kind],
        detail=str(error) if error.kind == PollErrorKind.UNCLASSIFIED else None,
        error_code=error.error_code,
    )


class DeferredPoller:
    """Polls one deferred transaction to a terminal result.

    Args:
        query: Coroutine function ``(transaction_id, c_nonce) -> DeferredPollResponse``
        codec: Decoder for the issued credential
        interval: Seconds between queries
    """

    def __init__(
        self,
        query: DeferredQuery,
        codec: Optional[CredentialCodec] = None,
        interval: float = POLL_INTERVAL,
    ):
        self._query = query
        self._codec = codec or CredentialCodec()
        self._interval = interval

    def session(self, transaction_id: str, c_nonce: str) -> PollingSession:
        return PollingSession(
            transaction_id=transaction_id,
            c_nonce=c_nonce,
            interval=self._interval,
        )

    def start(self, session: PollingSession) -> "asyncio.Task[CredentialResult]":
        """Start polling as a detached task. The task's result is the terminal outcome."""
        return asyncio.create_task(
            self._run(session), name=f"deferred-poll-{session.transaction_id}"
        )

    async def poll(self, session: PollingSession) -> CredentialResult:
        """Poll until terminal and return the outcome."""
        task = self.start(session)
        try:
            return await task
        finally:
            if not task.done():
                task.cancel()

    async def _run(self, session: PollingSession) -> CredentialResult:
        extra = {"transaction_id": session.transaction_id}
        log.info(
            f"Deferral received, polling {session.transaction_id} "
            f"every {session.interval}s",
            extra=extra,
        )
        while True:
            await asyncio.sleep(session.interval)
            session.attempts += 1

            response = await self._query(session.transaction_id, session.c_nonce)

            if response.credential is not None:
                credential = self._codec.decode(response.credential)
                log.info(
                    f"Deferred credential {session.transaction_id} issued "
                    f"after {session.attempts} attempts",
                    extra=extra,
                )
                return Issued(credential=credential, raw=response.credential)

            error = classify_poll_error(response.error)
            if error.retryable:
                log.info(f"Credential {session.transaction_id} not ready yet", extra=extra)
                continue

            log.error(
                f"Deferred polling for {session.transaction_id} stopped: "
                f"{response.error} ({error.kind.value})",
                extra=extra,
            )
            return failure_from_poll_error(error)
