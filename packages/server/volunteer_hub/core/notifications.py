"""
Bulk notification delivery.

The workflow engines call ``Notifier.enqueue``, or ``defer_until_commit`` for
messages announcing a state change, which reach the queue only once the
request transaction has committed. A background worker task drains the queue
and hands each message to a ``MailTransport``. Delivery success or failure
never feeds back into ticket or membership state.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Protocol

import httpx
import structlog
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from volunteer_hub.core.config import Settings

log = structlog.get_logger()

RETRY_BASE_SECONDS = 1.0


@dataclass(frozen=True)
class BulkMessage:
    recipients: tuple[str, ...]
    subject: str
    body: str
    sender: Optional[str] = None
    tags: dict = field(default_factory=dict)


class MailTransport(Protocol):
    async def send(self, message: BulkMessage) -> None: ...

    async def close(self) -> None: ...


class LogMailTransport:
    """Writes messages to the log instead of sending them (local development)."""

    async def send(self, message: BulkMessage) -> None:
        log.info(
            "mail.logged",
            recipients=len(message.recipients),
            subject=message.subject,
            **message.tags,
        )

    async def close(self) -> None:
        return None


class HttpMailTransport:
    """
    Posts messages to an HTTP mail API as a single BCC send.

    Retries connection errors and 5xx responses with exponential backoff;
    4xx responses are not retried.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        sender: str,
        timeout_seconds: int = 10,
        max_attempts: int = 3,
        client: httpx.AsyncClient | None = None,
    ):
        self._api_url = api_url
        self._api_key = api_key
        self._sender = sender
        self._max_attempts = max(1, max_attempts)
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    async def close(self) -> None:
        await self._client.aclose()

    async def send(self, message: BulkMessage) -> None:
        body = {
            "from": message.sender or self._sender,
            "bcc": list(message.recipients),
            "subject": message.subject,
            "text": message.body,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        last_exc: Exception | None = None
        for attempt in range(self._max_attempts):
            try:
                resp = await self._client.post(self._api_url, json=body, headers=headers)
                resp.raise_for_status()
                log.info("mail.sent", recipients=len(message.recipients), attempt=attempt + 1)
                return
            except httpx.HTTPStatusError as exc:
                if 400 <= exc.response.status_code < 500:
                    log.error("mail.rejected", status=exc.response.status_code)
                    raise  # Don't retry 4xx
                last_exc = exc
            except (httpx.ConnectError, httpx.ReadError, httpx.TimeoutException) as exc:
                last_exc = exc

            if attempt + 1 < self._max_attempts:
                backoff = RETRY_BASE_SECONDS * (2 ** attempt)
                log.warning(
                    "mail.retry",
                    attempt=attempt + 1,
                    backoff=backoff,
                    error=str(last_exc),
                )
                await asyncio.sleep(backoff)

        if last_exc:
            raise last_exc


class Notifier:
    """Fire-and-forget queue in front of a MailTransport."""

    def __init__(self, transport: MailTransport, max_queue: int = 1000):
        self._transport = transport
        self._queue: asyncio.Queue[BulkMessage] = asyncio.Queue(maxsize=max_queue)
        self._worker: asyncio.Task | None = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def enqueue(
        self,
        recipients: list[str],
        subject: str,
        body: str,
        **tags,
    ) -> bool:
        """Queue a message. Returns False if it was dropped (no recipients or queue full)."""
        unique = tuple(dict.fromkeys(r for r in recipients if r))
        if not unique:
            return False
        try:
            self._queue.put_nowait(BulkMessage(recipients=unique, subject=subject, body=body, tags=tags))
        except asyncio.QueueFull:
            log.error("notifier.queue_full", recipients=len(unique), subject=subject)
            return False
        return True

    async def start(self) -> None:
        if self._worker is None:
            self._worker = asyncio.create_task(self._run())
            log.info("notifier.started")

    async def drain(self) -> None:
        """Wait until every queued message has been handed to the transport."""
        await self._queue.join()

    async def stop(self) -> None:
        if self._worker is not None:
            await self.drain()
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        await self._transport.close()
        log.info("notifier.stopped")

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self._transport.send(message)
            except Exception:
                log.exception(
                    "notifier.delivery_failed",
                    recipients=len(message.recipients),
                    subject=message.subject,
                )
            finally:
                self._queue.task_done()


def build_notifier(settings: Settings) -> Notifier:
    """Create the notifier for the configured transport."""
    transport: MailTransport
    if settings.mail_transport == "http":
        transport = HttpMailTransport(
            api_url=settings.mail_api_url,
            api_key=settings.mail_api_key,
            sender=settings.mail_from_address,
            timeout_seconds=settings.mail_timeout_seconds,
            max_attempts=settings.mail_max_attempts,
        )
    else:
        transport = LogMailTransport()
    return Notifier(transport, max_queue=settings.notification_queue_size)


def get_notifier(request: Request) -> Notifier:
    """FastAPI dependency: the notifier started with the application."""
    return request.app.state.notifier


# ---------------------------------------------------------------------------
# Messages that announce a state change
# ---------------------------------------------------------------------------

_DEFERRED_KEY = "deferred_notifications"


def defer_until_commit(
    session: AsyncSession,
    notifier: Notifier,
    recipients: list[str],
    subject: str,
    body: str,
    **tags,
) -> None:
    """Hold a message on ``session``; it is queued only after the session commits."""
    session.info.setdefault(_DEFERRED_KEY, []).append((notifier, recipients, subject, body, tags))


def release_deferred(session: AsyncSession) -> int:
    """Queue every message held on ``session``. Call right after a successful commit."""
    released = 0
    for notifier, recipients, subject, body, tags in session.info.pop(_DEFERRED_KEY, []):
        if notifier.enqueue(recipients, subject, body, **tags):
            released += 1
    return released


def discard_deferred(session: AsyncSession) -> None:
    dropped = session.info.pop(_DEFERRED_KEY, [])
    if dropped:
        log.info("notifier.deferred_discarded", count=len(dropped))
