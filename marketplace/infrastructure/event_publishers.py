"""Order events port implementations.

Services publish ``collect_events()`` after their writes succeed.
Delivery never fails the request that produced the events: a consumer
outage is logged and the order stays placed.
"""

import hashlib
import hmac
import json
from collections import deque
from typing import Sequence

import httpx
import structlog

from marketplace.domain.base import DomainEvent
from marketplace.infrastructure.config import settings

logger = structlog.get_logger()


class InMemoryEventBus:
    """Keeps recently published events for in-process consumers and tests.

    With ``maxlen`` set only the newest events are kept, so a long-running
    process holds a fixed window.
    """

    def __init__(self, maxlen: int | None = None) -> None:
        self.published: deque[DomainEvent] = deque(maxlen=maxlen)

    async def publish(self, events: Sequence[DomainEvent]) -> None:
        self.published.extend(events)

    def of_type(self, event_type: str) -> list[DomainEvent]:
        return [e for e in self.published if e.event_type == event_type]

    def clear(self) -> None:
        self.published.clear()


class StructlogEventPublisher:
    """Writes every event to the structured log."""

    async def publish(self, events: Sequence[DomainEvent]) -> None:
        for event in events:
            logger.info(
                "Domain event",
                event_type=event.event_type,
                event_id=str(event.event_id),
                aggregate_type=event.aggregate_type,
                aggregate_id=event.aggregate_id,
                payload=event.to_dict()["payload"],
            )


def sign_payload(payload: str, secret: str) -> str:
    """HMAC-SHA256 signature header value (``sha256=<hex>``)."""
    digest = hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()
    return f"sha256={digest}"


class WebhookEventPublisher:
    """POSTs each event as JSON to a downstream consumer.

    The body is signed with HMAC-SHA256 in ``X-Marketplace-Signature``
    so consumers can verify the sender.
    """

    SIGNATURE_HEADER = "X-Marketplace-Signature"

    def __init__(
        self,
        url: str,
        secret: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.secret = secret or settings.events_webhook_secret
        self.timeout = timeout or settings.events_webhook_timeout
        self._transport = transport

    async def publish(self, events: Sequence[DomainEvent]) -> None:
        if not events:
            return
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for event in events:
                await self._deliver(client, event)

    async def _deliver(self, client: httpx.AsyncClient, event: DomainEvent) -> None:
        payload = json.dumps(event.to_dict(), sort_keys=True)
        headers = {
            "Content-Type": "application/json",
            self.SIGNATURE_HEADER: sign_payload(payload, self.secret),
        }
        try:
            response = await client.post(self.url, content=payload, headers=headers)
        except httpx.RequestError as e:
            logger.error(
                "Event delivery failed",
                event_type=event.event_type,
                event_id=str(event.event_id),
                url=self.url,
                error=str(e),
            )
            return

        if response.status_code >= 400:
            logger.warning(
                "Event rejected by consumer",
                event_type=event.event_type,
                event_id=str(event.event_id),
                status_code=response.status_code,
            )
        else:
            logger.debug(
                "Event delivered",
                event_type=event.event_type,
                event_id=str(event.event_id),
            )


class CompositeEventPublisher:
    """Fans events out to several publishers in order."""

    def __init__(self, publishers: Sequence) -> None:
        self.publishers = list(publishers)

    async def publish(self, events: Sequence[DomainEvent]) -> None:
        for publisher in self.publishers:
            await publisher.publish(events)
