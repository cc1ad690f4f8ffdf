"""Publishing organization change events.

The service only depends on the :class:`EventPublisher` protocol. Two
publishers exist: :class:`AmqpEventPublisher` sends JSON messages to a topic
exchange through kombu, :class:`LoggingEventPublisher` only logs them and is
used when no broker is configured.

Delivery is at most once and best effort: publishers may raise, and callers
decide what to do with the failure.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from kombu import Connection, Exchange
from kombu.exceptions import OperationalError

from src.core.config import Settings
from src.core.metrics import observe_event
from src.core.structured_logging import log_json
from src.models.enums import OrganizationEventType
from src.schemas.organization import Organization
from src.schemas.organization_event import OrganizationEvent

logger = logging.getLogger(__name__)


@runtime_checkable
class EventPublisher(Protocol):
    """Outbound notification contract."""

    async def organization_created(self, org: Organization, trace_id: str | None = None) -> None: ...

    async def organization_updated(self, org: Organization, trace_id: str | None = None) -> None: ...

    async def organization_deleted(self, org: Organization, trace_id: str | None = None) -> None: ...


class BaseEventPublisher(ABC):
    """Maps the three notification kinds onto routing keys."""

    def __init__(self, settings: Settings):
        self.schema_version = settings.event_schema_version
        self.routing_keys = {
            OrganizationEventType.CREATED: settings.rabbitmq_routing_key_created,
            OrganizationEventType.UPDATED: settings.rabbitmq_routing_key_updated,
            OrganizationEventType.DELETED: settings.rabbitmq_routing_key_deleted,
        }

    async def organization_created(self, org: Organization, trace_id: str | None = None) -> None:
        await self._emit(OrganizationEventType.CREATED, org, trace_id)

    async def organization_updated(self, org: Organization, trace_id: str | None = None) -> None:
        await self._emit(OrganizationEventType.UPDATED, org, trace_id)

    async def organization_deleted(self, org: Organization, trace_id: str | None = None) -> None:
        await self._emit(OrganizationEventType.DELETED, org, trace_id)

    async def _emit(
        self, event_type: OrganizationEventType, org: Organization, trace_id: str | None
    ) -> None:
        event = OrganizationEvent.from_organization(org, trace_id, self.schema_version)
        routing_key = self.routing_keys[event_type]
        try:
            await self.publish(routing_key, event.to_message())
        except Exception:
            observe_event(routing_key, "error")
            raise
        observe_event(routing_key, "ok")

    @abstractmethod
    async def publish(self, routing_key: str, body: dict) -> None:
        """Send one message body under ``routing_key``."""

    def close(self) -> None:
        """Release transport resources (no-op by default)."""


class LoggingEventPublisher(BaseEventPublisher):
    """Publisher that only logs events (no broker configured)."""

    async def publish(self, routing_key: str, body: dict) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            log_json(
                logger,
                logging.DEBUG,
                "organization_event",
                routing_key=routing_key,
                payload=json.dumps(body),
            )


class AmqpEventPublisher(BaseEventPublisher):
    """Publish events as persistent JSON messages to a durable topic exchange."""

    def __init__(self, settings: Settings, connection: Connection | None = None):
        """Initialize publisher.

        Args:
            settings: Application settings (broker URL, exchange, routing keys)
            connection: Existing kombu connection, mainly for tests
        """
        super().__init__(settings)
        self._connection = connection or Connection(settings.rabbitmq_url)
        self._exchange = Exchange(settings.rabbitmq_exchange, type="topic", durable=True)
        # kombu connections are not thread safe; publishes run in worker threads.
        self._lock = threading.Lock()
        self._producer = None

    def _publish_sync(self, routing_key: str, body: dict) -> None:
        with self._lock:
            if self._producer is None:
                self._producer = self._connection.Producer(serializer="json")
            self._producer.publish(
                body,
                exchange=self._exchange,
                routing_key=routing_key,
                declare=[self._exchange],
                delivery_mode=2,
                retry=False,
            )

    async def publish(self, routing_key: str, body: dict) -> None:
        await asyncio.to_thread(self._publish_sync, routing_key, body)

    def close(self) -> None:
        with self._lock:
            self._producer = None
            self._connection.release()


def build_event_publisher(settings: Settings) -> BaseEventPublisher:
    """Create the publisher for the configured broker.

    Without a broker URL, or when the broker cannot be reached at startup,
    events are only logged.
    """
    if not settings.rabbitmq_url:
        log_json(
            logger,
            logging.WARNING,
            "event_publisher_disabled",
            reason="rabbitmq_url not configured, events will be logged only",
        )
        return LoggingEventPublisher(settings)

    connection = Connection(settings.rabbitmq_url)
    try:
        connection.ensure_connection(max_retries=1)
    except (OperationalError, OSError) as exc:
        log_json(
            logger,
            logging.WARNING,
            "event_publisher_unavailable",
            error=str(exc),
            exchange=settings.rabbitmq_exchange,
        )
        connection.release()
        return LoggingEventPublisher(settings)

    log_json(logger, logging.INFO, "event_publisher_ready", exchange=settings.rabbitmq_exchange)
    return AmqpEventPublisher(settings, connection=connection)
