"""The messaging service object shared by a whole process.

Create one ``MessageService`` at startup, hand it to whatever needs to
publish or consume, and ``disconnect()`` it on shutdown::

    service = MessageService(RabbitSettings.from_env())
    if await service.connect_with_retry():
        await service.consume("order.created", handle_order)
    await service.events.order_created("o1", "u1", 42.5, items)
    ...
    await service.disconnect()

There is exactly one connection and one channel behind it; nothing else
may open or close them.
"""
import logging
from typing import Any, Dict, Mapping, Optional

import aio_pika

from shopfinity.config import RabbitSettings
from shopfinity.broker.connection import ConnectFactory, ConnectionManager
from shopfinity.broker.consumer import ConsumerRegistry, Handler
from shopfinity.broker.events import DomainEvents
from shopfinity.broker.publisher import Publisher

logger = logging.getLogger(__name__)


class MessageService:
    def __init__(self, settings: Optional[RabbitSettings] = None, connect_factory: ConnectFactory = aio_pika.connect):
        self.settings = settings or RabbitSettings.from_env()
        self.connection = ConnectionManager(self.settings, connect_factory)
        self.publisher = Publisher(self.connection)
        self.consumers = ConsumerRegistry(self.connection)
        self.events = DomainEvents(self.publisher)

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    async def connect(self) -> None:
        # Registrations belong to the old channel; callers re-issue them.
        await self.consumers.cancel_all()
        await self.connection.connect()

    async def connect_with_retry(self, attempts: Optional[int] = None, delay: Optional[float] = None) -> bool:
        await self.consumers.cancel_all()
        return await self.connection.connect_with_retry(attempts, delay)

    async def disconnect(self) -> None:
        await self.consumers.cancel_all()
        await self.connection.disconnect()
        logger.info("RabbitMQ disconnected")

    async def publish(self, exchange: str, routing_key: str, payload: Mapping[str, Any], **options: Any) -> bool:
        return await self.publisher.publish(exchange, routing_key, payload, **options)

    async def send_to_queue(self, queue: str, payload: Mapping[str, Any], **options: Any) -> bool:
        return await self.publisher.send_to_queue(queue, payload, **options)

    async def consume(self, queue: str, handler: Handler, no_ack: bool = False, **options: Any) -> bool:
        return await self.consumers.consume(queue, handler, no_ack=no_ack, **options)

    async def queue_info(self, queue: str) -> Optional[Dict[str, Any]]:
        return await self.connection.queue_info(queue)

    def health(self) -> Dict[str, Any]:
        return {
            "status": "healthy" if self.is_connected else "unavailable",
            "isConnected": self.is_connected,
            "consumers": [
                {
                    "queue": r.queue,
                    "processed": r.processed,
                    "failed": r.failed,
                }
                for r in self.consumers.registrations
            ],
        }

    async def __aenter__(self) -> "MessageService":
        await self.connect_with_retry()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()
