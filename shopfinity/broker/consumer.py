import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from aio_pika.abc import AbstractIncomingMessage, AbstractQueue
from aio_pika.exceptions import AMQPError, ChannelInvalidStateError

from shopfinity.broker.connection import ConnectionManager
from shopfinity.broker.exceptions import NotConnectedError
from shopfinity.broker.models import Envelope

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any], AbstractIncomingMessage], Any]


@dataclass
class DeliveryOutcome:
    """What happened to one delivery: handled, or the error that stopped it."""

    queue: str
    message_id: Optional[str]
    error: Optional[BaseException] = None
    # "ack", "reject" or "none" (no_ack consumers)
    action: str = "none"
    settled: bool = True

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ConsumerRegistration:
    queue: str
    handler: Handler
    no_ack: bool = False
    consumer_tag: Optional[str] = None
    processed: int = 0
    failed: int = 0
    last_outcome: Optional[DeliveryOutcome] = None
    inbox: "asyncio.Queue[AbstractIncomingMessage]" = field(default_factory=asyncio.Queue)
    source: Optional[AbstractQueue] = None
    task: Optional["asyncio.Task[None]"] = None


class ConsumerRegistry:
    """Attaches handlers to queues.

    Each registration gets its own worker task fed by the broker callback,
    so deliveries on one queue are handled strictly one at a time in the
    order the broker dispatched them, while different queues run side by
    side. A handler that raises gets its message rejected without requeue;
    the worker moves on to the next delivery.
    """

    def __init__(self, connection: ConnectionManager):
        self._connection = connection
        self._registrations: List[ConsumerRegistration] = []

    @property
    def registrations(self) -> List[ConsumerRegistration]:
        return list(self._registrations)

    async def consume(self, queue: str, handler: Handler, no_ack: bool = False, **options: Any) -> bool:
        if not self._connection.is_connected:
            logger.error("RabbitMQ not connected, cannot consume from %s", queue)
            return False

        registration = ConsumerRegistration(queue=queue, handler=handler, no_ack=no_ack)
        try:
            source = await self._connection.get_queue(queue)
            registration.consumer_tag = await source.consume(registration.inbox.put, no_ack=no_ack, **options)
        except (NotConnectedError, AMQPError, ChannelInvalidStateError) as exc:
            logger.error("Error setting up consumer on %s: %s", queue, exc)
            return False

        registration.source = source
        registration.task = asyncio.create_task(self._drain(registration), name=f"consumer:{queue}")
        self._registrations.append(registration)
        logger.info("Listening for messages on queue: %s", queue)
        return True

    async def dispatch(self, registration: ConsumerRegistration, message: AbstractIncomingMessage) -> DeliveryOutcome:
        outcome = DeliveryOutcome(queue=registration.queue, message_id=message.message_id)
        try:
            envelope = Envelope.from_json(message.body.decode("utf-8"))
            outcome.message_id = envelope.message_id
            logger.info("Message received from %s: %s", registration.queue, envelope.message_id)
            result = registration.handler(envelope.as_dict(), message)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            outcome.error = exc
            registration.failed += 1
            logger.error(
                "Error processing message %s from %s: %s", outcome.message_id, registration.queue, exc,
                exc_info=exc,
            )
            if not registration.no_ack:
                outcome.action = "reject"
                # Poisoned messages are not retried here; dead-lettering is the broker's job.
                outcome.settled = await self._settle(message.reject(requeue=False), outcome)
        else:
            registration.processed += 1
            if not registration.no_ack:
                outcome.action = "ack"
                outcome.settled = await self._settle(message.ack(), outcome)

        registration.last_outcome = outcome
        return outcome

    async def cancel_all(self) -> None:
        """Stop every registration. Callers re-issue consume() after a reconnect."""
        registrations, self._registrations = self._registrations, []
        for registration in registrations:
            if self._connection.is_connected and registration.source and registration.consumer_tag:
                try:
                    await registration.source.cancel(registration.consumer_tag)
                except (AMQPError, ChannelInvalidStateError) as exc:
                    logger.warning("Error cancelling consumer on %s: %s", registration.queue, exc)
            if registration.task is not None:
                registration.task.cancel()

        tasks = [r.task for r in registrations if r.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Stopped %d consumer(s)", len(tasks))

    async def _drain(self, registration: ConsumerRegistration) -> None:
        while True:
            message = await registration.inbox.get()
            try:
                await self.dispatch(registration, message)
            finally:
                registration.inbox.task_done()

    @staticmethod
    async def _settle(settlement: Any, outcome: DeliveryOutcome) -> bool:
        try:
            await settlement
        except (AMQPError, ChannelInvalidStateError, ConnectionError) as exc:
            logger.error("Could not %s message %s on %s: %s", outcome.action, outcome.message_id, outcome.queue, exc)
            return False
        return True
