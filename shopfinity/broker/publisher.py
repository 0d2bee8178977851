import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from aio_pika import DeliveryMode, Message
from aio_pika.abc import AbstractExchange
from aio_pika.exceptions import AMQPError, ChannelInvalidStateError
from pamqp.commands import Basic

from shopfinity.broker.connection import ConnectionManager
from shopfinity.broker.exceptions import NotConnectedError
from shopfinity.broker.models import Envelope

logger = logging.getLogger(__name__)


class Publisher:
    """Publishes JSON envelopes on the shared channel.

    Both entry points return the broker's flow-control answer as a bool and
    never raise: False means "not accepted", whether because the layer is
    disconnected, the client failed, or the broker nacked the message.
    """

    def __init__(self, connection: ConnectionManager):
        self._connection = connection

    async def publish(self, exchange: str, routing_key: str, payload: Mapping[str, Any], **options: Any) -> bool:
        if not self._connection.is_connected:
            logger.error("RabbitMQ not connected, dropping message for %s:%s", exchange, routing_key)
            return False

        try:
            target = await self._connection.get_exchange(exchange)
        except (NotConnectedError, AMQPError, ChannelInvalidStateError) as exc:
            logger.error("Error publishing message to %s:%s: %s", exchange, routing_key, exc)
            return False

        accepted = await self._send(target, routing_key, payload, options)
        if accepted:
            logger.info("Message published to %s:%s", exchange, routing_key)
        return accepted

    async def send_to_queue(self, queue: str, payload: Mapping[str, Any], **options: Any) -> bool:
        if not self._connection.is_connected:
            logger.error("RabbitMQ not connected, dropping message for queue %s", queue)
            return False

        try:
            target = self._connection.require_channel().default_exchange
        except NotConnectedError as exc:
            logger.error("Error sending message to queue %s: %s", queue, exc)
            return False

        accepted = await self._send(target, queue, payload, options)
        if accepted:
            logger.info("Message sent to queue %s", queue)
        return accepted

    async def _send(
        self, target: AbstractExchange, routing_key: str, payload: Mapping[str, Any], options: Mapping[str, Any]
    ) -> bool:
        envelope = Envelope.wrap(payload)
        try:
            message = build_message(envelope, **options)
            confirmation = await target.publish(message, routing_key=routing_key)
        except (AMQPError, ChannelInvalidStateError, ConnectionError, TypeError, ValueError) as exc:
            logger.error("Error publishing message %s to %s: %s", envelope.message_id, routing_key, exc)
            return False

        if isinstance(confirmation, Basic.Nack):
            logger.warning("Broker refused message %s on %s, caller should throttle", envelope.message_id, routing_key)
            return False
        return True


def build_message(envelope: Envelope, persistent: bool = True, **properties: Any) -> Message:
    """Turn an envelope into an AMQP message.

    ``persistent`` maps to the delivery mode; every other keyword is passed
    to aio_pika.Message and wins over the defaults set here.
    """
    defaults = {
        "content_type": "application/json",
        "content_encoding": "utf-8",
        "message_id": envelope.message_id,
        "timestamp": datetime.now(timezone.utc),
        "delivery_mode": DeliveryMode.PERSISTENT if persistent else DeliveryMode.NOT_PERSISTENT,
    }
    defaults.update(properties)
    return Message(envelope.to_json().encode("utf-8"), **defaults)
