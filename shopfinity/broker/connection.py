import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Optional

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractConnection, AbstractExchange, AbstractQueue
from aio_pika.exceptions import AMQPError, ChannelInvalidStateError

from shopfinity.config import RabbitSettings
from shopfinity.broker.exceptions import (
    BrokerConnectionError,
    MessagingError,
    NotConnectedError,
    TopologyError,
)
from shopfinity.broker.topology import DeclaredTopology, declare_topology

logger = logging.getLogger(__name__)

ConnectFactory = Callable[[str], Awaitable[AbstractConnection]]


class ConnectionManager:
    """Owns the one broker connection and channel of the process.

    ``is_connected`` is only true while both handles are live. The
    connection is not robust: when the broker closes the connection or the
    shared channel the flag goes false and stays false until someone calls
    ``connect()`` again.
    """

    def __init__(self, settings: RabbitSettings, connect_factory: ConnectFactory = aio_pika.connect):
        self.settings = settings
        self._connect_factory = connect_factory
        self.connection: Optional[AbstractConnection] = None
        self.channel: Optional[AbstractChannel] = None
        self.topology = DeclaredTopology()
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return (
            self._connected
            and self.connection is not None and not self.connection.is_closed
            and self.channel is not None and not self.channel.is_closed
        )

    async def connect(self) -> None:
        if self.connection is not None:
            logger.info("Closing previous RabbitMQ connection before reconnecting")
            await self.disconnect()

        logger.info("Connecting to RabbitMQ at %s", self.settings.safe_url)
        try:
            connection = await self._connect_factory(self.settings.url)
        except (OSError, asyncio.TimeoutError, AMQPError) as exc:
            raise BrokerConnectionError(
                f"Cannot connect to RabbitMQ at {self.settings.safe_url}: {exc}"
            ) from exc

        try:
            channel = await connection.channel()
            await channel.set_qos(prefetch_count=self.settings.prefetch_count)
            topology = await declare_topology(channel)
        except TopologyError:
            await self._close_quietly(connection)
            raise
        except (OSError, asyncio.TimeoutError, AMQPError, ChannelInvalidStateError) as exc:
            await self._close_quietly(connection)
            raise BrokerConnectionError(f"RabbitMQ channel setup failed: {exc}") from exc

        connection.close_callbacks.add(partial(self._on_closed, "connection", connection))
        channel.close_callbacks.add(partial(self._on_closed, "channel", channel))
        self.connection = connection
        self.channel = channel
        self.topology = topology
        self._connected = True
        logger.info("RabbitMQ connected successfully")

    async def connect_with_retry(self, attempts: Optional[int] = None, delay: Optional[float] = None) -> bool:
        """Try ``connect()`` a fixed number of times with a fixed pause.

        Never raises; returns False once every attempt has failed so the
        host process can keep serving in degraded mode.
        """
        attempts = attempts if attempts is not None else self.settings.connect_attempts
        delay = delay if delay is not None else self.settings.connect_delay
        for attempt in range(1, attempts + 1):
            try:
                await self.connect()
                return True
            except MessagingError as exc:
                logger.warning("RabbitMQ connection attempt %d/%d failed: %s", attempt, attempts, exc)
                if attempt < attempts:
                    await asyncio.sleep(delay)
        logger.error("RabbitMQ connection failed after %d attempts, continuing without RabbitMQ", attempts)
        return False

    async def disconnect(self) -> None:
        channel, connection = self.channel, self.connection
        self._connected = False

        if channel is not None and not channel.is_closed:
            try:
                await channel.close()
            except Exception as exc:
                logger.error("Error closing RabbitMQ channel: %s", exc)
        if connection is not None and not connection.is_closed:
            try:
                await connection.close()
            except Exception as exc:
                logger.error("Error closing RabbitMQ connection: %s", exc)

        self.channel = None
        self.connection = None
        self.topology = DeclaredTopology()
        self._connected = False

    def require_channel(self) -> AbstractChannel:
        if not self.is_connected:
            raise NotConnectedError("RabbitMQ not connected")
        return self.channel

    async def get_exchange(self, name: str) -> AbstractExchange:
        if name in self.topology.exchanges:
            return self.topology.exchanges[name]
        channel = self.require_channel()
        await self._passive_declare("exchange", name)
        return await channel.get_exchange(name, ensure=False)

    async def get_queue(self, name: str) -> AbstractQueue:
        if name in self.topology.queues:
            return self.topology.queues[name]
        channel = self.require_channel()
        await self._passive_declare("queue", name)
        return await channel.get_queue(name, ensure=False)

    async def queue_info(self, name: str) -> Optional[Dict[str, Any]]:
        """Message and consumer counts for ``name``, or None."""
        if not self.is_connected:
            return None
        try:
            queue = await self._passive_declare("queue", name)
        except (AMQPError, ChannelInvalidStateError) as exc:
            logger.error("Error getting queue info for %s: %s", name, exc)
            return None
        result = queue.declaration_result
        return {
            "queue": name,
            "messageCount": result.message_count,
            "consumerCount": result.consumer_count,
        }

    async def _passive_declare(self, kind: str, name: str) -> Any:
        # A passive declare of a missing entity makes the broker close the
        # channel, so it never runs on the shared one.
        scratch = await self.connection.channel()
        try:
            if kind == "queue":
                return await scratch.declare_queue(name, passive=True)
            return await scratch.declare_exchange(name, passive=True)
        finally:
            if not scratch.is_closed:
                await self._close_quietly(scratch)

    def _on_closed(self, what: str, handle: Any, *args: Any) -> None:
        if handle is not (self.connection if what == "connection" else self.channel):
            return
        exc = next((arg for arg in args if isinstance(arg, BaseException)), None)
        self._connected = False
        if exc is not None:
            logger.error("RabbitMQ %s closed with error: %s", what, exc)
        else:
            logger.info("RabbitMQ %s closed", what)

    @staticmethod
    async def _close_quietly(closable: Any) -> None:
        try:
            await closable.close()
        except Exception as exc:
            logger.debug("Ignoring error while closing %r: %s", closable, exc)
