"""Operator tool: declare the Shopfinity topology and report queue depths.

Uses a plain blocking connection so it can run from a deploy step or a
container entrypoint before any service starts::

    python -m shopfinity.broker.provision            # declare everything
    python -m shopfinity.broker.provision --status   # print queue depths
"""
import argparse
import logging
import time
from typing import Optional

import pika
import pika.exceptions

from shopfinity.config import RabbitSettings
from shopfinity.broker.exceptions import BrokerConnectionError
from shopfinity.broker.topology import BINDINGS, EXCHANGES, QUEUES

logger = logging.getLogger(__name__)


def connect_with_retry(
    settings: RabbitSettings, attempts: Optional[int] = None, delay: Optional[float] = None
) -> pika.BlockingConnection:
    """Blocking counterpart of ConnectionManager.connect_with_retry.

    Same attempt ceiling and pause (from ``settings`` unless overridden), but
    raises BrokerConnectionError once they are used up: a provisioning run
    has nothing useful to do without the broker.
    """
    attempts = attempts if attempts is not None else settings.connect_attempts
    delay = delay if delay is not None else settings.connect_delay
    params = pika.ConnectionParameters(
        host=settings.host,
        port=settings.port,
        virtual_host=settings.vhost,
        credentials=pika.PlainCredentials(settings.user, settings.password),
    )
    for attempt in range(1, attempts + 1):
        try:
            return pika.BlockingConnection(params)
        except pika.exceptions.AMQPConnectionError as exc:
            logger.warning("RabbitMQ connection attempt %d/%d failed: %r", attempt, attempts, exc)
            if attempt < attempts:
                time.sleep(delay)
    raise BrokerConnectionError(f"Cannot connect to RabbitMQ at {settings.safe_url} after {attempts} attempts")


def setup_infrastructure(channel) -> None:
    for exchange in EXCHANGES:
        channel.exchange_declare(exchange=exchange.name, exchange_type=exchange.type.value, durable=exchange.durable)
        logger.info("Exchange '%s' (%s)", exchange.name, exchange.type.value)

    for queue in QUEUES:
        channel.queue_declare(queue=queue.name, durable=queue.durable, arguments=dict(queue.arguments))

    for binding in BINDINGS:
        channel.queue_bind(queue=binding.queue, exchange=binding.exchange, routing_key=binding.routing_key)
        logger.info("Queue '%s' <- %s '%s'", binding.queue, binding.exchange, binding.routing_key)


def queue_depths(channel) -> dict:
    depths = {}
    for queue in QUEUES:
        result = channel.queue_declare(queue=queue.name, passive=True)
        depths[queue.name] = (result.method.message_count, result.method.consumer_count)
    return depths


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Declare Shopfinity RabbitMQ topology")
    parser.add_argument("--status", action="store_true", help="print queue depths instead of declaring")
    parser.add_argument("--attempts", type=int, help="connection attempts (default: RABBITMQ_CONNECT_ATTEMPTS)")
    parser.add_argument("--delay", type=float, help="seconds between attempts (default: RABBITMQ_CONNECT_DELAY)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="[%(asctime)s] provision | %(message)s")
    connection = connect_with_retry(RabbitSettings.from_env(), args.attempts, args.delay)
    try:
        channel = connection.channel()
        if args.status:
            for name, (messages, consumers) in queue_depths(channel).items():
                print(f"{name:<22} messages={messages:<6} consumers={consumers}")
        else:
            setup_infrastructure(channel)
            logger.info("Infrastructure ready")
    finally:
        connection.close()


if __name__ == "__main__":
    main()
