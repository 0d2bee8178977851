"""Exchange, queue and binding layout shared by every Shopfinity process.

The names below are a wire contract: consumers elsewhere depend on them, so
changing a routing key or queue name needs a migration plan, not a deploy.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from aio_pika import ExchangeType
from aio_pika.abc import AbstractChannel, AbstractExchange, AbstractQueue
from aio_pika.exceptions import AMQPError

from shopfinity.broker.exceptions import TopologyError

logger = logging.getLogger(__name__)

# Exchanges
ORDERS_EXCHANGE = "shopfinity.orders"
NOTIFICATIONS_EXCHANGE = "shopfinity.notifications"
INVENTORY_EXCHANGE = "shopfinity.inventory"
PAYMENTS_EXCHANGE = "shopfinity.payments"

# Queues
ORDER_CREATED_QUEUE = "order.created"
ORDER_UPDATED_QUEUE = "order.updated"
ORDER_CANCELLED_QUEUE = "order.cancelled"
PAYMENT_PROCESSED_QUEUE = "payment.processed"
PAYMENT_FAILED_QUEUE = "payment.failed"
INVENTORY_UPDATED_QUEUE = "inventory.updated"
EMAIL_QUEUE = "email.notifications"
SMS_QUEUE = "sms.notifications"
PUSH_QUEUE = "push.notifications"

# Routing keys used by publishers
ORDER_CREATED_KEY = "order.created"
ORDER_UPDATED_KEY = "order.updated"
ORDER_CANCELLED_KEY = "order.cancelled"
PAYMENT_PROCESSED_KEY = "payment.processed"
PAYMENT_FAILED_KEY = "payment.failed"
INVENTORY_UPDATED_KEY = "inventory.updated"
EMAIL_SEND_KEY = "email.send"

MESSAGE_TTL_MS = 24 * 60 * 60 * 1000
MAX_RETRIES = 3


@dataclass(frozen=True)
class ExchangeSpec:
    name: str
    type: ExchangeType = ExchangeType.TOPIC
    durable: bool = True


@dataclass(frozen=True)
class QueueSpec:
    name: str
    durable: bool = True
    # x-max-retries is only advertised to the broker; nothing here reads it.
    arguments: Dict[str, int] = field(
        default_factory=lambda: {"x-message-ttl": MESSAGE_TTL_MS, "x-max-retries": MAX_RETRIES}
    )


@dataclass(frozen=True)
class BindingSpec:
    queue: str
    exchange: str
    routing_key: str


EXCHANGES: Tuple[ExchangeSpec, ...] = (
    ExchangeSpec(ORDERS_EXCHANGE),
    ExchangeSpec(NOTIFICATIONS_EXCHANGE),
    ExchangeSpec(INVENTORY_EXCHANGE),
    ExchangeSpec(PAYMENTS_EXCHANGE),
)

QUEUES: Tuple[QueueSpec, ...] = tuple(
    QueueSpec(name)
    for name in (
        ORDER_CREATED_QUEUE,
        ORDER_UPDATED_QUEUE,
        ORDER_CANCELLED_QUEUE,
        PAYMENT_PROCESSED_QUEUE,
        PAYMENT_FAILED_QUEUE,
        INVENTORY_UPDATED_QUEUE,
        EMAIL_QUEUE,
        SMS_QUEUE,
        PUSH_QUEUE,
    )
)

BINDINGS: Tuple[BindingSpec, ...] = (
    BindingSpec(ORDER_CREATED_QUEUE, ORDERS_EXCHANGE, ORDER_CREATED_KEY),
    BindingSpec(ORDER_UPDATED_QUEUE, ORDERS_EXCHANGE, ORDER_UPDATED_KEY),
    BindingSpec(ORDER_CANCELLED_QUEUE, ORDERS_EXCHANGE, ORDER_CANCELLED_KEY),
    BindingSpec(PAYMENT_PROCESSED_QUEUE, PAYMENTS_EXCHANGE, PAYMENT_PROCESSED_KEY),
    BindingSpec(PAYMENT_FAILED_QUEUE, PAYMENTS_EXCHANGE, PAYMENT_FAILED_KEY),
    BindingSpec(INVENTORY_UPDATED_QUEUE, INVENTORY_EXCHANGE, INVENTORY_UPDATED_KEY),
    BindingSpec(EMAIL_QUEUE, NOTIFICATIONS_EXCHANGE, "email.*"),
    BindingSpec(SMS_QUEUE, NOTIFICATIONS_EXCHANGE, "sms.*"),
    BindingSpec(PUSH_QUEUE, NOTIFICATIONS_EXCHANGE, "push.*"),
)


@dataclass
class DeclaredTopology:
    exchanges: Dict[str, AbstractExchange] = field(default_factory=dict)
    queues: Dict[str, AbstractQueue] = field(default_factory=dict)
    bindings: List[BindingSpec] = field(default_factory=list)


async def declare_topology(channel: AbstractChannel) -> DeclaredTopology:
    """Declare exchanges, then queues, then bindings on ``channel``.

    Declarations are idempotent on the broker side, so running this against
    a broker that already has the same layout is a no-op. A conflicting
    declaration (same name, different arguments) raises TopologyError.
    """
    declared = DeclaredTopology()
    current = None
    try:
        for spec in EXCHANGES:
            current = f"exchange {spec.name}"
            declared.exchanges[spec.name] = await channel.declare_exchange(
                spec.name, spec.type, durable=spec.durable
            )

        for spec in QUEUES:
            current = f"queue {spec.name}"
            declared.queues[spec.name] = await channel.declare_queue(
                spec.name, durable=spec.durable, arguments=dict(spec.arguments)
            )

        for binding in BINDINGS:
            current = f"binding {binding.queue} <- {binding.exchange} ({binding.routing_key})"
            queue = declared.queues[binding.queue]
            await queue.bind(declared.exchanges[binding.exchange], routing_key=binding.routing_key)
            declared.bindings.append(binding)
    except AMQPError as exc:
        raise TopologyError(f"Failed to declare {current}: {exc}") from exc

    logger.info(
        "RabbitMQ topology ready: %d exchanges, %d queues, %d bindings",
        len(declared.exchanges), len(declared.queues), len(declared.bindings),
    )
    return declared
