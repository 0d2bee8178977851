"""Default consumers the backend attaches once RabbitMQ is up.

Handlers validate the payload by rebuilding the typed event; a payload that
does not parse raises, which gets the message rejected without requeue.
"""
import logging
from typing import Any, Dict

from shopfinity.broker import topology
from shopfinity.broker.models import EmailNotificationEvent, InventoryUpdatedEvent, OrderCreatedEvent
from shopfinity.broker.service import MessageService

logger = logging.getLogger(__name__)


async def handle_order_created(payload: Dict[str, Any], message: Any) -> None:
    event = OrderCreatedEvent.from_payload(payload)
    if not isinstance(event.items, list):
        raise ValueError("items must be a list")
    logger.info(
        "Processing new order %s for %s | %d item(s), total=%s",
        event.order_id, event.user_id, len(event.items), event.total,
    )


async def handle_email_notification(payload: Dict[str, Any], message: Any) -> None:
    event = EmailNotificationEvent.from_payload(payload)
    logger.info("Sending email '%s' to %s (template=%s)", event.subject, event.to, event.template)


async def handle_inventory_updated(payload: Dict[str, Any], message: Any) -> None:
    event = InventoryUpdatedEvent.from_payload(payload)
    logger.info("Inventory for %s is now %s (at %s)", event.product_id, event.new_stock, event.updated_at)


DEFAULT_CONSUMERS = {
    topology.ORDER_CREATED_QUEUE: handle_order_created,
    topology.EMAIL_QUEUE: handle_email_notification,
    topology.INVENTORY_UPDATED_QUEUE: handle_inventory_updated,
}


async def register_consumers(messaging: MessageService, consumers=None) -> int:
    registered = 0
    for queue, handler in (consumers or DEFAULT_CONSUMERS).items():
        if await messaging.consume(queue, handler):
            registered += 1
    return registered
