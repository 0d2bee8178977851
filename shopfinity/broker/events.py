from typing import Any, Dict, List, Optional

from shopfinity.broker.models import (
    DomainEvent,
    EmailNotificationEvent,
    InventoryUpdatedEvent,
    OrderCancelledEvent,
    OrderCreatedEvent,
    OrderUpdatedEvent,
    PaymentFailedEvent,
    PaymentProcessedEvent,
)
from shopfinity.broker.publisher import Publisher


class DomainEvents:
    """One call per business event; each is a fixed exchange/routing-key publish."""

    def __init__(self, publisher: Publisher):
        self._publisher = publisher

    async def emit(self, event: DomainEvent) -> bool:
        return await self._publisher.publish(event.exchange, event.routing_key, event.to_payload())

    async def order_created(self, order_id: str, user_id: str, total: float, items: List[dict]) -> bool:
        return await self.emit(OrderCreatedEvent(order_id=order_id, user_id=user_id, total=total, items=items))

    async def order_updated(self, order_id: str, status: str, updated_at: Optional[str] = None) -> bool:
        event = OrderUpdatedEvent(order_id=order_id, status=status)
        if updated_at:
            event.updated_at = updated_at
        return await self.emit(event)

    async def order_cancelled(self, order_id: str, reason: str = "") -> bool:
        return await self.emit(OrderCancelledEvent(order_id=order_id, reason=reason))

    async def payment_processed(self, order_id: str, amount: float, payment_method: str) -> bool:
        return await self.emit(
            PaymentProcessedEvent(order_id=order_id, amount=amount, payment_method=payment_method)
        )

    async def payment_failed(self, order_id: str, amount: float, reason: str) -> bool:
        return await self.emit(PaymentFailedEvent(order_id=order_id, amount=amount, reason=reason))

    async def inventory_updated(self, product_id: str, new_stock: int) -> bool:
        return await self.emit(InventoryUpdatedEvent(product_id=product_id, new_stock=new_stock))

    async def email_notification(
        self, to: str, subject: str, template: str, data: Optional[Dict[str, Any]] = None
    ) -> bool:
        return await self.emit(
            EmailNotificationEvent(to=to, subject=subject, template=template, data=data or {})
        )
