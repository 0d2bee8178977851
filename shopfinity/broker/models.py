import json
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Type

from shopfinity.broker import topology
from shopfinity.common.ids import new_message_id


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Envelope:
    """A payload in transit, stamped with ``timestamp`` and ``messageId``."""

    payload: Dict[str, Any]
    timestamp: str = field(default_factory=utc_now_iso)
    message_id: str = field(default_factory=new_message_id)

    def as_dict(self) -> Dict[str, Any]:
        # Envelope fields override payload keys of the same name.
        body = dict(self.payload)
        body["timestamp"] = self.timestamp
        body["messageId"] = self.message_id
        return body

    def to_json(self) -> str:
        return json.dumps(self.as_dict(), default=str)

    @classmethod
    def wrap(cls, payload: Mapping[str, Any]) -> "Envelope":
        return cls(payload=dict(payload))

    @classmethod
    def from_json(cls, data: str) -> "Envelope":
        d = json.loads(data)
        if not isinstance(d, dict):
            raise ValueError("envelope must be a JSON object")
        try:
            timestamp = d.pop("timestamp")
            message_id = d.pop("messageId")
        except KeyError as exc:
            raise ValueError(f"envelope missing {exc.args[0]}") from None
        return cls(payload=d, timestamp=timestamp, message_id=message_id)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass
class DomainEvent:
    """Base for the fixed-shape business events.

    Attributes are snake_case in Python and camelCase on the wire; ``type``
    is added to every payload so consumers can switch on it.
    """

    type: ClassVar[str]
    exchange: ClassVar[str]
    routing_key: ClassVar[str]

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type}
        for f in fields(self):
            payload[_camel(f.name)] = getattr(self, f.name)
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]):
        if payload.get("type") != cls.type:
            raise ValueError(f"expected {cls.type} payload, got {payload.get('type')!r}")
        return cls(**{f.name: payload[_camel(f.name)] for f in fields(cls) if _camel(f.name) in payload})


@dataclass
class OrderCreatedEvent(DomainEvent):
    order_id: str
    user_id: str
    total: float
    items: List[dict]

    type: ClassVar[str] = "ORDER_CREATED"
    exchange: ClassVar[str] = topology.ORDERS_EXCHANGE
    routing_key: ClassVar[str] = topology.ORDER_CREATED_KEY


@dataclass
class OrderUpdatedEvent(DomainEvent):
    order_id: str
    status: str
    updated_at: str = field(default_factory=utc_now_iso)

    type: ClassVar[str] = "ORDER_UPDATED"
    exchange: ClassVar[str] = topology.ORDERS_EXCHANGE
    routing_key: ClassVar[str] = topology.ORDER_UPDATED_KEY


@dataclass
class OrderCancelledEvent(DomainEvent):
    order_id: str
    reason: str = ""
    cancelled_at: str = field(default_factory=utc_now_iso)

    type: ClassVar[str] = "ORDER_CANCELLED"
    exchange: ClassVar[str] = topology.ORDERS_EXCHANGE
    routing_key: ClassVar[str] = topology.ORDER_CANCELLED_KEY


@dataclass
class PaymentProcessedEvent(DomainEvent):
    order_id: str
    amount: float
    payment_method: str

    type: ClassVar[str] = "PAYMENT_PROCESSED"
    exchange: ClassVar[str] = topology.PAYMENTS_EXCHANGE
    routing_key: ClassVar[str] = topology.PAYMENT_PROCESSED_KEY


@dataclass
class PaymentFailedEvent(DomainEvent):
    order_id: str
    amount: float
    reason: str

    type: ClassVar[str] = "PAYMENT_FAILED"
    exchange: ClassVar[str] = topology.PAYMENTS_EXCHANGE
    routing_key: ClassVar[str] = topology.PAYMENT_FAILED_KEY


@dataclass
class InventoryUpdatedEvent(DomainEvent):
    product_id: str
    new_stock: int
    updated_at: str = field(default_factory=utc_now_iso)

    type: ClassVar[str] = "INVENTORY_UPDATED"
    exchange: ClassVar[str] = topology.INVENTORY_EXCHANGE
    routing_key: ClassVar[str] = topology.INVENTORY_UPDATED_KEY


@dataclass
class EmailNotificationEvent(DomainEvent):
    to: str
    subject: str
    template: str
    data: Dict[str, Any] = field(default_factory=dict)

    type: ClassVar[str] = "EMAIL_NOTIFICATION"
    exchange: ClassVar[str] = topology.NOTIFICATIONS_EXCHANGE
    routing_key: ClassVar[str] = topology.EMAIL_SEND_KEY


EVENT_TYPES: Dict[str, Type[DomainEvent]] = {
    cls.type: cls
    for cls in (
        OrderCreatedEvent,
        OrderUpdatedEvent,
        OrderCancelledEvent,
        PaymentProcessedEvent,
        PaymentFailedEvent,
        InventoryUpdatedEvent,
        EmailNotificationEvent,
    )
}


def parse_event(payload: Mapping[str, Any]) -> Optional[DomainEvent]:
    """Rebuild the typed event for a consumed payload, or None if untyped."""
    cls = EVENT_TYPES.get(payload.get("type"))
    if cls is None:
        return None
    return cls.from_payload(payload)
