import json

import pytest

from shopfinity.broker.models import parse_event

from fake_broker import drain


def _pending(broker, queue):
    return [json.loads(m.body) for m in broker.queues[queue].pending]


async def test_order_created_reaches_consumer(connected):
    received = []
    await connected.consume("order.created", lambda payload, message: received.append(payload))

    items = [{"productId": "p1", "quantity": 2}]
    assert await connected.events.order_created("o1", "u1", 42.5, items) is True
    await drain(connected)

    payload = received[0]
    assert payload["type"] == "ORDER_CREATED"
    assert (payload["orderId"], payload["userId"], payload["total"]) == ("o1", "u1", 42.5)
    assert payload["items"] == items
    assert payload["messageId"].startswith("msg_")
    event = parse_event(payload)
    assert event.order_id == "o1"


async def test_inventory_update_scenario(connected):
    received = []
    await connected.consume("inventory.updated", lambda payload, message: received.append(payload))

    assert await connected.events.inventory_updated("p7", 3) is True
    await drain(connected)

    [payload] = received
    assert payload["type"] == "INVENTORY_UPDATED"
    assert payload["productId"] == "p7"
    assert payload["newStock"] == 3
    assert payload["updatedAt"]


@pytest.mark.parametrize(
    "helper, args, queue, event_type",
    [
        ("order_updated", ("o1", "shipped"), "order.updated", "ORDER_UPDATED"),
        ("order_cancelled", ("o1", "changed my mind"), "order.cancelled", "ORDER_CANCELLED"),
        ("payment_processed", ("o1", 42.5, "card"), "payment.processed", "PAYMENT_PROCESSED"),
        ("payment_failed", ("o1", 42.5, "card declined"), "payment.failed", "PAYMENT_FAILED"),
        ("email_notification", ("a@b.c", "Hi", "welcome"), "email.notifications", "EMAIL_NOTIFICATION"),
    ],
)
async def test_helpers_route_to_their_queue(connected, broker, helper, args, queue, event_type):
    assert await getattr(connected.events, helper)(*args) is True
    [payload] = _pending(broker, queue)
    assert payload["type"] == event_type
    others = [name for name, q in broker.queues.items() if q.pending and name != queue]
    assert others == []


async def test_order_updated_keeps_given_timestamp(connected, broker):
    await connected.events.order_updated("o1", "delivered", "2024-05-01T10:00:00+00:00")
    [payload] = _pending(broker, "order.updated")
    assert payload["updatedAt"] == "2024-05-01T10:00:00+00:00"


async def test_email_notification_defaults_data(connected, broker):
    await connected.events.email_notification("a@b.c", "Hi", "welcome")
    [payload] = _pending(broker, "email.notifications")
    assert payload["data"] == {}
    assert broker.published[0][1] == "email.send"


async def test_helpers_when_disconnected(service):
    assert await service.events.order_created("o1", "u1", 1.0, []) is False
    assert await service.events.inventory_updated("p1", 0) is False
