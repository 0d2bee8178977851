import json
import re

import pytest

from shopfinity.broker.models import (
    Envelope,
    InventoryUpdatedEvent,
    OrderCreatedEvent,
    OrderUpdatedEvent,
    parse_event,
)
from shopfinity.common.ids import new_message_id, new_order_id

MESSAGE_ID = re.compile(r"^msg_\d+_[0-9a-z]{9}$")


def test_message_ids_are_unique_and_well_formed():
    ids = {new_message_id() for _ in range(500)}
    assert len(ids) == 500
    assert all(MESSAGE_ID.match(i) for i in ids)


def test_order_ids():
    assert re.match(r"^ORD-\d+-[0-9A-F]{4}$", new_order_id(), re.IGNORECASE)


def test_envelope_adds_timestamp_and_message_id():
    body = json.loads(Envelope.wrap({"orderId": "o1"}).to_json())
    assert body["orderId"] == "o1"
    assert MESSAGE_ID.match(body["messageId"])
    assert body["timestamp"].endswith("+00:00")


def test_envelope_fields_win_over_payload_keys():
    envelope = Envelope.wrap({"messageId": "caller-chosen", "timestamp": "yesterday", "x": 1})
    body = envelope.as_dict()
    assert body["messageId"] == envelope.message_id != "caller-chosen"
    assert body["timestamp"] != "yesterday"
    assert body["x"] == 1


def test_envelope_from_json_round_trip():
    original = Envelope.wrap({"a": [1, 2]})
    parsed = Envelope.from_json(original.to_json())
    assert parsed == original


@pytest.mark.parametrize(
    "raw", ['["not", "an", "object"]', '{"messageId": "m"}', '{"timestamp": "t"}'],
)
def test_envelope_from_json_rejects_malformed(raw):
    with pytest.raises(ValueError):
        Envelope.from_json(raw)


def test_envelope_from_json_rejects_invalid_json():
    with pytest.raises(ValueError):
        Envelope.from_json("{nope")


def test_event_payload_is_camel_case_with_type():
    event = OrderCreatedEvent(order_id="o1", user_id="u1", total=42.5, items=[{"productId": "p1", "quantity": 2}])
    assert event.to_payload() == {
        "type": "ORDER_CREATED",
        "orderId": "o1",
        "userId": "u1",
        "total": 42.5,
        "items": [{"productId": "p1", "quantity": 2}],
    }


def test_event_from_payload_ignores_envelope_fields():
    payload = dict(InventoryUpdatedEvent("p7", 3).to_payload(), messageId="m", timestamp="t")
    event = InventoryUpdatedEvent.from_payload(payload)
    assert (event.product_id, event.new_stock) == ("p7", 3)


def test_event_from_payload_checks_type():
    with pytest.raises(ValueError):
        OrderUpdatedEvent.from_payload({"type": "ORDER_CREATED", "orderId": "o1", "status": "x"})


def test_parse_event():
    payload = OrderUpdatedEvent(order_id="o1", status="shipped").to_payload()
    event = parse_event(payload)
    assert isinstance(event, OrderUpdatedEvent)
    assert event.status == "shipped"
    assert parse_event({"hello": "world"}) is None
