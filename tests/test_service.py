from aio_pika.exceptions import ChannelNotFoundEntity

from shopfinity.broker.service import MessageService

from fake_broker import drain


async def test_degraded_mode(service, broker):
    broker.connect_failures = 99
    assert await service.connect_with_retry(attempts=2, delay=0) is False

    assert not service.is_connected
    assert await service.publish("shopfinity.orders", "order.created", {}) is False
    assert await service.consume("order.created", lambda payload, message: None) is False
    assert await service.queue_info("order.created") is None
    assert service.health()["status"] == "unavailable"


async def test_reconnect_drops_registrations(connected, broker):
    seen = []
    await connected.consume("order.created", lambda payload, message: seen.append(payload))
    broker.connections[0].drop(ConnectionResetError("gone"))

    await connected.connect()
    assert connected.is_connected
    assert connected.consumers.registrations == []

    await connected.consume("order.created", lambda payload, message: seen.append(payload))
    await connected.events.order_created("o1", "u1", 1.0, [])
    await drain(connected)
    assert len(seen) == 1


async def test_health_reports_consumer_counts(connected):
    await connected.consume("order.created", lambda payload, message: None)
    await connected.events.order_created("o1", "u1", 1.0, [])
    await drain(connected)

    health = connected.health()
    assert health["status"] == "healthy"
    assert health["isConnected"] is True
    assert health["consumers"] == [{"queue": "order.created", "processed": 1, "failed": 0}]


async def test_disconnect_cancels_consumers(connected, broker):
    await connected.consume("order.created", lambda payload, message: None)
    await connected.disconnect()

    assert not connected.is_connected
    assert connected.consumers.registrations == []
    assert broker.queues["order.created"].consumers == {}


async def test_async_context_manager(broker, settings):
    async with MessageService(settings, connect_factory=broker.connect) as service:
        assert service.is_connected
        assert await service.events.inventory_updated("p1", 5) is True
    assert not service.is_connected
    assert broker.connections[0].is_closed


async def test_broker_closed_channel_reports_unavailable(connected, broker):
    seen = []
    await connected.consume("order.created", lambda payload, message: seen.append(payload))
    connected.connection.channel.close_by_broker(ChannelNotFoundEntity("no exchange 'shopfinity.returns'"))

    assert not connected.is_connected
    assert connected.health()["status"] == "unavailable"
    assert await connected.events.order_created("o1", "u1", 1.0, []) is False
    assert await connected.consume("order.updated", lambda payload, message: None) is False
    assert broker.queues["order.created"].consumers == {}
    assert seen == []
