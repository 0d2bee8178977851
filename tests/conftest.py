import pytest

from shopfinity.broker.service import MessageService
from shopfinity.config import RabbitSettings

from fake_broker import FakeBroker


@pytest.fixture
def broker():
    return FakeBroker()


@pytest.fixture
def settings():
    return RabbitSettings(connect_attempts=3, connect_delay=0)


@pytest.fixture
def service(broker, settings):
    return MessageService(settings, connect_factory=broker.connect)


@pytest.fixture
async def connected(service):
    await service.connect()
    yield service
    await service.disconnect()
