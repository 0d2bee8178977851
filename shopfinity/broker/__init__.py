from shopfinity.config import RabbitSettings
from shopfinity.broker.consumer import ConsumerRegistration, ConsumerRegistry, DeliveryOutcome
from shopfinity.broker.connection import ConnectionManager
from shopfinity.broker.events import DomainEvents
from shopfinity.broker.exceptions import (
    BrokerConnectionError,
    MessagingError,
    NotConnectedError,
    TopologyError,
)
from shopfinity.broker.models import Envelope, parse_event
from shopfinity.broker.publisher import Publisher
from shopfinity.broker.service import MessageService

__all__ = [
    "BrokerConnectionError",
    "ConnectionManager",
    "ConsumerRegistration",
    "ConsumerRegistry",
    "DeliveryOutcome",
    "DomainEvents",
    "Envelope",
    "MessageService",
    "MessagingError",
    "NotConnectedError",
    "Publisher",
    "RabbitSettings",
    "TopologyError",
    "parse_event",
]
