class MessagingError(Exception):
    """Base class for errors raised by the messaging layer."""


class BrokerConnectionError(MessagingError):
    """The broker could not be reached, or rejected the credentials."""


class TopologyError(MessagingError):
    """An exchange, queue or binding could not be declared.

    Usually a queue left over from an earlier run with different arguments.
    The layer never migrates topology on its own.
    """


class NotConnectedError(MessagingError):
    """An operation needed an open channel and there was none."""
