"""Error taxonomy shared by every Shopflow service.

Input and invariant violations are Protean's ``ValidationError`` and a
missing aggregate is Protean's ``ObjectNotFoundError``; the errors below
cover what the domain model does not. The reliable consumer classifies
all of them into ack / retry / dead-letter outcomes and the HTTP layer
maps them to status codes.
"""


class ShopflowError(Exception):
    """Base class for all Shopflow errors."""


class ForbiddenError(ShopflowError):
    """The caller is not allowed to perform the operation."""


class InvalidTransitionError(ShopflowError):
    """A status state machine rejected a transition."""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition from {_value(current)} to {_value(target)}")


class PublishUnavailable(ShopflowError):
    """The publisher could not hand an event to the broker."""


class ConsumerHandlerError(ShopflowError):
    """A consumed event's handler raised an unexpected exception."""

    def __init__(self, event_type: str, cause: BaseException):
        self.event_type = event_type
        self.cause = cause
        super().__init__(f"Handler for {event_type} failed: {cause!r}")


class MessageDecodeError(ShopflowError):
    """A consumed message body is not a valid event envelope."""


def error_details(exc: BaseException):
    """Loggable description of an error; Protean errors carry their messages."""
    messages = getattr(exc, "messages", None)
    return messages if messages is not None else str(exc)


def _value(status) -> str:
    return getattr(status, "value", str(status))
