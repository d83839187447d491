"""FastAPI dependencies shared by every service's routes."""

from uuid import uuid4

from fastapi import Header, Request

from shared.auth import Principal, Role
from shared.exceptions import ForbiddenError

CORRELATION_HEADER = "X-Correlation-Id"


def get_principal(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Principal:
    """Caller identity as forwarded by the gateway."""
    if not x_user_id:
        raise ForbiddenError("Missing X-User-Id header")
    try:
        role = Role((x_user_role or Role.CUSTOMER.value).lower())
    except ValueError:
        raise ForbiddenError(f"Unknown role: {x_user_role}") from None
    return Principal(user_id=x_user_id, role=role)


def get_correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or str(uuid4())


def service_for(request: Request, name: str):
    """The running service of the given name, as registered by the app factory."""
    return request.app.state.services[name]
