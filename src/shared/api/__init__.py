from shared.api.dependencies import get_correlation_id, get_principal, service_for
from shared.api.errors import register_error_handlers
from shared.api.middleware import correlation_id_middleware

__all__ = ["correlation_id_middleware", "get_correlation_id", "get_principal", "register_error_handlers", "service_for"]
