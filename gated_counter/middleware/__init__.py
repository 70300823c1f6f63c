from .errors import install_error_handlers
from .request_id import RequestIdMiddleware

__all__ = ["install_error_handlers", "RequestIdMiddleware"]
