from .auth import AuthMiddleware
from .error_shaping import SafeErrorMiddleware
from .request_context import RequestContextMiddleware

__all__ = ["AuthMiddleware", "RequestContextMiddleware", "SafeErrorMiddleware"]
