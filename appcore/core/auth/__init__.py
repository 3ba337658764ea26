from .context import AuthContext
from .models import Principal
from .nonce import NonceManager
from .provider import AuthError, get_auth_provider

__all__ = ["AuthContext", "AuthError", "NonceManager", "Principal", "get_auth_provider"]
