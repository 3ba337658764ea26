from __future__ import annotations

from typing import Any, Dict, Optional


class AppCoreError(Exception):
    """
    Base for every error the dispatch boundary knows how to shape.

    `public_message` is what a caller sees when debug is off; `str(e)` is the
    detailed message that is only echoed back in debug mode.
    """

    code = "error"
    public_message = "An error occurred"

    def __init__(self, message: Optional[str] = None, *, context: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.public_message)
        self.context = dict(context or {})


class AuthenticationError(AppCoreError):
    code = "authentication"
    public_message = "You must be logged in"


class AuthorizationError(AppCoreError):
    code = "authorization"
    public_message = "Permission denied"


class ValidationError(AppCoreError):
    code = "validation"
    public_message = "Invalid request"

    def __init__(self, message: Optional[str] = None, *, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context=context)
        # validation messages are safe to show ("Security check failed", ...)
        if message:
            self.public_message = message


class ExecutionError(AppCoreError):
    code = "execution"
    public_message = "An error occurred while loading data"


class CacheError(AppCoreError):
    """Raised by cache stores; CacheManager converts it into a miss."""

    code = "cache"
    public_message = "Cache unavailable"
