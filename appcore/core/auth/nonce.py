from __future__ import annotations

import base64
import hashlib
import hmac
import math
import time
from typing import Callable, Optional


class NonceManager:
    """
    Per-session security tokens bound to an action class.

    A token is HMAC-SHA256(secret, "<action>|<session>|<tick>") where a tick
    is half the lifetime; a token stays valid for the current and previous
    tick, so it lives between ttl/2 and ttl seconds.
    """

    def __init__(self, secret: str, ttl_seconds: int = 86400, clock: Callable[[], float] = time.time):
        if not secret:
            raise ValueError("nonce secret is required")
        if ttl_seconds < 2:
            raise ValueError("nonce ttl must be at least 2 seconds")
        self._key = secret.encode("utf-8")
        self.ttl_seconds = int(ttl_seconds)
        self._clock = clock

    def _tick(self) -> int:
        return int(math.ceil(self._clock() / (self.ttl_seconds / 2)))

    def _sign(self, action: str, session_id: str, tick: int) -> str:
        payload = f"{action}|{session_id}|{tick}".encode("utf-8")
        sig = hmac.new(self._key, payload, hashlib.sha256).digest()
        return base64.urlsafe_b64encode(sig[:18]).decode("utf-8")

    def create(self, action: str, session_id: str) -> str:
        return self._sign(action, session_id, self._tick())

    def verify(self, token: Optional[str], action: str, session_id: str) -> int:
        """Return 1 (current tick), 2 (previous tick) or 0 when invalid."""
        if not token:
            return 0
        tick = self._tick()
        for age, t in ((1, tick), (2, tick - 1)):
            if hmac.compare_digest(self._sign(action, session_id, t), token):
                return age
        return 0
