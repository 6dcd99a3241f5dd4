# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import os
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

logger = logging.getLogger(__name__)

COOKIE_NAME = os.getenv("CMS_COOKIE_NAME", "cms_session")
SESSION_TIMEOUT_SECONDS = int(os.getenv("CMS_SESSION_TIMEOUT", "1800"))  # 30 minutes of inactivity
DEFAULT_MAX_AGE_SECONDS = int(os.getenv("CMS_SESSION_MAX_AGE", "28800"))  # 8 hours, absolute

Clock = Callable[[], float]


@dataclass
class Session:
    authenticated: bool
    last_active_at: float


class SessionManager:
    """Server-side session state keyed by an opaque token.

    Sliding expiration: a session stays valid while
    ``now - last_active_at < timeout``, and every successful
    ``is_authenticated`` call moves ``last_active_at`` to now. In other
    words, asking whether a caller is authenticated keeps it authenticated.
    ``is_valid`` is the side-effect-free variant.

    An expired token is dropped on first sight and never becomes valid again;
    the client must log in and receive a new token.
    """

    def __init__(self, *, timeout: float = SESSION_TIMEOUT_SECONDS, clock: Clock = time.time) -> None:
        if timeout <= 0:
            raise ValueError("Session timeout must be positive")
        self.timeout = timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[str, Session] = {}

    def _live(self, token: str, now: float) -> Optional[Session]:
        """Return the session if authenticated and unexpired; forget it if expired. Lock held."""
        if not token:
            return None
        s = self._sessions.get(token)
        if s is None or not s.authenticated:
            return None
        if now - s.last_active_at >= self.timeout:
            del self._sessions[token]
            logger.info("Session expired after %.0fs of inactivity", now - s.last_active_at)
            return None
        return s

    def _purge(self, now: float) -> int:
        """Drop every expired session. Lock held."""
        stale = [t for t, s in self._sessions.items() if now - s.last_active_at >= self.timeout]
        for t in stale:
            del self._sessions[t]
        if stale:
            logger.debug("Purged %d expired sessions", len(stale))
        return len(stale)

    def login(self) -> str:
        """Create a session. Expired ones are swept here, so abandoned tokens don't accumulate."""
        token = secrets.token_urlsafe(32)
        with self._lock:
            now = self._clock()
            self._purge(now)
            self._sessions[token] = Session(authenticated=True, last_active_at=now)
        return token

    def is_valid(self, token: str) -> bool:
        with self._lock:
            return self._live(token, self._clock()) is not None

    def touch(self, token: str) -> bool:
        with self._lock:
            now = self._clock()
            s = self._live(token, now)
            if s is None:
                return False
            s.last_active_at = now
            return True

    def is_authenticated(self, token: str) -> bool:
        """Authorization check for mutations; refreshes activity on success."""
        return self.touch(token)

    def logout(self, token: str) -> None:
        with self._lock:
            s = self._sessions.pop(token or "", None)
            if s is not None:
                s.authenticated = False

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge(self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


class TokenSigner:
    """Signs session tokens for the cookie so a client cannot forge or alter one."""

    def __init__(self, secret: str, *, salt: str = "cms.session.v1", max_age: int = DEFAULT_MAX_AGE_SECONDS) -> None:
        if not secret:
            raise RuntimeError("Missing CMS_SECRET_KEY in environment")
        self.max_age = max_age
        self._s = URLSafeTimedSerializer(secret_key=secret, salt=salt)

    def sign(self, token: str) -> str:
        return self._s.dumps({"t": token})

    def unsign(self, value: str) -> Optional[str]:
        if not value:
            return None
        try:
            data = self._s.loads(value, max_age=self.max_age)
        except (BadSignature, BadTimeSignature):
            return None
        t = (data or {}).get("t") if isinstance(data, dict) else None
        t = str(t or "").strip()
        return t or None
