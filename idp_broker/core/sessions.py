"""Registry of in-flight login attempts, keyed by the opaque state token."""
from __future__ import annotations
import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Optional

from cachelib import BaseCache, FileSystemCache

from .exceptions import SessionResolutionError
from .models import AuthenticationAttempt

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPT_TTL = 1800
SESSION_KEY = "broker_attempts"
ATTEMPT_STORE_EXTENSION = "broker_attempt_store"


def attempt_key(state: str) -> str:
    return f"broker_attempt:{state}"


def create_attempt_store(directory: str, ttl: int = DEFAULT_ATTEMPT_TTL) -> BaseCache:
    """Filesystem store shared by all workers; threshold=0 disables pruning."""
    return FileSystemCache(directory, threshold=0, default_timeout=ttl)


class AuthenticationSessionRegistry(ABC):
    """Looks up and validates login attempts.

    resolve() must succeed at most once per state token: the attempt is
    consumed on resolution so a replayed callback fails.
    """

    @abstractmethod
    def register(self, attempt: AuthenticationAttempt) -> None:
        """Store an attempt created at login initiation."""
        pass

    @abstractmethod
    def resolve(self, state: Optional[str], provider_id: str) -> AuthenticationAttempt:
        """Consume and return the attempt for a state token.

        Raises:
            SessionResolutionError: Missing, unknown, consumed, expired, or foreign state
        """
        pass


class FlaskSessionRegistry(AuthenticationSessionRegistry):
    """Attempts stored in the server-side Flask session (Flask-Session).

    The session holds the attempt data and binds it to the browser. A
    cachelib store holds one key per state, and deleting that key is the
    consume step: cachelib's delete() returns True for exactly one caller,
    so concurrent callbacks loading the same session cannot both resolve.

    Must be used inside a request context.
    """

    def __init__(self, ttl: Optional[int] = None, store: Optional[BaseCache] = None):
        if ttl is None:
            ttl = int(os.environ.get("AUTH_ATTEMPT_TTL", DEFAULT_ATTEMPT_TTL))
        self.ttl = ttl
        self._store = store

    @property
    def store(self) -> BaseCache:
        if self._store is not None:
            return self._store
        from flask import current_app

        return current_app.extensions[ATTEMPT_STORE_EXTENSION]

    def register(self, attempt: AuthenticationAttempt) -> None:
        from flask import session

        attempts = dict(session.get(SESSION_KEY) or {})
        attempts[attempt.state] = attempt.to_dict()
        session[SESSION_KEY] = attempts
        self.store.set(attempt_key(attempt.state), True, timeout=self.ttl)

    def resolve(self, state: Optional[str], provider_id: str) -> AuthenticationAttempt:
        from flask import session

        if not state:
            raise SessionResolutionError(400, "Missing state parameter")

        attempts = dict(session.get(SESSION_KEY) or {})
        raw = attempts.pop(state, None)
        # Consume before validating so a rejected state cannot be retried
        session[SESSION_KEY] = attempts

        if raw is None:
            logger.warning("No login attempt for state (unknown or already used)")
            raise SessionResolutionError(400, "Invalid or expired login attempt")

        if not self.store.delete(attempt_key(state)):
            logger.warning("Login attempt for provider %s already consumed by another callback", provider_id)
            raise SessionResolutionError(400, "Invalid or expired login attempt")

        attempt = AuthenticationAttempt.from_dict(raw)

        if attempt.provider_id != provider_id:
            logger.warning(
                "Login attempt for provider %s received on %s endpoint",
                attempt.provider_id,
                provider_id,
            )
            raise SessionResolutionError(400, "Login attempt does not belong to this identity provider")

        if attempt.is_expired(self.ttl, now=time.time()):
            logger.info("Login attempt expired for provider %s", provider_id)
            raise SessionResolutionError(400, "Invalid or expired login attempt")

        return attempt
