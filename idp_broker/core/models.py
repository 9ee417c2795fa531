"""Value types passed through the broker callback."""
from __future__ import annotations
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from idp_broker.config.settings import ProviderConfig
    from idp_broker.core.mappers.base import IdentityMapper


def _present(value: Optional[str]) -> Optional[str]:
    """Treat empty query parameters as absent."""
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class CallbackRequest:
    """Query parameters of a single provider redirect."""
    state: Optional[str] = None
    code: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_args(cls, args: Mapping[str, str]) -> "CallbackRequest":
        """Build from request query arguments (state, code, error)."""
        return cls(
            state=_present(args.get("state")),
            code=_present(args.get("code")),
            error=_present(args.get("error")),
        )


@dataclass(frozen=True)
class AuthenticationAttempt:
    """In-flight login attempt, owned by the session registry."""
    state: str
    realm: str
    provider_id: str
    client_id: str = ""
    continuation_url: str = ""
    created_at: float = field(default_factory=time.time)
    notes: dict[str, Any] = field(default_factory=dict)

    def is_expired(self, ttl: int, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now - self.created_at > ttl

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state,
            "realm": self.realm,
            "provider_id": self.provider_id,
            "client_id": self.client_id,
            "continuation_url": self.continuation_url,
            "created_at": self.created_at,
            "notes": dict(self.notes),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuthenticationAttempt":
        return cls(
            state=data["state"],
            realm=data["realm"],
            provider_id=data["provider_id"],
            client_id=data.get("client_id", ""),
            continuation_url=data.get("continuation_url", ""),
            created_at=float(data.get("created_at", 0)),
            notes=dict(data.get("notes") or {}),
        )


@dataclass(frozen=True)
class FederatedIdentity:
    """Canonical identity produced from a provider token response.

    Mappers fill the profile fields; the callback state machine finalizes the
    record with the provider references and the resolved attempt using
    dataclasses.replace, so an instance is never mutated after creation.
    """
    id: str
    email: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    attributes: dict[str, Any] = field(default_factory=dict)
    token: Optional[str] = None

    # Set on finalization
    provider_config: Optional["ProviderConfig"] = None
    provider: Optional["IdentityMapper"] = None
    attempt: Optional[AuthenticationAttempt] = None

    @property
    def display_name(self) -> Optional[str]:
        parts = [p for p in (self.first_name, self.last_name) if p]
        if parts:
            return " ".join(parts)
        return self.username

    def to_dict(self, include_token: bool = False) -> dict[str, Any]:
        """Session-safe summary (no config objects, token only on request)."""
        data: dict[str, Any] = {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "attributes": dict(self.attributes),
            "provider_id": self.provider_config.provider_id if self.provider_config else None,
            "realm": self.attempt.realm if self.attempt else None,
        }
        if include_token and self.token is not None:
            data["token"] = self.token
        return data
