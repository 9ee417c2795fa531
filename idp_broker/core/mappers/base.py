"""Identity mapper contract.

Every provider supplies a mapper that turns the raw token endpoint response
into a FederatedIdentity. Profile field names differ per social network, but
every mapper must:

- require a non-empty account identifier (InvalidProfileError otherwise)
- apply the email policy: EmailDomainRejectedError for a disallowed domain,
  InvalidProfileError("missing_email") when no usable email exists and one
  is required
- map absent optional attributes to None instead of failing
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from idp_broker.core.exceptions import EmailDomainRejectedError, InvalidProfileError
from idp_broker.core.models import FederatedIdentity


@dataclass
class MapperSettings:
    """Per-provider mapping options (loaded from <ID>_* environment variables)."""
    id_field: str = "id"
    email_field: str = "email"
    username_field: str = "username"
    first_name_field: str = "first_name"
    last_name_field: str = "last_name"
    email_required: bool = True
    allowed_email_domains: list[str] = field(default_factory=list)
    attribute_fields: list[str] = field(default_factory=list)


class IdentityMapper(ABC):
    """Abstract base class for provider identity mappers."""

    def __init__(self, provider_id: str, settings: Optional[MapperSettings] = None):
        self.provider_id = provider_id
        self.settings = settings or MapperSettings()

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Mapper identifier used in provider configuration (e.g. 'json')."""
        pass

    @abstractmethod
    def map(self, token_response: str) -> FederatedIdentity:
        """Parse a raw token response into a FederatedIdentity.

        Raises:
            InvalidProfileError: Malformed response or missing required attribute
            EmailDomainRejectedError: Email domain not allowed for this provider
        """
        pass

    def check_email(self, email: Optional[str]) -> Optional[str]:
        """Apply the email policy and return the normalized address."""
        if not email:
            if self.settings.email_required:
                raise InvalidProfileError("missing_email", f"{self.provider_id} profile has no email")
            return None

        email = email.strip()
        local, sep, domain = email.rpartition("@")
        if not sep or not local or not domain or "@" in local:
            raise InvalidProfileError("missing_email", f"{self.provider_id} profile email is not usable")

        domain = domain.lower()
        allowed = [d.strip().lower().lstrip("@") for d in self.settings.allowed_email_domains if d.strip()]
        if allowed and not any(domain == d or domain.endswith("." + d) for d in allowed):
            raise EmailDomainRejectedError(domain)
        return f"{local}@{domain}"
