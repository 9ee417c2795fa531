"""Default mapper for providers returning profile fields as JSON."""
from __future__ import annotations
import json
from typing import Any, Optional

from idp_broker.core.exceptions import InvalidProfileError
from idp_broker.core.models import FederatedIdentity

from .base import IdentityMapper

_MISSING = object()


def _lookup(data: dict, path: str) -> Any:
    """Resolve a dotted path ("user.id") inside nested objects."""
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _as_text(value: Any) -> Optional[str]:
    if value is _MISSING or value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return str(value).lower()
    text = str(value).strip()
    return text or None


class JsonIdentityMapper(IdentityMapper):
    """Maps a JSON object token response using configurable field names.

    Numeric identifiers are normalized to strings. Fields listed in
    attribute_fields are copied into FederatedIdentity.attributes when
    present and omitted otherwise.
    """

    @property
    def provider_name(self) -> str:
        return "json"

    def map(self, token_response: str) -> FederatedIdentity:
        data = self._parse(token_response)
        cfg = self.settings

        identifier = _as_text(_lookup(data, cfg.id_field))
        if identifier is None:
            raise InvalidProfileError(
                "missing_identifier",
                f"{self.provider_id} response has no '{cfg.id_field}'",
            )

        email = self.check_email(_as_text(_lookup(data, cfg.email_field)))

        attributes = {}
        for name in cfg.attribute_fields:
            value = _lookup(data, name)
            if value is not _MISSING and value is not None:
                attributes[name] = value

        return FederatedIdentity(
            id=identifier,
            email=email,
            username=_as_text(_lookup(data, cfg.username_field)) or email,
            first_name=_as_text(_lookup(data, cfg.first_name_field)),
            last_name=_as_text(_lookup(data, cfg.last_name_field)),
            attributes=attributes,
        )

    def _parse(self, token_response: str) -> dict:
        try:
            data = json.loads(token_response)
        except (TypeError, ValueError, RecursionError) as exc:
            raise InvalidProfileError(
                "malformed_response",
                f"{self.provider_id} token response is not JSON",
            ) from exc
        if not isinstance(data, dict):
            raise InvalidProfileError(
                "malformed_response",
                f"{self.provider_id} token response is not a JSON object",
            )
        return data
