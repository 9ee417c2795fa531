"""Callback outcomes.

Exactly one outcome is produced per callback. Variants:

    Success                   identity mapped and finalized
    Cancelled                 user denied access at the provider
    UpstreamError             provider redirected back with another error code
    InvalidRequest            malformed response or missing required attribute
    SecurityViolation         attribute rejected by provider policy
    InternalError             transport failure or anything unexpected
    SessionResolutionFailure  registry rejected the state token (returned verbatim)

The reporter audits only variants with ``is_failure`` set.
"""
from __future__ import annotations
from dataclasses import dataclass

from idp_broker.core.models import FederatedIdentity

ACCESS_DENIED = "access_denied"


class Outcome:
    """Base class for callback outcomes."""

    is_failure = False


@dataclass(frozen=True)
class Success(Outcome):
    identity: FederatedIdentity


@dataclass(frozen=True)
class Cancelled(Outcome):
    pass


@dataclass(frozen=True)
class UpstreamError(Outcome):
    reason: str

    is_failure = True


@dataclass(frozen=True)
class InvalidRequest(Outcome):
    kind: str = "malformed_response"

    is_failure = True


@dataclass(frozen=True)
class SecurityViolation(Outcome):
    kind: str = "email_domain_rejected"

    is_failure = True


@dataclass(frozen=True)
class InternalError(Outcome):
    reason: str = "unexpected_error"

    is_failure = True


@dataclass(frozen=True)
class SessionResolutionFailure(Outcome):
    status_code: int
    message: str
