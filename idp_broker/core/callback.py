"""Broker callback state machine.

One pass per provider redirect:

    Received → SessionValidated → (TokenExchanged → IdentityMapped) → Outcome

Collaborators are passed in explicitly; nothing persists between calls.
Every exception raised past the error fast path is classified here and
turned into an Outcome, so callers never need to catch.
"""
from __future__ import annotations
import dataclasses
import logging
from typing import Protocol

from idp_broker.config.settings import ProviderConfig

from .exceptions import BrokerSecurityError, InvalidProfileError, SessionResolutionError
from .mappers.base import IdentityMapper
from .models import AuthenticationAttempt, CallbackRequest
from .outcome import (
    ACCESS_DENIED,
    Cancelled,
    InternalError,
    InvalidRequest,
    Outcome,
    SecurityViolation,
    SessionResolutionFailure,
    Success,
    UpstreamError,
)
from .sessions import AuthenticationSessionRegistry
from .token_exchange import TokenExchangeClient

logger = logging.getLogger(__name__)


class RequestContext(Protocol):
    """Per-request context supplied by the web layer."""

    @property
    def redirect_uri(self) -> str:
        """Absolute URL of the callback endpoint (no query string)."""
        ...

    def bind_attempt(self, attempt: AuthenticationAttempt) -> None:
        """Expose the resolved attempt to the rest of the request."""
        ...


class CallbackStateMachine:
    """Drives a provider redirect to exactly one Outcome."""

    def __init__(
        self,
        provider: ProviderConfig,
        mapper: IdentityMapper,
        sessions: AuthenticationSessionRegistry,
        token_client: TokenExchangeClient,
        context: RequestContext,
    ):
        self.provider = provider
        self.mapper = mapper
        self.sessions = sessions
        self.token_client = token_client
        self.context = context

    def handle_callback(self, request: CallbackRequest) -> Outcome:
        provider_id = self.provider.provider_id
        logger.info(
            "Broker callback for %s. State: %s. Code present: %s. Error: %s",
            provider_id,
            request.state,
            request.code is not None,
            request.error,
        )

        if request.error is not None:
            if request.error == ACCESS_DENIED:
                logger.warning("%s for broker login %s", ACCESS_DENIED, provider_id)
                return Cancelled()
            logger.error("%s for broker login %s", request.error, provider_id)
            return UpstreamError(reason=request.error)

        try:
            attempt = self.sessions.resolve(request.state, provider_id)
            self.context.bind_attempt(attempt)
            logger.info("Authentication attempt bound for %s (realm %s)", provider_id, attempt.realm)

            if request.code is not None:
                return self._complete(request.code, attempt)
        except SessionResolutionError as e:
            return SessionResolutionFailure(status_code=e.status_code, message=e.message)
        except InvalidProfileError as e:
            logger.error("Broker callback for %s rejected a malformed profile (%s)", provider_id, e.kind, exc_info=True)
            return InvalidRequest(kind=e.kind)
        except BrokerSecurityError as e:
            logger.error("Broker callback for %s failed security policy (%s)", provider_id, e, exc_info=True)
            return SecurityViolation(kind=e.kind)
        except Exception as e:
            logger.exception("Failed to complete broker callback for %s", provider_id)
            return InternalError(reason=type(e).__name__)

        logger.error("Broker callback for %s carried neither code nor error", provider_id)
        return InternalError(reason="missing_code")

    def _complete(self, code: str, attempt: AuthenticationAttempt) -> Success:
        response = self.token_client.exchange(
            code,
            self.provider.token_url,
            self.provider.client_id,
            self.provider.client_secret,
            self.context.redirect_uri,
        )
        logger.info("Token response from %s: %s", self.provider.provider_id, response)

        identity = self.mapper.map(response)

        token = identity.token
        if self.provider.store_token and token is None:
            token = response

        identity = dataclasses.replace(
            identity,
            token=token,
            provider_config=self.provider,
            provider=self.mapper,
            attempt=attempt,
        )
        return Success(identity=identity)
