"""Broker callback route.

Providers redirect the browser back to:

    GET /realms/<realm>/broker/<provider_id>/endpoint?state=...&code=...
    GET /realms/<realm>/broker/<provider_id>/endpoint?state=...&error=...

The exact absolute URL of this endpoint (without query string) is sent as
redirect_uri in the token exchange and must match the URL registered with
the provider.
"""
from __future__ import annotations

from flask import Blueprint, abort, current_app, g, request

from idp_broker.core.callback import CallbackStateMachine
from idp_broker.core.exceptions import ConfigurationError
from idp_broker.core.mappers import build_mapper
from idp_broker.core.models import AuthenticationAttempt, CallbackRequest
from idp_broker.core.outcome import InternalError
from idp_broker.core.sessions import FlaskSessionRegistry
from idp_broker.core.token_exchange import TokenExchangeClient

from .reporter import OutcomeReporter

bp = Blueprint("broker", __name__)


class FlaskRequestContext:
    """RequestContext backed by the active Flask request."""

    @property
    def redirect_uri(self) -> str:
        return request.base_url

    def bind_attempt(self, attempt: AuthenticationAttempt) -> None:
        g.authentication_attempt = attempt


def build_state_machine(provider_id: str) -> CallbackStateMachine:
    """Assemble the state machine for a configured provider (404 if unknown).

    Raises:
        ConfigurationError: If the provider names an unregistered mapper
    """
    cfg = current_app.config["APP_CONFIG"]
    provider = cfg.get_provider(provider_id.lower())
    if provider is None:
        abort(404)

    return CallbackStateMachine(
        provider=provider,
        mapper=build_mapper(provider.mapper, provider.provider_id, provider.mapper_settings),
        sessions=current_app.config.get("BROKER_SESSION_REGISTRY") or FlaskSessionRegistry(cfg.auth_attempt_ttl),
        token_client=current_app.config.get("BROKER_TOKEN_CLIENT") or TokenExchangeClient(cfg.token_exchange_timeout),
        context=FlaskRequestContext(),
    )


@bp.route("/realms/<realm>/broker/<provider_id>/endpoint", methods=["GET"])
def callback(realm: str, provider_id: str):
    """Handle the provider redirect after the user authenticated (or not)."""
    cfg = current_app.config["APP_CONFIG"]
    provider_id = provider_id.lower()

    try:
        machine = build_state_machine(provider_id)
    except ConfigurationError:
        current_app.logger.exception(f"[Broker] Provider {provider_id} is misconfigured")
        outcome = InternalError(reason="ConfigurationError")
    else:
        outcome = machine.handle_callback(CallbackRequest.from_args(request.args))
    current_app.logger.info(f"[Broker] Provider: {provider_id}, realm: {realm}, outcome: {type(outcome).__name__}")

    reporter = current_app.config.get("BROKER_OUTCOME_REPORTER") or OutcomeReporter(cfg)
    return reporter.report(outcome, realm, provider_id)
