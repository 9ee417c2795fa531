"""Turns a callback Outcome into an HTTP response and an audit event."""
from __future__ import annotations
import logging
from typing import Callable

from flask import jsonify, redirect, render_template, session

from idp_broker.config.settings import AppConfig
from idp_broker.core import audit
from idp_broker.core.outcome import (
    Cancelled,
    InvalidRequest,
    Outcome,
    SecurityViolation,
    SessionResolutionFailure,
    Success,
)

from .errors import _wants_json

logger = logging.getLogger(__name__)

BROKERED_IDENTITY_KEY = "brokered_identity"

# Message keys follow the identity-provider message bundle naming
MSG_UNEXPECTED_ERROR = "identityProviderUnexpectedErrorMessage"
MSG_MISSING_EMAIL = "identityProviderMissingEmailMessage"
MSG_EMAIL_DOMAIN = "identityProviderEmailDomainRejectedMessage"

MESSAGES = {
    MSG_UNEXPECTED_ERROR: "Unexpected error when authenticating with identity provider.",
    MSG_MISSING_EMAIL: (
        "Your identity provider profile is missing an email address. "
        "Add an email address to your social network profile and try again."
    ),
    MSG_EMAIL_DOMAIN: "The email domain of your identity provider profile is not allowed.",
}


def message_key_for(outcome: Outcome) -> str:
    """Select the user-facing message for a failure variant."""
    if isinstance(outcome, InvalidRequest):
        return MSG_MISSING_EMAIL
    if isinstance(outcome, SecurityViolation):
        return MSG_EMAIL_DOMAIN
    return MSG_UNEXPECTED_ERROR


def _audit_details(outcome: Outcome) -> dict:
    details = {"outcome": type(outcome).__name__}
    for attr in ("kind", "reason"):
        value = getattr(outcome, attr, None)
        if value:
            details[attr] = value
    return details


class OutcomeReporter:
    """Renders outcomes; emits one audit event per failure outcome."""

    def __init__(self, config: AppConfig, audit_log: Callable[..., bool] | None = None):
        self.config = config
        self.audit_log = audit_log or audit.safe_log_login_event

    def report(self, outcome: Outcome, realm: str, provider_id: str):
        if isinstance(outcome, Success):
            return self._success(outcome)

        if isinstance(outcome, Cancelled):
            logger.info("Broker login cancelled at %s", provider_id)
            return redirect(self.config.login_cancelled_url)

        if isinstance(outcome, SessionResolutionFailure):
            return self._render_error(outcome.status_code, outcome.message, None, title="Login Failed")

        if outcome.is_failure:
            self.audit_log(
                "login",
                realm=realm,
                provider_id=provider_id,
                error=audit.IDENTITY_PROVIDER_LOGIN_FAILURE,
                details=_audit_details(outcome),
                success=False,
            )
        key = message_key_for(outcome)
        return self._render_error(502, MESSAGES[key], key, title="Bad Gateway")

    def _success(self, outcome: Success):
        identity = outcome.identity
        store_token = bool(identity.provider_config and identity.provider_config.store_token)
        session[BROKERED_IDENTITY_KEY] = identity.to_dict(include_token=store_token)

        target = self.config.post_broker_login_url
        if identity.attempt and identity.attempt.continuation_url:
            target = identity.attempt.continuation_url
        return redirect(target)

    def _render_error(self, status: int, message: str, message_key: str | None, title: str):
        if _wants_json():
            payload = {"error": title, "message": message}
            if message_key:
                payload["message_key"] = message_key
            return jsonify(payload), status
        return render_template(
            "errors/broker_error.html",
            title=title,
            message=message,
        ), status
