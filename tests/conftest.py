"""Pytest shared fixtures for broker tests."""
import json
import os
import pathlib
import sys
import time
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any app imports
os.environ.setdefault("DEMO_MODE", "true")
os.environ.setdefault("TRUSTED_PROXY_IPS", "127.0.0.1/32,::1/128")

import pytest
import requests

from idp_broker.config.settings import AppConfig, ProviderConfig
from idp_broker.core import audit
from idp_broker.core.callback import CallbackStateMachine
from idp_broker.core.exceptions import SessionResolutionError
from idp_broker.core.mappers import JsonIdentityMapper, MapperSettings
from idp_broker.core.models import AuthenticationAttempt
from idp_broker.core.sessions import ATTEMPT_STORE_EXTENSION, AuthenticationSessionRegistry, SESSION_KEY, attempt_key
from idp_broker.flask_app import create_app

TOKEN_URL = "https://social.example.com/oauth/token"


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from hitting live token endpoints.

    Tests marked with @pytest.mark.integration may perform real HTTP calls.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _stub_post(url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP POST in unit test: {url}")

    monkeypatch.setattr(requests, "post", _stub_post)


class StubResponse:
    def __init__(self, payload, status_code: int = 200):
        self.status_code = status_code
        self.text = payload if isinstance(payload, str) else json.dumps(payload)
        self.url = TOKEN_URL

    def json(self):
        return json.loads(self.text)


@pytest.fixture()
def token_endpoint(monkeypatch):
    """Stub provider token endpoint; records every POST it receives."""

    class TokenEndpoint:
        def __init__(self):
            self.calls = []
            self.response = StubResponse({"id": "42", "email": "u@example.com"})
            self.error: Optional[Exception] = None

        def respond(self, payload, status_code: int = 200):
            self.response = StubResponse(payload, status_code)

        def fail(self, error: Exception):
            self.error = error

        def post(self, url, *args, **kwargs):
            self.calls.append({"url": url, **kwargs})
            if self.error is not None:
                raise self.error
            return self.response

    endpoint = TokenEndpoint()
    monkeypatch.setattr(requests, "post", endpoint.post)
    return endpoint


# ─────────────────────────────────────────────────────────────────────────────
# Collaborator Doubles
# ─────────────────────────────────────────────────────────────────────────────
class InMemoryRegistry(AuthenticationSessionRegistry):
    """At-most-once registry kept in a dict."""

    def __init__(self):
        self.attempts = {}
        self.resolved = []

    def register(self, attempt):
        self.attempts[attempt.state] = attempt

    def resolve(self, state, provider_id):
        attempt = self.attempts.pop(state, None) if state else None
        if attempt is None:
            raise SessionResolutionError(400, "Invalid or expired login attempt")
        self.resolved.append(state)
        return attempt


class StubTokenClient:
    """TokenExchangeClient double returning a canned body or raising."""

    def __init__(self, body: str = '{"id":"42","email":"u@example.com"}', error: Optional[Exception] = None):
        self.body = body
        self.error = error
        self.calls = []

    def exchange(self, code, token_url, client_id, client_secret, redirect_uri):
        self.calls.append((code, token_url, client_id, client_secret, redirect_uri))
        if self.error is not None:
            raise self.error
        return self.body


class StubContext:
    redirect_uri = "https://broker.example.com/realms/demo/broker/social/endpoint"

    def __init__(self):
        self.bound = []

    def bind_attempt(self, attempt):
        self.bound.append(attempt)


def make_attempt(state: str = "S1", provider_id: str = "social", **overrides) -> AuthenticationAttempt:
    fields = dict(
        state=state,
        realm="demo",
        provider_id=provider_id,
        client_id="relying-app",
        continuation_url="/first-broker-login",
        created_at=time.time(),
    )
    fields.update(overrides)
    return AuthenticationAttempt(**fields)


def make_provider(**overrides) -> ProviderConfig:
    fields = dict(
        provider_id="social",
        token_url=TOKEN_URL,
        client_id="broker-client",
        client_secret="broker-secret",
        store_token=False,
        mapper="json",
        mapper_settings=MapperSettings(),
    )
    fields.update(overrides)
    return ProviderConfig(**fields)


@pytest.fixture()
def registry():
    reg = InMemoryRegistry()
    reg.register(make_attempt())
    return reg


@pytest.fixture()
def build_machine(registry):
    """Factory: state machine with in-memory collaborators."""

    def _build(provider: Optional[ProviderConfig] = None, token_client=None, mapper=None, context=None):
        provider = provider or make_provider()
        return CallbackStateMachine(
            provider=provider,
            mapper=mapper or JsonIdentityMapper(provider.provider_id, provider.mapper_settings),
            sessions=registry,
            token_client=token_client or StubTokenClient(),
            context=context or StubContext(),
        )

    return _build


# ─────────────────────────────────────────────────────────────────────────────
# Audit
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def temp_audit_dir(monkeypatch, tmp_path):
    """Provide isolated audit directory for each test."""
    audit_dir = tmp_path / "audit"
    audit_file = audit_dir / "broker-events.jsonl"

    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_file)
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")

    yield audit_dir, audit_file


def read_audit_events(audit_file: pathlib.Path) -> list[dict]:
    if not audit_file.exists():
        return []
    return [json.loads(line) for line in audit_file.read_text().splitlines() if line.strip()]


# ─────────────────────────────────────────────────────────────────────────────
# Flask Test Client
# ─────────────────────────────────────────────────────────────────────────────
def make_app_config(**overrides) -> AppConfig:
    fields = dict(
        demo_mode=True,
        secret_key="test-secret-key",
        session_cookie_secure=False,
        providers={"social": make_provider()},
        post_broker_login_url="/after-broker-login",
        login_cancelled_url="/login?cancelled=1",
    )
    fields.update(overrides)
    return AppConfig(**fields)


@pytest.fixture()
def app(monkeypatch, tmp_path, temp_audit_dir):
    monkeypatch.setenv("FLASK_SESSION_DIR", str(tmp_path / "sessions"))
    monkeypatch.setenv("BROKER_ATTEMPT_DIR", str(tmp_path / "attempts"))
    flask_app = create_app(make_app_config())
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture()
def client(app):
    with app.test_client() as client:
        yield client


def register_attempt(client, attempt: AuthenticationAttempt) -> None:
    """Seed an in-flight login attempt into the broker session."""
    with client.session_transaction() as session:
        attempts = dict(session.get(SESSION_KEY) or {})
        attempts[attempt.state] = attempt.to_dict()
        session[SESSION_KEY] = attempts
    client.application.extensions[ATTEMPT_STORE_EXTENSION].set(attempt_key(attempt.state), True)


CALLBACK_PATH = "/realms/demo/broker/social/endpoint"
