"""Flask application factory and bootstrap.

This module provides the create_app() factory function for initializing
the broker with its blueprints, middleware, and configuration.

Gunicorn:
    gunicorn "idp_broker.flask_app:create_app()"
"""
from __future__ import annotations
import ipaddress
import logging
import os
from tempfile import gettempdir
from typing import Optional

from flask import Flask, abort, request
from flask_session import Session
from werkzeug.middleware.proxy_fix import ProxyFix

from idp_broker.config import AppConfig, load_settings
from idp_broker.core.sessions import ATTEMPT_STORE_EXTENSION, create_attempt_store


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(cfg: Optional[AppConfig] = None) -> Flask:
    """Create and configure Flask application."""
    cfg = cfg or load_settings()

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg
    app.config["DEMO_MODE"] = cfg.demo_mode

    _configure_logging(app, cfg)

    # Flask session configuration (server-side, holds in-flight login attempts)
    app.config["SECRET_KEY"] = cfg.secret_key
    app.config["SESSION_TYPE"] = os.environ.get("FLASK_SESSION_TYPE", "filesystem")
    if app.config["SESSION_TYPE"] == "filesystem":
        session_dir = os.environ.get("FLASK_SESSION_DIR") or os.path.join(gettempdir(), "idp_broker_flask_session")
        os.makedirs(session_dir, exist_ok=True)
        app.config["SESSION_FILE_DIR"] = session_dir

    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_SECURE"] = cfg.session_cookie_secure

    Session(app)

    # One-shot consume markers for in-flight login attempts (shared across workers)
    attempt_dir = os.environ.get("BROKER_ATTEMPT_DIR") or os.path.join(gettempdir(), "idp_broker_attempts")
    app.extensions[ATTEMPT_STORE_EXTENSION] = create_attempt_store(attempt_dir, cfg.auth_attempt_ttl)

    # Trust X-Forwarded-* headers from proxy so request.base_url is the public callback URL
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore

    trusted_proxy_networks = []
    for entry in cfg.trusted_proxy_ips.split(","):
        entry = entry.strip()
        if not entry:
            continue
        try:
            trusted_proxy_networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            app.logger.warning(f"Ignoring invalid TRUSTED_PROXY_IPS entry: {entry}")
            continue
    app.config["TRUSTED_PROXY_NETWORKS"] = trusted_proxy_networks

    from idp_broker.api import broker, errors, health

    app.register_blueprint(broker.bp)
    app.register_blueprint(health.bp)

    errors.register_error_handlers(app)
    _register_middleware(app, trusted_proxy_networks)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    app.logger.info(f"[flask_app] Mode={mode_label}; providers={','.join(sorted(cfg.providers)) or '-'}")
    if cfg.demo_mode:
        app.logger.warning("[flask_app] Demo mode active - do not deploy with demo credentials")

    return app


def _configure_logging(app: Flask, cfg: AppConfig) -> None:
    level = getattr(logging, cfg.log_level, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    logging.getLogger("idp_broker").setLevel(level)
    app.logger.setLevel(level)


def _register_middleware(app: Flask, trusted_proxy_networks: list):
    """Register before_request middleware."""

    @app.before_request
    def enforce_proxy_headers() -> None:
        """Validate proxy headers from trusted sources only."""
        original_remote = request.environ.get("werkzeug.proxy_fix.orig_remote_addr")
        if original_remote:
            try:
                address = ipaddress.ip_address(original_remote)
                if not any(address in network for network in trusted_proxy_networks):
                    abort(400, description="Untrusted proxy")
            except ValueError:
                abort(400, description="Invalid proxy address")

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for and "," in forwarded_for:
            abort(400, description="Multiple forwarded clients not permitted")
