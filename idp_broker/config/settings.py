"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from idp_broker.core.exceptions import ConfigurationError
from idp_broker.core.mappers.base import MapperSettings
from idp_broker.core.mappers.registry import get_mapper_class

logger = logging.getLogger(__name__)

SECRETS_DIR = Path("/run/secrets")
DEMO_PROVIDER_ID = "demo"


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = SECRETS_DIR / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                logger.info("[settings] Loaded %s from %s", secret_name, SECRETS_DIR)
                return secret_value
        except OSError as e:
            logger.warning("[settings] Failed to read %s/%s: %s", SECRETS_DIR, secret_name, e)

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


def _env_bool(var_name: str, default: bool = False) -> bool:
    return os.environ.get(var_name, str(default)).strip().lower() in ("true", "1", "yes")


def _env_list(var_name: str, default: str = "") -> list[str]:
    return [item.strip() for item in os.environ.get(var_name, default).split(",") if item.strip()]


def _get_or_generate(var_name: str, demo_default: Optional[str] = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or use demo default."""
    value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        logger.info("[demo-mode] Using default for %s", var_name)
        return demo_default

    if not required:
        return ""

    raise ConfigurationError(f"Environment variable {var_name} is required in production mode.")


@dataclass
class ProviderConfig:
    """Configuration of one brokered social identity provider."""
    provider_id: str
    token_url: str
    client_id: str
    client_secret: str = ""
    store_token: bool = False
    mapper: str = "json"
    display_name: str = ""
    mapper_settings: MapperSettings = field(default_factory=MapperSettings)

    @property
    def label(self) -> str:
        return self.display_name or self.provider_id


@dataclass
class AppConfig:
    """Application configuration container."""
    # Mode
    demo_mode: bool

    # Flask
    secret_key: str
    session_cookie_secure: bool = True
    trusted_proxy_ips: str = "127.0.0.1/32,::1/128"
    log_level: str = "INFO"

    # Broker
    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    token_exchange_timeout: float = 5.0
    auth_attempt_ttl: int = 1800
    post_broker_login_url: str = "/"
    login_cancelled_url: str = "/"

    # Audit
    audit_log_signing_key: str = ""

    def get_provider(self, provider_id: str) -> Optional[ProviderConfig]:
        return self.providers.get(provider_id)


def load_provider(provider_id: str, demo_mode: bool = False) -> ProviderConfig:
    """Load one provider from <ID>_* environment variables.

    Raises:
        ConfigurationError: If token URL or client id is missing outside demo mode,
            or the mapper name is not registered
    """
    prefix = provider_id.upper().replace("-", "_")
    is_demo = demo_mode and provider_id == DEMO_PROVIDER_ID

    token_url = _get_or_generate(
        f"{prefix}_TOKEN_URL",
        demo_default="http://localhost:8081/oauth/token" if is_demo else None,
        demo_mode=demo_mode,
    )
    client_id = _get_or_generate(
        f"{prefix}_CLIENT_ID",
        demo_default="demo-broker-client" if is_demo else None,
        demo_mode=demo_mode,
    )
    client_secret = _load_secret_from_file(f"{provider_id}_client_secret", f"{prefix}_CLIENT_SECRET") or ""
    if not client_secret and is_demo:
        client_secret = "demo-broker-secret"

    mapper_settings = MapperSettings(
        id_field=os.environ.get(f"{prefix}_ID_FIELD", "id"),
        email_field=os.environ.get(f"{prefix}_EMAIL_FIELD", "email"),
        username_field=os.environ.get(f"{prefix}_USERNAME_FIELD", "username"),
        first_name_field=os.environ.get(f"{prefix}_FIRST_NAME_FIELD", "first_name"),
        last_name_field=os.environ.get(f"{prefix}_LAST_NAME_FIELD", "last_name"),
        email_required=_env_bool(f"{prefix}_EMAIL_REQUIRED", True),
        allowed_email_domains=[d.lower() for d in _env_list(f"{prefix}_ALLOWED_EMAIL_DOMAINS")],
        attribute_fields=_env_list(f"{prefix}_ATTRIBUTE_FIELDS"),
    )

    mapper = os.environ.get(f"{prefix}_MAPPER", "json").strip().lower()
    # Raises ConfigurationError for an unregistered mapper name
    get_mapper_class(mapper)

    return ProviderConfig(
        provider_id=provider_id,
        token_url=token_url,
        client_id=client_id,
        client_secret=client_secret,
        store_token=_env_bool(f"{prefix}_STORE_TOKEN", False),
        mapper=mapper,
        display_name=os.environ.get(f"{prefix}_DISPLAY_NAME", ""),
        mapper_settings=mapper_settings,
    )


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = _env_bool("DEMO_MODE", False)

    # Flask secret key
    secret_key = _load_secret_from_file("flask_secret_key", "FLASK_SECRET_KEY")
    if not secret_key:
        if demo_mode:
            secret_key = secrets.token_urlsafe(48)
            logger.info("[demo-mode] Generated temporary FLASK_SECRET_KEY")
        else:
            raise ConfigurationError("FLASK_SECRET_KEY not found in /run/secrets or environment")

    audit_log_signing_key = _load_secret_from_file("audit_log_signing_key", "AUDIT_LOG_SIGNING_KEY") or ""
    if audit_log_signing_key:
        os.environ["AUDIT_LOG_SIGNING_KEY"] = audit_log_signing_key

    session_cookie_secure = _env_bool("FLASK_SESSION_COOKIE_SECURE", True)

    trusted_proxy_ips = os.environ.get("TRUSTED_PROXY_IPS")
    if not trusted_proxy_ips:
        is_testing = os.environ.get("PYTEST_CURRENT_TEST") is not None
        if demo_mode or is_testing:
            trusted_proxy_ips = "127.0.0.1/32,::1/128"
        else:
            raise ConfigurationError("TRUSTED_PROXY_IPS is required when DEMO_MODE is false.")

    # Providers
    provider_ids = _env_list("BROKER_PROVIDERS", DEMO_PROVIDER_ID if demo_mode else "")
    providers = {}
    for provider_id in provider_ids:
        provider_id = provider_id.lower()
        providers[provider_id] = load_provider(provider_id, demo_mode=demo_mode)

    if not providers:
        logger.warning("[settings] No identity providers configured (set BROKER_PROVIDERS)")

    config = AppConfig(
        demo_mode=demo_mode,
        secret_key=secret_key,
        session_cookie_secure=session_cookie_secure,
        trusted_proxy_ips=trusted_proxy_ips,
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        providers=providers,
        token_exchange_timeout=float(os.environ.get("TOKEN_EXCHANGE_TIMEOUT", "5")),
        auth_attempt_ttl=int(os.environ.get("AUTH_ATTEMPT_TTL", "1800")),
        post_broker_login_url=os.environ.get("POST_BROKER_LOGIN_URL", "/"),
        login_cancelled_url=os.environ.get("LOGIN_CANCELLED_URL", "/"),
        audit_log_signing_key=audit_log_signing_key,
    )

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    logger.info("[settings] Mode=%s; providers=%s", mode_label, ",".join(providers) or "-")
    if demo_mode:
        logger.warning("[settings] Demo credentials in use. Do not deploy with these defaults.")

    return config
