"""Audit trail for brokered login events (signed JSONL)."""

from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import logging
import os
from pathlib import Path
from typing import Any, Literal

logger = logging.getLogger(__name__)

AUDIT_LOG_DIR = Path(os.environ.get("AUDIT_LOG_DIR", ".runtime/audit"))
AUDIT_LOG_FILE = AUDIT_LOG_DIR / "broker-events.jsonl"

IDENTITY_PROVIDER_LOGIN_FAILURE = "identity-provider-login-failure"

EventType = Literal["login"]


def _get_signing_key() -> bytes:
    """Get the audit signing key from environment (read lazily so secrets loaded later apply)."""
    key = os.environ.get("AUDIT_LOG_SIGNING_KEY", "").strip()
    if key:
        return key.encode("utf-8")
    secret_file = Path("/run/secrets/audit_log_signing_key")
    if secret_file.exists():
        try:
            return secret_file.read_text(encoding="utf-8").strip().encode("utf-8")
        except OSError:
            pass
    return b""


def _ensure_audit_dir() -> None:
    """Create audit directory with restricted permissions."""
    AUDIT_LOG_DIR.mkdir(parents=True, exist_ok=True)
    AUDIT_LOG_DIR.chmod(0o700)


def _sign_event(event: dict[str, Any]) -> str:
    """Generate HMAC-SHA256 signature for audit event."""
    signing_key = _get_signing_key()
    if not signing_key:
        return ""
    canonical = json.dumps(event, sort_keys=True, separators=(",", ":"))
    return hmac.new(signing_key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def log_login_event(
    event_type: EventType,
    *,
    realm: str,
    provider_id: str,
    error: str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = False,
) -> None:
    """Append a login event to the audit trail with timestamp and signature.

    Args:
        event_type: Event type ("login" for broker callbacks)
        realm: Realm the login attempt belongs to
        provider_id: Identity provider that handled the callback
        error: Error code (e.g. identity-provider-login-failure)
        details: Additional context (outcome variant, kind, reason)
        success: Whether the login succeeded
    """
    _ensure_audit_dir()

    event = {
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "type": event_type,
        "realm": realm,
        "provider_id": provider_id,
        "error": error,
        "success": success,
        "details": details or {},
    }

    signature = _sign_event(event)
    if signature:
        event["signature"] = signature

    with AUDIT_LOG_FILE.open("a", encoding="utf-8") as f:
        f.write(json.dumps(event, ensure_ascii=False) + "\n")

    AUDIT_LOG_FILE.chmod(0o600)


def safe_log_login_event(
    event_type: EventType,
    *,
    realm: str,
    provider_id: str,
    error: str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = False,
) -> bool:
    """Log a login event, never raising.

    Returns:
        True if event was logged successfully, False if logging failed
    """
    try:
        log_login_event(
            event_type,
            realm=realm,
            provider_id=provider_id,
            error=error,
            details=details,
            success=success,
        )
        return True
    except Exception as e:
        logger.warning("[audit] Failed to log %s event for %s: %s", event_type, provider_id, e)
        return False


def verify_audit_log() -> tuple[int, int]:
    """Verify all signatures in the audit log.

    Returns:
        Tuple of (total_events, valid_signatures)
    """
    if not AUDIT_LOG_FILE.exists():
        return 0, 0

    total = 0
    valid = 0

    with AUDIT_LOG_FILE.open("r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            total += 1
            try:
                event = json.loads(line)
                stored_sig = event.pop("signature", "")
                if not stored_sig:
                    continue
                computed_sig = _sign_event(event)
                if hmac.compare_digest(stored_sig, computed_sig):
                    valid += 1
            except (json.JSONDecodeError, KeyError):
                continue

    return total, valid


if __name__ == "__main__":
    import sys
    total, valid = verify_audit_log()
    print(f"Audit log: {valid}/{total} events with valid signatures")
    sys.exit(0 if total == valid else 1)
