"""Health check endpoints."""
from flask import Blueprint, current_app, jsonify

bp = Blueprint("health", __name__)


@bp.route("/health")
def health_check():
    """Basic health check endpoint."""
    return ("ok", 200, {"Content-Type": "text/plain"})


@bp.route("/ready")
def readiness_check():
    """Readiness check: at least one identity provider must be configured."""
    cfg = current_app.config["APP_CONFIG"]
    providers = sorted(cfg.providers)
    status = 200 if providers else 503
    return jsonify({"status": "ready" if providers else "no-providers", "providers": providers}), status
