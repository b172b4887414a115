"""Admin utilities for inspecting verification state."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@bp.get("/stats")
def get_stats():
    """Count tracked sessions per channel and state, plus outstanding codes."""
    trackers = current_app.extensions["verification_trackers"]
    provider = current_app.extensions["auth_provider"]

    stats = {
        "sessions": {channel: tracker.stats() for channel, tracker in trackers.items()},
        "pending_codes": provider.pending_count(),
        "mongodb_enabled": current_app.extensions["medreg_settings"].enable_mongodb,
    }
    return jsonify(stats), 200


@bp.post("/cleanup")
def cleanup_codes():
    """Delete expired one-time codes."""
    result = current_app.extensions["auth_provider"].cleanup_expired()
    current_app.logger.info("Removed expired codes: %s", result)
    return jsonify(result), 200


@bp.post("/reset-sessions")
def reset_sessions():
    """Forget every verification session on both channels."""
    trackers = current_app.extensions["verification_trackers"]
    result = {channel: tracker.clear() for channel, tracker in trackers.items()}
    return jsonify(cleared=result), 200
