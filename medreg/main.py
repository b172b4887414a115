"""Flask application setup and blueprint wiring."""

from __future__ import annotations

import time
from typing import Callable, Optional

from flask import Flask
from flask_cors import CORS
from pymongo.errors import PyMongoError

from medreg import database
from medreg.config import Settings
from medreg.routes import register_routes
from medreg.services import code_service
from medreg.services.auth_provider import AuthProviderClient
from medreg.utils.auth import register_code_cleanup
from medreg.utils.contact import CHANNELS
from medreg.verification import ResendLimiter, VerificationSessionStore

MAX_REQUEST_BYTES = 64 * 1024


def create_app(settings: Optional[Settings] = None, clock: Optional[Callable[[], float]] = None) -> Flask:
    """Configure and return the Flask application instance.

    ``clock`` feeds every TTL decision (sessions, codes, resend limits) and
    defaults to ``time.time``.
    """
    settings = settings or Settings.from_env()
    clock = clock or time.time

    app = Flask(__name__)
    CORS(app, resources={r"/api/*": {"origins": settings.cors_origins}})

    app.config["MAX_CONTENT_LENGTH"] = MAX_REQUEST_BYTES

    app.extensions["medreg_settings"] = settings
    app.extensions["medreg_clock"] = clock
    app.extensions["verification_trackers"] = {
        channel: VerificationSessionStore(channel, settings.session_ttl_for(channel), clock=clock)
        for channel in CHANNELS
    }
    app.extensions["resend_limiter"] = ResendLimiter(
        settings.resend_cooldown_seconds,
        settings.max_sends_per_hour,
        clock=clock,
    )
    app.extensions["auth_provider"] = AuthProviderClient(settings, clock=clock)

    register_code_cleanup(app)
    register_routes(app)

    if settings.enable_mongodb:
        database.configure(settings.mongodb_uri, settings.mongodb_database)
        try:
            code_service.create_indexes()
            app.logger.info("MongoDB indexes created successfully")
        except PyMongoError as e:
            app.logger.warning(f"Failed to create MongoDB indexes: {e}")

    return app
