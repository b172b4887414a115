"""Helpers for one-time codes, link tokens and request-scoped cleanup."""

from __future__ import annotations

import hashlib
import hmac
import secrets

from flask import Flask, current_app

CODE_LENGTH = 6


def to_millis(timestamp: float) -> int:
    """Convert a UNIX timestamp in seconds to the milliseconds the wizard expects."""
    return int(timestamp * 1000)


def generate_code() -> str:
    """Return a six digit numeric code for email or SMS entry."""
    return "".join(secrets.choice("0123456789") for _ in range(CODE_LENGTH))


def generate_token(prefix: str = "link") -> str:
    """Return a URL-safe token with the given prefix for confirmation links."""
    return f"{prefix}_{secrets.token_urlsafe(24)}"


def hash_code(code: str) -> str:
    """Return the SHA-256 digest stored in place of the plain code."""
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def codes_match(code: str, code_hash: str) -> bool:
    return hmac.compare_digest(hash_code(code), code_hash)


def register_code_cleanup(app: Flask) -> None:
    """Attach a before-request handler that drops expired in-memory codes.

    Verification sessions are not touched here; they expire lazily on read.
    """

    @app.before_request  # pragma: no cover - trivial wiring
    def _cleanup_codes() -> None:
        current_app.extensions["auth_provider"].prune_expired()
