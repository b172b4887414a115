"""/api/registration routes validating wizard steps against verification state."""

from __future__ import annotations

from typing import Any, Dict, List

from flask import Blueprint, current_app, jsonify, request

from medreg.utils.contact import (
    EMAIL_CHANNEL,
    PHONE_CHANNEL,
    is_valid_email,
    is_valid_phone,
    normalize_email,
    normalize_phone,
)

bp = Blueprint("registration", __name__, url_prefix="/api/registration")

PERSONAL_INFO_FIELDS = ("firstName", "lastName", "email", "phone", "password", "confirmPassword")
MIN_PASSWORD_LENGTH = 8


def _text(payload: Dict[str, Any], field: str) -> str:
    value = payload.get(field)
    return value.strip() if isinstance(value, str) else ""


@bp.post("/personal-info")
def validate_personal_info():
    """Validate the personal info step; both contact values must be verified."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    details: List[Dict[str, str]] = []

    for field in PERSONAL_INFO_FIELDS:
        if not _text(payload, field):
            details.append({"field": field, "message": "This field is required."})

    trackers = current_app.extensions["verification_trackers"]
    raw_email = _text(payload, "email")
    raw_phone = _text(payload, "phone")
    email = normalize_email(raw_email)
    phone = normalize_phone(raw_phone)

    # Text that normalizes to nothing is a bad format, not a missing field.
    if raw_email:
        if not is_valid_email(email):
            details.append({"field": "email", "message": "Enter a valid email address."})
        elif not trackers[EMAIL_CHANNEL].is_verified(email):
            details.append({"field": "email", "message": "Email address has not been verified."})

    if raw_phone:
        if not is_valid_phone(phone):
            details.append({"field": "phone", "message": "Phone must be +58 followed by 10 digits."})
        elif not trackers[PHONE_CHANNEL].is_verified(phone):
            details.append({"field": "phone", "message": "Phone number has not been verified."})

    password = payload.get("password") if isinstance(payload.get("password"), str) else ""
    if password and len(password) < MIN_PASSWORD_LENGTH:
        details.append(
            {"field": "password", "message": f"Password must be at least {MIN_PASSWORD_LENGTH} characters."}
        )
    if password and payload.get("confirmPassword") and payload.get("confirmPassword") != password:
        details.append({"field": "confirmPassword", "message": "Passwords do not match."})

    if details:
        return jsonify(error="Personal information is incomplete.", details=details), 400

    # The doctor keeps filling in later steps; keep both verifications alive.
    trackers[EMAIL_CHANNEL].extend_session(email)
    trackers[PHONE_CHANNEL].extend_session(phone)

    return jsonify(ok=True, email=email, phone=phone, nextStep="professional_info"), 200
