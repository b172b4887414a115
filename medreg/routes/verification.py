"""/api/verification routes driving email and phone verification for the wizard."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, current_app, jsonify, request

from medreg.services.auth_provider import CodeCheck
from medreg.services.delivery_service import DeliveryError
from medreg.utils.auth import to_millis
from medreg.utils.contact import EMAIL_CHANNEL, PHONE_CHANNEL, mask_contact, normalize_contact
from medreg.verification import VerificationMethod, VerificationSessionStore

bp = Blueprint("verification", __name__, url_prefix="/api/verification")

CHANNEL_RULE = "<any(email, phone):channel>"

INVALID_VALUE_MESSAGES = {
    EMAIL_CHANNEL: "A valid email address is required.",
    PHONE_CHANNEL: "A valid Venezuelan phone number (+58 followed by 10 digits) is required.",
}

CHECK_FAILURES = {
    CodeCheck.INVALID: ("Invalid verification code.", 401),
    CodeCheck.EXPIRED: ("Invalid or expired code.", 401),
    CodeCheck.MISSING: ("Invalid or expired code.", 401),
    CodeCheck.LOCKED: ("Too many incorrect attempts. Request a new code.", 429),
}


def _tracker(channel: str) -> VerificationSessionStore:
    return current_app.extensions["verification_trackers"][channel]


def _contact_value(channel: str, raw: Any) -> Tuple[str, Optional[Any]]:
    """Normalize the submitted contact value or build the 400 response."""
    value = normalize_contact(channel, raw if isinstance(raw, str) else "")
    if not value:
        return "", (jsonify(error=INVALID_VALUE_MESSAGES[channel]), 400)
    return value, None


def _status(channel: str, value: str) -> Dict[str, Any]:
    tracker = _tracker(channel)
    status: Dict[str, Any] = {
        "channel": channel,
        "value": value,
        "state": tracker.state_of(value).value,
        "active": tracker.has_active_session(value),
        "verified": tracker.is_verified(value),
        "startedAt": None,
        "verifiedAt": None,
        "expiresAt": None,
        "method": None,
    }
    session = tracker.get_session(value)
    if session is not None:
        status.update(session.to_dict())
    return status


def _check_failure(result: CodeCheck):
    message, status_code = CHECK_FAILURES[result]
    return jsonify(error=message), status_code


@bp.post(f"/{CHANNEL_RULE}/request-code")
def request_code(channel: str):
    """Send a one-time code (or an email link) and open a verification session."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    value, error_response = _contact_value(channel, payload.get("value"))
    if error_response is not None:
        return error_response

    tracker = _tracker(channel)
    if tracker.is_verified(value):
        return jsonify(alreadyVerified=True, session=_status(channel, value)), 200

    limiter = current_app.extensions["resend_limiter"]
    key = (channel, value)
    decision = limiter.try_acquire(key)
    if not decision.allowed:
        now = current_app.extensions["medreg_clock"]()
        return (
            jsonify(
                error=decision.reason,
                rateLimited=True,
                waitTime=decision.retry_after,
                retryAfter=to_millis(now + decision.retry_after),
            ),
            429,
        )

    delivery = str(payload.get("delivery") or "code").strip().lower()
    provider = current_app.extensions["auth_provider"]
    try:
        issued = provider.request_code(channel, value, delivery)
    except ValueError as exc:
        limiter.release(key, decision.sent_at)
        return jsonify(error=str(exc)), 400
    except DeliveryError:
        limiter.release(key, decision.sent_at)
        current_app.logger.exception("Failed to deliver %s code to %s", channel, mask_contact(value))
        return jsonify(error="Could not send the verification code. Try again later."), 502

    tracker.start_verification(value)

    return (
        jsonify(
            alreadyVerified=False,
            delivery=issued.delivery,
            codeExpiresAt=to_millis(issued.expires_at),
            session=_status(channel, value),
        ),
        200,
    )


@bp.post(f"/{CHANNEL_RULE}/verify-code")
def verify_code(channel: str):
    """Check a submitted code and mark the contact value as verified."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    value, error_response = _contact_value(channel, payload.get("value"))
    if error_response is not None:
        return error_response

    code = str(payload.get("code", "")).strip()
    if not code:
        return jsonify(error="Code is required."), 400

    result = current_app.extensions["auth_provider"].verify_code(channel, value, code)
    if result is not CodeCheck.OK:
        current_app.logger.info("Rejected %s code for %s: %s", channel, mask_contact(value), result.value)
        return _check_failure(result)

    _tracker(channel).mark_as_verified(value, VerificationMethod.CODE)
    return jsonify(_status(channel, value)), 200


@bp.get("/email/confirm-link")
def confirm_link():
    """Redeem the token from an emailed confirmation link."""
    value, error_response = _contact_value(EMAIL_CHANNEL, request.args.get("value"))
    if error_response is not None:
        return error_response

    token = (request.args.get("token") or "").strip()
    if not token:
        return jsonify(error="Token is required."), 400

    result = current_app.extensions["auth_provider"].verify_code(EMAIL_CHANNEL, value, token)
    if result is not CodeCheck.OK:
        return _check_failure(result)

    _tracker(EMAIL_CHANNEL).mark_as_verified(value, VerificationMethod.LINK)
    return jsonify(_status(EMAIL_CHANNEL, value)), 200


@bp.post("/phone/auto")
def auto_verify_phone():
    """Mark a well-formed phone number as verified without an SMS challenge.

    Stand-in until an SMS gateway is connected; off unless PHONE_AUTO_VERIFY is set.
    """
    if not current_app.extensions["medreg_settings"].phone_auto_verify:
        return jsonify(error="Automatic phone verification is disabled."), 403

    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    value, error_response = _contact_value(PHONE_CHANNEL, payload.get("value"))
    if error_response is not None:
        return error_response

    _tracker(PHONE_CHANNEL).mark_as_verified(value, VerificationMethod.AUTO)
    return jsonify(_status(PHONE_CHANNEL, value)), 200


@bp.post(f"/{CHANNEL_RULE}/extend")
def extend_session(channel: str):
    """Keep a displayed contact value's session open while the form is filled in."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    value, error_response = _contact_value(channel, payload.get("value"))
    if error_response is not None:
        return error_response

    extended = _tracker(channel).extend_session(value)
    return jsonify(extended=extended, **_status(channel, value)), 200


@bp.post(f"/{CHANNEL_RULE}/reset")
def reset_session(channel: str):
    """Forget a contact value's session, e.g. when the doctor logs out."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    value, error_response = _contact_value(channel, payload.get("value"))
    if error_response is not None:
        return error_response

    cleared = _tracker(channel).clear(value) > 0
    return jsonify(cleared=cleared, **_status(channel, value)), 200


@bp.get(f"/{CHANNEL_RULE}/status")
def session_status(channel: str):
    """Report whether verification started, is active and is complete."""
    value, error_response = _contact_value(channel, request.args.get("value"))
    if error_response is not None:
        return error_response

    return jsonify(_status(channel, value)), 200
