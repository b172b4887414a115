"""Normalization and format checks for email addresses and phone numbers."""

from __future__ import annotations

import re

EMAIL_CHANNEL = "email"
PHONE_CHANNEL = "phone"
CHANNELS = (EMAIL_CHANNEL, PHONE_CHANNEL)

VENEZUELA_COUNTRY_CODE = "58"

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+58\d{10}$")


def _digits_only(value: str) -> str:
    return "".join(ch for ch in value if ch.isdigit())


def normalize_email(email: str) -> str:
    """Return the address trimmed and lowercased."""
    if email is None:
        return ""
    return str(email).strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def normalize_phone(phone: str) -> str:
    """Return a Venezuelan phone number as ``+58`` followed by ten digits.

    Local numbers written with the trunk prefix (``0412...``) lose the ``0``
    and gain the country code. Numbers that already carry ``58`` (with or
    without ``+``/``00``) keep it. Anything else is returned as ``+<digits>``
    so that the format check can reject it.
    """
    if phone is None:
        return ""
    raw = str(phone).strip()
    if not raw:
        return ""

    digits = _digits_only(raw)
    if not digits:
        return ""

    if raw.startswith("00"):
        digits = digits[2:]

    if digits.startswith(VENEZUELA_COUNTRY_CODE) and len(digits) == 12:
        return f"+{digits}"

    if digits.startswith("0") and len(digits) == 11:
        return f"+{VENEZUELA_COUNTRY_CODE}{digits[1:]}"

    if len(digits) == 10 and not raw.startswith("+"):
        return f"+{VENEZUELA_COUNTRY_CODE}{digits}"

    return f"+{digits}"


def is_valid_phone(phone: str) -> bool:
    return bool(phone) and PHONE_PATTERN.match(phone) is not None


def normalize_contact(channel: str, value: str) -> str:
    """Normalize ``value`` for ``channel`` and return ``""`` if it is not valid."""
    if channel == EMAIL_CHANNEL:
        email = normalize_email(value)
        return email if is_valid_email(email) else ""
    if channel == PHONE_CHANNEL:
        phone = normalize_phone(value)
        return phone if is_valid_phone(phone) else ""
    return ""


def mask_contact(value: str) -> str:
    """Hide most of a contact value for log lines (``d***@example.com``, ``+58******4567``)."""
    if not value:
        return ""
    if "@" in value:
        local, _, domain = value.partition("@")
        return f"{local[:1]}***@{domain}"
    if len(value) <= 4:
        return "*" * len(value)
    if len(value) <= 7:
        return f"***{value[-4:]}"
    return f"{value[:3]}{'*' * (len(value) - 7)}{value[-4:]}"
