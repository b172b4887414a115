"""Issues and checks one-time verification codes and confirmation links.

Codes live in MongoDB when it is enabled and in process memory otherwise
(or when MongoDB is unreachable). Only a SHA-256 digest of each code is kept.
The verification session trackers never call this module; the routes do,
and report a successful check to the tracker afterwards.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlencode

from pymongo.errors import PyMongoError

from medreg.config import Settings
from medreg.services import code_service, delivery_service
from medreg.utils.auth import codes_match, generate_code, generate_token, hash_code
from medreg.utils.contact import EMAIL_CHANNEL, PHONE_CHANNEL, mask_contact

_LOGGER = logging.getLogger(__name__)

DELIVERY_CODE = "code"
DELIVERY_LINK = "link"


class CodeCheck(str, Enum):
    OK = "ok"
    INVALID = "invalid"
    EXPIRED = "expired"
    MISSING = "missing"
    LOCKED = "locked"


@dataclass(frozen=True)
class IssuedCode:
    channel: str
    contact: str
    delivery: str
    expires_at: int


class AuthProviderClient:
    def __init__(self, settings: Settings, clock: Optional[Callable[[], float]] = None) -> None:
        self.settings = settings
        self._clock = clock or time.time
        self._pending: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _now(self) -> int:
        return int(self._clock())

    def confirmation_link(self, email: str, token: str) -> str:
        query = urlencode({"value": email, "token": token})
        return f"{self.settings.public_base_url}/api/verification/email/confirm-link?{query}"

    def request_code(self, channel: str, contact: str, delivery: str = DELIVERY_CODE) -> IssuedCode:
        """Issue a code (or an email link token), store it and send it out.

        Raises ``ValueError`` for an unsupported delivery and
        ``DeliveryError`` when the mail server rejects the message.
        """
        if delivery not in (DELIVERY_CODE, DELIVERY_LINK):
            raise ValueError(f"unknown delivery: {delivery}")
        if delivery == DELIVERY_LINK and channel != EMAIL_CHANNEL:
            raise ValueError("links can only be sent by email")

        secret = generate_token("link") if delivery == DELIVERY_LINK else generate_code()
        expires_at = self._now() + self.settings.code_ttl_seconds
        key = (channel, contact)

        stored = False
        if self.settings.enable_mongodb:
            try:
                code_service.save_verification_code(channel, contact, hash_code(secret), delivery, expires_at)
                stored = True
            except PyMongoError:
                _LOGGER.exception("Failed to save %s code to MongoDB; keeping it in memory", channel)

        with self._lock:
            if stored:
                self._pending.pop(key, None)
            else:
                self._pending[key] = {
                    "code_hash": hash_code(secret),
                    "delivery": delivery,
                    "expires_at": expires_at,
                    "attempts": 0,
                }

        if channel == PHONE_CHANNEL:
            delivery_service.send_sms_code(self.settings, contact, secret)
        elif delivery == DELIVERY_LINK:
            delivery_service.send_email_link(self.settings, contact, self.confirmation_link(contact, secret))
        else:
            delivery_service.send_email_code(self.settings, contact, secret)

        _LOGGER.info("Issued %s %s for %s", channel, delivery, mask_contact(contact))
        return IssuedCode(channel=channel, contact=contact, delivery=delivery, expires_at=expires_at)

    def verify_code(self, channel: str, contact: str, code: str) -> CodeCheck:
        """Check a submitted code; a correct one is consumed."""
        if not code:
            return CodeCheck.INVALID

        key = (channel, contact)
        # An in-memory code is only kept when it is newer than anything in MongoDB.
        with self._lock:
            in_memory = key in self._pending
        if in_memory:
            return self._check_pending(key, code)

        if self.settings.enable_mongodb:
            try:
                document = code_service.get_verification_code(channel, contact)
                if document is not None:
                    return self._check_document(document, code)
            except PyMongoError:
                _LOGGER.exception("Failed to read %s code from MongoDB; trying memory", channel)

        return self._check_pending(key, code)

    def _check_document(self, document: Dict[str, Any], code: str) -> CodeCheck:
        if document["expires_at"] <= self._now():
            code_service.mark_code_as_used(document["_id"])
            return CodeCheck.EXPIRED

        if not codes_match(code, document["code_hash"]):
            attempts = code_service.record_failed_attempt(document["_id"])
            if attempts >= self.settings.max_verify_attempts:
                code_service.mark_code_as_used(document["_id"])
                return CodeCheck.LOCKED
            return CodeCheck.INVALID

        code_service.mark_code_as_used(document["_id"])
        return CodeCheck.OK

    def _check_pending(self, key: Tuple[str, str], code: str) -> CodeCheck:
        with self._lock:
            record = self._pending.get(key)
            if record is None:
                return CodeCheck.MISSING

            if record["expires_at"] <= self._now():
                self._pending.pop(key, None)
                return CodeCheck.EXPIRED

            if not codes_match(code, record["code_hash"]):
                record["attempts"] += 1
                if record["attempts"] >= self.settings.max_verify_attempts:
                    self._pending.pop(key, None)
                    return CodeCheck.LOCKED
                return CodeCheck.INVALID

            self._pending.pop(key, None)
            return CodeCheck.OK

    def prune_expired(self) -> int:
        """Drop expired in-memory codes and return how many were removed."""
        current = self._now()
        with self._lock:
            expired = [key for key, record in self._pending.items() if record["expires_at"] <= current]
            for key in expired:
                self._pending.pop(key, None)
        return len(expired)

    def cleanup_expired(self) -> Dict[str, int]:
        """Remove expired codes from memory and, when enabled, from MongoDB."""
        result = {"memory_deleted": self.prune_expired(), "mongodb_deleted": 0}
        if self.settings.enable_mongodb:
            try:
                result["mongodb_deleted"] = code_service.cleanup_expired_codes(self._now())
            except PyMongoError:
                _LOGGER.exception("Failed to clean up expired codes in MongoDB")
        return result

    def pending_count(self) -> int:
        current = self._now()
        with self._lock:
            count = sum(1 for record in self._pending.values() if record["expires_at"] > current)
        if self.settings.enable_mongodb:
            try:
                count += code_service.count_pending_codes(current)
            except PyMongoError:
                _LOGGER.exception("Failed to count pending codes in MongoDB")
        return count
