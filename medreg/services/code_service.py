"""Service for persisting one-time verification codes in MongoDB."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument

from medreg import database


def _collection():
    return database.get_database().verification_codes


def create_indexes() -> None:
    """Create the lookup and expiry indexes used by the code queries."""
    collection = _collection()
    collection.create_index([("channel", ASCENDING), ("contact", ASCENDING), ("created_at", DESCENDING)])
    collection.create_index("expires_at")


def save_verification_code(
    channel: str,
    contact: str,
    code_hash: str,
    delivery: str,
    expires_at: int,
) -> str:
    """
    Save a freshly issued code, retiring any earlier unused code for the contact.

    Args:
        channel: ``email`` or ``phone``
        contact: The normalized contact value the code was sent to
        code_hash: SHA-256 digest of the code or link token
        delivery: ``code`` or ``link``
        expires_at: Unix timestamp when the code expires

    Returns:
        The id of the stored document
    """
    collection = _collection()

    collection.update_many(
        {"channel": channel, "contact": contact, "used": False},
        {"$set": {"used": True, "superseded_at": datetime.utcnow()}},
    )

    document = {
        "channel": channel,
        "contact": contact,
        "code_hash": code_hash,
        "delivery": delivery,
        "expires_at": expires_at,
        "attempts": 0,
        "used": False,
        "created_at": datetime.utcnow(),
    }
    result = collection.insert_one(document)
    return str(result.inserted_id)


def get_verification_code(channel: str, contact: str) -> Optional[Dict[str, Any]]:
    """
    Retrieve the newest unused code for a contact value.

    Expired codes are returned as well so the caller can tell "expired" from
    "never requested".
    """
    document = _collection().find_one(
        {"channel": channel, "contact": contact, "used": False},
        sort=[("created_at", DESCENDING)],
    )
    return document


def record_failed_attempt(document_id: Any) -> int:
    """Increment the wrong-code counter and return the new value."""
    document = _collection().find_one_and_update(
        {"_id": document_id},
        {"$inc": {"attempts": 1}},
        projection={"attempts": 1},
        return_document=ReturnDocument.AFTER,
    )
    return int(document["attempts"]) if document else 0


def mark_code_as_used(document_id: Any) -> bool:
    """Mark a code as used so it can't be redeemed twice."""
    result = _collection().update_one(
        {"_id": document_id, "used": False},
        {"$set": {"used": True, "used_at": datetime.utcnow()}},
    )
    return result.modified_count > 0


def count_pending_codes(now: int) -> int:
    return _collection().count_documents({"used": False, "expires_at": {"$gt": now}})


def cleanup_expired_codes(now: int) -> int:
    """Remove expired codes and return how many were deleted."""
    result = _collection().delete_many({"expires_at": {"$lte": now}})
    return result.deleted_count
