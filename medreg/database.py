"""MongoDB connection management for persisted verification codes."""

from __future__ import annotations

from typing import Optional

from pymongo import MongoClient
from pymongo.database import Database

DEFAULT_URI = "mongodb://localhost:27017/"
DEFAULT_DATABASE = "medreg"
SERVER_SELECTION_TIMEOUT_MS = 3000

# Lazily created on first use; replaced by configure().
_client: Optional[MongoClient] = None
_database: Optional[Database] = None
_uri: str = DEFAULT_URI
_database_name: str = DEFAULT_DATABASE


def configure(uri: str, database_name: str) -> None:
    """Point later connections at ``uri``/``database_name``, dropping any open client."""
    global _uri, _database_name
    close_mongo_connection()
    _uri = uri
    _database_name = database_name


def get_mongo_client() -> MongoClient:
    """Get or create the MongoDB client instance."""
    global _client
    if _client is None:
        _client = MongoClient(_uri, serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS)
    return _client


def get_database() -> Database:
    """Get the database holding the ``verification_codes`` collection."""
    global _database
    if _database is None:
        _database = get_mongo_client()[_database_name]
    return _database


def close_mongo_connection() -> None:
    global _client, _database
    if _client is not None:
        _client.close()
    _client = None
    _database = None
