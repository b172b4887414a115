"""Service layer modules for the registration verification API."""

from . import code_service, delivery_service, auth_provider

__all__ = [
    "auth_provider",
    "code_service",
    "delivery_service",
]
