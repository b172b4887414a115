"""Verification session tracking and resend limits."""

from .cooldown import CooldownDecision, ResendLimiter
from .tracker import (
    VerificationMethod,
    VerificationSession,
    VerificationSessionStore,
    VerificationState,
)

__all__ = [
    "CooldownDecision",
    "ResendLimiter",
    "VerificationMethod",
    "VerificationSession",
    "VerificationSessionStore",
    "VerificationState",
]
