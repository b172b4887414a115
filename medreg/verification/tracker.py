"""In-memory verification sessions for email addresses and phone numbers.

Each ``VerificationSessionStore`` answers "has verification started?",
"is it still active?" and "is it verified?" for contact values on one
channel without going back to the code issuer. Expiry is lazy: a session
is compared with the clock when it is read and nothing runs in the
background.

The registration wizard gets one store per channel. They never share a
map, so an email and a phone that happen to be the same string stay apart.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, Optional

from medreg.utils.contact import mask_contact

_LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]


class VerificationState(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    EXPIRED = "EXPIRED"


class VerificationMethod(str, Enum):
    AUTO = "AUTO"
    CODE = "CODE"
    LINK = "LINK"


_LIVE_STATES = (VerificationState.PENDING, VerificationState.VERIFIED)


@dataclass
class VerificationSession:
    channel: str
    contact_value: str
    state: VerificationState
    started_at: float
    expires_at: float
    verified_at: Optional[float] = None
    verification_method: Optional[VerificationMethod] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "channel": self.channel,
            "value": self.contact_value,
            "state": self.state.value,
            "startedAt": int(self.started_at * 1000),
            "expiresAt": int(self.expires_at * 1000),
            "verifiedAt": int(self.verified_at * 1000) if self.verified_at is not None else None,
            "method": self.verification_method.value if self.verification_method else None,
        }


class VerificationSessionStore:
    """Tracks verification sessions for one channel, keyed by contact value."""

    def __init__(self, channel: str, ttl_seconds: float, clock: Optional[Clock] = None) -> None:
        self.channel = channel
        self.ttl_seconds = ttl_seconds
        self._clock: Clock = clock or time.time
        self._sessions: Dict[str, VerificationSession] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _lookup(self, contact_value: str) -> Optional[VerificationSession]:
        """Return the stored session, flipping it to EXPIRED if its window has passed."""
        if not isinstance(contact_value, str) or not contact_value:
            return None
        session = self._sessions.get(contact_value)
        if session is None:
            return None
        if session.state in _LIVE_STATES and self._clock() >= session.expires_at:
            session.state = VerificationState.EXPIRED
            _LOGGER.info(
                "%s verification expired for %s", self.channel, mask_contact(contact_value)
            )
        return session

    def _new_session(self, contact_value: str, state: VerificationState) -> VerificationSession:
        now = self._clock()
        session = VerificationSession(
            channel=self.channel,
            contact_value=contact_value,
            state=state,
            started_at=now,
            expires_at=now + self.ttl_seconds,
        )
        self._sessions[contact_value] = session
        return session

    def has_active_session(self, contact_value: str) -> bool:
        """True when the value is PENDING or VERIFIED and its window is still open."""
        with self._lock:
            session = self._lookup(contact_value)
            return session is not None and session.state in _LIVE_STATES

    def is_verified(self, contact_value: str) -> bool:
        """True only for a VERIFIED session that has not expired."""
        with self._lock:
            session = self._lookup(contact_value)
            return session is not None and session.state == VerificationState.VERIFIED

    def start_verification(self, contact_value: str) -> bool:
        """Open a PENDING session unless one is already active.

        Returns True when a session was created or an expired one re-armed.
        An active session keeps its ``started_at`` and ``expires_at``.
        """
        if not isinstance(contact_value, str) or not contact_value:
            return False
        with self._lock:
            session = self._lookup(contact_value)
            if session is not None and session.state in _LIVE_STATES:
                return False
            self._new_session(contact_value, VerificationState.PENDING)
        _LOGGER.info("%s verification started for %s", self.channel, mask_contact(contact_value))
        return True

    def mark_as_verified(self, contact_value: str, method: VerificationMethod) -> None:
        """Move the session to VERIFIED.

        Callers may verify without a prior ``start_verification`` (the phone
        auto path does); a missing or expired session is then created with a
        fresh window. An active session keeps its deadline.
        """
        if not isinstance(contact_value, str) or not contact_value:
            return
        method = VerificationMethod(method)
        with self._lock:
            session = self._lookup(contact_value)
            if session is None or session.state not in _LIVE_STATES:
                session = self._new_session(contact_value, VerificationState.PENDING)
            session.state = VerificationState.VERIFIED
            session.verified_at = self._clock()
            session.verification_method = method
        _LOGGER.info(
            "%s verified for %s via %s", self.channel, mask_contact(contact_value), method.value
        )

    def extend_session(self, contact_value: str) -> bool:
        """Push the deadline of an active session to ``now + ttl``.

        Absent and expired sessions are left alone so that extending can never
        produce a verified state on its own.
        """
        with self._lock:
            session = self._lookup(contact_value)
            if session is None or session.state not in _LIVE_STATES:
                return False
            session.expires_at = self._clock() + self.ttl_seconds
            return True

    def get_session(self, contact_value: str) -> Optional[VerificationSession]:
        """Return a copy of the session with its effective state, or None."""
        with self._lock:
            session = self._lookup(contact_value)
            return replace(session) if session is not None else None

    def state_of(self, contact_value: str) -> VerificationState:
        session = self.get_session(contact_value)
        return session.state if session is not None else VerificationState.NOT_STARTED

    def stats(self) -> Dict[str, int]:
        """Count tracked sessions by effective state."""
        counts = {state.value: 0 for state in VerificationState if state != VerificationState.NOT_STARTED}
        with self._lock:
            for contact_value in list(self._sessions):
                session = self._lookup(contact_value)
                counts[session.state.value] += 1
        return counts

    def clear(self, contact_value: Optional[str] = None) -> int:
        """Forget the session for ``contact_value``, or every session when None.

        Used when a user logs out or abandons the wizard. Returns how many
        sessions were removed.
        """
        with self._lock:
            if contact_value is None:
                removed = len(self._sessions)
                self._sessions.clear()
            else:
                removed = 1 if self._sessions.pop(contact_value, None) is not None else 0
        if removed:
            _LOGGER.info("Cleared %d %s verification session(s)", removed, self.channel)
        return removed
