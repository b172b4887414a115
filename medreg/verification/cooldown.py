"""Resend limits for verification codes, tracked per channel and contact value."""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

HOUR_SECONDS = 60 * 60

Key = Tuple[str, str]


@dataclass(frozen=True)
class CooldownDecision:
    allowed: bool
    retry_after: int = 0
    reason: Optional[str] = None
    sent_at: Optional[float] = None


class ResendLimiter:
    """Enforces a minimum gap between sends and a cap on sends per hour."""

    def __init__(
        self,
        cooldown_seconds: int,
        max_per_hour: int,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self.max_per_hour = max_per_hour
        self._clock = clock or time.time
        self._sends: Dict[Key, List[float]] = {}
        self._lock = threading.Lock()

    def _recent(self, key: Key, now: float) -> List[float]:
        # Drop sends older than an hour
        recent = [t for t in self._sends.get(key, []) if now - t < HOUR_SECONDS]
        if recent:
            self._sends[key] = recent
        else:
            self._sends.pop(key, None)
        return recent

    def _blocked(self, recent: List[float], now: float) -> Optional[CooldownDecision]:
        if len(recent) >= self.max_per_hour:
            retry_after = math.ceil(recent[0] + HOUR_SECONDS - now)
            return CooldownDecision(
                allowed=False,
                retry_after=retry_after,
                reason="Too many verification codes requested. Try again later.",
            )

        if recent:
            elapsed = now - recent[-1]
            if elapsed < self.cooldown_seconds:
                retry_after = math.ceil(self.cooldown_seconds - elapsed)
                return CooldownDecision(
                    allowed=False,
                    retry_after=retry_after,
                    reason=f"Wait {retry_after} seconds before requesting another code.",
                )

        return None

    def try_acquire(self, key: Key) -> CooldownDecision:
        """Reserve a send slot for ``key`` if the limits allow one.

        The check and the reservation happen under one lock, so two
        concurrent requests for the same contact cannot both be allowed.
        A reservation whose send fails should be handed back to ``release``.
        """
        now = self._clock()
        with self._lock:
            recent = self._recent(key, now)
            blocked = self._blocked(recent, now)
            if blocked is not None:
                return blocked
            recent.append(now)
            self._sends[key] = recent
        return CooldownDecision(allowed=True, sent_at=now)

    def release(self, key: Key, sent_at: Optional[float]) -> None:
        """Give back a slot taken by ``try_acquire`` whose send did not happen."""
        if sent_at is None:
            return
        with self._lock:
            sends = self._sends.get(key, [])
            if sent_at in sends:
                sends.remove(sent_at)
            if not sends:
                self._sends.pop(key, None)
