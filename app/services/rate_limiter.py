"""
Failed-attempt rate limiting

Counters live in the ``rate_limits`` collection of whatever store is
injected, so every process sharing that store enforces the same lockouts.
With the in-memory store a restart clears them.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel

from ..core.clock import Clock, parse_datetime, to_iso, utcnow
from ..core.config import settings
from .base.store import DocumentStore

logger = logging.getLogger(__name__)


class RateLimitStatus(BaseModel):
    allowed: bool
    message: Optional[str] = None
    lockout_end: Optional[datetime] = None


class RateLimiter:
    """Sliding-window failure counter with a fixed lockout"""

    COLLECTION = "rate_limits"

    def __init__(self, store: DocumentStore, lockout_minutes: int = settings.LOCKOUT_MINUTES, clock: Clock = utcnow):
        self.store = store
        self.lockout = timedelta(minutes=lockout_minutes)
        self.clock = clock

    def check(self, identifier: str, max_attempts: int, window_minutes: int) -> RateLimitStatus:
        record = self.store.get(self.COLLECTION, identifier)
        if not record:
            return RateLimitStatus(allowed=True)

        now = self.clock()
        locked_until = parse_datetime(record.get("locked_until"))
        if locked_until is not None:
            if locked_until > now:
                return self._denied(locked_until, now)
            # lockout served
            self.store.delete(self.COLLECTION, identifier)
            return RateLimitStatus(allowed=True)

        last_attempt = parse_datetime(record.get("last_attempt"))
        if last_attempt is None or now - last_attempt > timedelta(minutes=window_minutes):
            self.store.delete(self.COLLECTION, identifier)
            return RateLimitStatus(allowed=True)

        if record.get("attempts", 0) >= max_attempts:
            locked_until = now + self.lockout
            record["locked_until"] = to_iso(locked_until)
            self.store.set(self.COLLECTION, identifier, record)
            logger.warning(f"🔒 Locked out {identifier} until {locked_until.isoformat()}")
            return self._denied(locked_until, now)

        return RateLimitStatus(allowed=True)

    def record_failed_attempt(self, identifier: str, window_minutes: int = settings.LOGIN_WINDOW_MINUTES) -> int:
        """Count a failure and return the number of failures in the current window"""
        now = self.clock()
        record = self.store.get(self.COLLECTION, identifier) or {}

        last_attempt = parse_datetime(record.get("last_attempt"))
        if last_attempt is None or now - last_attempt > timedelta(minutes=window_minutes):
            record["attempts"] = 1
        else:
            record["attempts"] = record.get("attempts", 0) + 1
        record["last_attempt"] = to_iso(now)

        self.store.set(self.COLLECTION, identifier, record)
        return record["attempts"]

    def reset(self, identifier: str) -> None:
        self.store.delete(self.COLLECTION, identifier)

    @staticmethod
    def _denied(locked_until: datetime, now: datetime) -> RateLimitStatus:
        minutes = max(1, int((locked_until - now).total_seconds() // 60))
        return RateLimitStatus(
            allowed=False,
            message=f"Too many failed attempts. Try again in {minutes} minutes.",
            lockout_end=locked_until,
        )
