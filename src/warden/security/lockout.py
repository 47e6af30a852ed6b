"""Failed-attempt lockout counter for MFA verification.

Every failure increments the user's counter and renews its TTL, so a user
who keeps failing stays locked out for a full window measured from the
last failure. A verified success deletes the counter. An absent counter
means zero attempts.

The counter does not decide anything: callers compare ``get_attempts``
against their maximum, or use ``is_locked_out``.
"""

from __future__ import annotations

import logging

from warden.store.facade import AtomicStore
from warden.store.keys import CoordinationKeys

logger = logging.getLogger(__name__)

LOCKOUT_TTL = 900  # Seconds
MAX_ATTEMPTS = 5


class AttemptLockout:
    """Store-backed failed MFA attempt counter per user."""

    def __init__(
        self,
        store: AtomicStore,
        keys: CoordinationKeys | None = None,
        ttl: int = LOCKOUT_TTL,
        max_attempts: int = MAX_ATTEMPTS,
    ):
        self.store = store
        self.keys = keys or CoordinationKeys()
        self.ttl = ttl
        self.max_attempts = max_attempts

    async def get_attempts(self, user_id: str) -> int:
        """Failed attempts since the last reset, 0 when none are recorded."""
        value = await self.store.get(self.keys.lockout(user_id))
        if value is None:
            return 0
        return int(value)

    async def increment_attempts(self, user_id: str) -> int:
        """Record a failed attempt and restart the lockout window.

        Returns:
            The new attempt count.
        """
        key = self.keys.lockout(user_id)
        attempts = await self.store.increment(key)
        await self.store.set_expiry(key, self.ttl)
        if attempts >= self.max_attempts:
            logger.warning(f"User {user_id} reached {attempts} failed MFA attempts")
        return attempts

    async def reset_attempts(self, user_id: str) -> None:
        """Clear the counter after a verified success."""
        await self.store.delete(self.keys.lockout(user_id))

    async def is_locked_out(self, user_id: str, max_attempts: int | None = None) -> bool:
        """Check whether ``user_id`` has used up ``max_attempts`` failures."""
        limit = self.max_attempts if max_attempts is None else max_attempts
        return await self.get_attempts(user_id) >= limit
