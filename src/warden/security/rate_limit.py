"""Fixed-window request rate limiting.

Each identity gets one counter key. The first request of a window creates
the counter and sets its expiry; the window ends when that key expires,
and every request until then shares the same boundary.

This is a fixed window, not a sliding window or token bucket: a caller
can get up to ``2 * limit`` requests through across a window boundary.

Store failures are raised as StoreUnavailableError. Whether to fail open
or closed on them is the caller's decision.
"""

from __future__ import annotations

import logging

from warden.store.facade import AtomicStore
from warden.store.keys import CoordinationKeys

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60


class FixedWindowRateLimiter:
    """Store-backed fixed-window counter per caller identity."""

    def __init__(
        self,
        store: AtomicStore,
        keys: CoordinationKeys | None = None,
        window_seconds: int = WINDOW_SECONDS,
    ):
        self.store = store
        self.keys = keys or CoordinationKeys()
        self.window_seconds = window_seconds

    async def check_and_consume(self, identity: str, limit: int) -> int:
        """Count one request for ``identity``.

        Returns:
            0 if the request is allowed, otherwise the number of seconds
            until the current window ends.
        """
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")

        key = self.keys.rate_limit(identity)
        count = await self.store.increment(key)

        if count == 1:
            await self.store.set_expiry(key, self.window_seconds)

        if count > limit:
            retry_after = await self.store.time_to_live(key)
            if retry_after is None:
                # Counter without expiry (EXPIRE failed after INCR): start the window now
                await self.store.set_expiry(key, self.window_seconds)
                retry_after = self.window_seconds
            # TTL rounds to the nearest second and reads 0 in the last half second
            retry_after = max(retry_after, 1)
            logger.debug(f"Rate limit exceeded for {identity}, retry after {retry_after}s")
            return retry_after

        return 0
