"""One-time-use guard for TOTP codes.

A code accepted once for a device is marked in the store until the replay
window passes. The window only has to outlive the code's own validity
(the current step plus allowed skew); it does not track it.
"""

from __future__ import annotations

import logging

from warden.store.facade import AtomicStore
from warden.store.keys import CoordinationKeys

logger = logging.getLogger(__name__)

REPLAY_TTL = 90  # Seconds


class ReplayGuard:
    """Store-backed replay markers keyed by (device, code)."""

    def __init__(
        self,
        store: AtomicStore,
        keys: CoordinationKeys | None = None,
        ttl: int = REPLAY_TTL,
    ):
        self.store = store
        self.keys = keys or CoordinationKeys()
        self.ttl = ttl

    async def is_used(self, device_id: str, code: str) -> bool:
        """Check if ``code`` was already consumed for ``device_id``."""
        return await self.store.exists(self.keys.replay(device_id, code))

    async def mark_used(self, device_id: str, code: str) -> bool:
        """Consume ``code`` for ``device_id``.

        Returns:
            True if this call consumed the code, False if it had already
            been used (a replay).
        """
        consumed = await self.store.set_if_absent(self.keys.replay(device_id, code), "1", self.ttl)
        if not consumed:
            logger.warning(f"Replayed TOTP code rejected for device {device_id}")
        return consumed
