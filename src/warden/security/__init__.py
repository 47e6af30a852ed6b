"""Request and authentication throttling primitives.

- Fixed-window rate limiter per caller identity
- TOTP replay guard per (device, code)
- MFA failed-attempt lockout counter per user
"""

from warden.security.lockout import AttemptLockout
from warden.security.rate_limit import FixedWindowRateLimiter
from warden.security.replay import ReplayGuard

__all__ = [
    "AttemptLockout",
    "FixedWindowRateLimiter",
    "ReplayGuard",
]
