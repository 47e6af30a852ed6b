"""Store key schema for the coordination primitives.

Default key formats:
- app:identity                     presence registry (sorted set)
- app:ratelimit:{identity}         fixed-window request counter
- app:worker:lock:{name}           singleton worker lease
- totp:used:{device}:{code}        TOTP replay marker
- mfa:attempts:{user}              MFA failed-attempt counter

Templates come from ``Settings`` so several deployments can share one
store under different namespaces.
"""

from __future__ import annotations

from dataclasses import dataclass

from warden.config import Settings


@dataclass(frozen=True)
class CoordinationKeys:
    """Key generator following the configured naming convention."""

    registry: str = "app:identity"
    rate_limit_template: str = "app:ratelimit:{identity}"
    lock_template: str = "app:worker:lock:{name}"
    replay_template: str = "totp:used:{device}:{code}"
    lockout_template: str = "mfa:attempts:{user}"

    @classmethod
    def from_settings(cls, settings: Settings) -> CoordinationKeys:
        return cls(
            registry=settings.registry_key,
            rate_limit_template=settings.rate_limit_key_template,
            lock_template=settings.lock_key_template,
            replay_template=settings.replay_key_template,
            lockout_template=settings.lockout_key_template,
        )

    def rate_limit(self, identity: str) -> str:
        """Key for an identity's request counter."""
        return self.rate_limit_template.format(identity=identity)

    def lock(self, name: str) -> str:
        """Key for a worker lease."""
        return self.lock_template.format(name=name)

    def replay(self, device_id: str, code: str) -> str:
        """Key marking a TOTP code as consumed for one device."""
        return self.replay_template.format(device=device_id, code=code)

    def lockout(self, user_id: str) -> str:
        """Key for a user's failed MFA attempt counter."""
        return self.lockout_template.format(user=user_id)
