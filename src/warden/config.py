from __future__ import annotations

import os
import socket
from enum import Enum
from uuid import uuid4

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_instance_id() -> str:
    hostname = os.environ.get("HOSTNAME") or os.environ.get("POD_NAME") or socket.gethostname()
    return f"{hostname}-{uuid4().hex[:8]}"


class FailurePolicy(str, Enum):
    """What a periodic coordination loop does when the store fails."""

    FAIL_FAST = "fail_fast"
    RETRY = "retry"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WARDEN_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = "warden"

    # Instance ID for presence and lease ownership
    instance_id: str = Field(default_factory=_default_instance_id)

    # Backing store
    store_type: str = "redis"  # redis or valkey
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        validation_alias=AliasChoices("redis_url", "WARDEN_REDIS_URL", "REDIS_URL"),
    )
    store_hosts: list[str] = Field(default_factory=list)
    store_password: str | None = None
    store_tls_enabled: bool = False

    # Upper bound for a single store command, in seconds
    command_timeout: float = 5.0

    # Presence registry
    registry_key: str = "app:identity"
    heartbeat_interval: int = 60
    presence_max_lifetime: int = 60

    # Rate limiting (fixed window)
    rate_limit_key_template: str = "app:ratelimit:{identity}"
    rate_limit_window: int = 60

    # Worker leases
    lock_key_template: str = "app:worker:lock:{name}"
    lease_ttl: int = 60
    lease_refresh_interval: int = 55
    lease_strict_refresh: bool = False

    # TOTP replay protection
    replay_key_template: str = "totp:used:{device}:{code}"
    replay_ttl: int = 90

    # MFA lockout
    lockout_key_template: str = "mfa:attempts:{user}"
    lockout_ttl: int = 900
    lockout_max_attempts: int = 5

    # Heartbeat and lease loops
    loop_failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST

    # Observability
    log_level: str = "INFO"
    log_json: bool = True

    @model_validator(mode="after")
    def _validate_coordination(self) -> Settings:
        """Reject settings the coordination primitives cannot honour."""
        if self.store_type not in ("redis", "valkey"):
            raise ValueError(f"store_type must be 'redis' or 'valkey', got {self.store_type!r}")

        for name in (
            "heartbeat_interval",
            "presence_max_lifetime",
            "rate_limit_window",
            "lease_ttl",
            "lease_refresh_interval",
            "replay_ttl",
            "lockout_ttl",
            "lockout_max_attempts",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.command_timeout <= 0:
            raise ValueError("command_timeout must be positive")

        # A live holder must never let its lease lapse between refreshes
        if self.lease_refresh_interval >= self.lease_ttl:
            raise ValueError(
                f"lease_refresh_interval ({self.lease_refresh_interval}s) must be "
                f"shorter than lease_ttl ({self.lease_ttl}s)"
            )

        for name, placeholders in (
            ("rate_limit_key_template", ("{identity}",)),
            ("lock_key_template", ("{name}",)),
            ("replay_key_template", ("{device}", "{code}")),
            ("lockout_key_template", ("{user}",)),
        ):
            template = getattr(self, name)
            for placeholder in placeholders:
                if placeholder not in template:
                    raise ValueError(f"{name} must contain {placeholder}")
        return self
