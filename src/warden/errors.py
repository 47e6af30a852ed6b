"""Exceptions raised by the coordination layer.

Absent keys and lost contention are ordinary return values, not errors:
- ``get_attempts`` returns 0, ``is_used`` returns False
- ``try_acquire`` and ``mark_used`` return False when someone got there first

Only failures of the backing store itself are raised.
"""

from __future__ import annotations


class CoordinationError(Exception):
    """Base exception for coordination errors."""

    pass


class StoreUnavailableError(CoordinationError):
    """The backing store could not be reached or rejected a command.

    Raised for connection failures, timeouts and protocol-level errors.
    The underlying ``redis`` exception is chained as ``__cause__``.
    """

    def __init__(self, command: str, message: str) -> None:
        self.command = command
        super().__init__(f"{command} failed: {message}")


class ConfigurationError(CoordinationError):
    """A primitive was constructed with values it cannot honour."""

    pass
