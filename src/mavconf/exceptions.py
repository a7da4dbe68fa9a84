"""Custom exception hierarchy for mavconf."""

from __future__ import annotations

from pathlib import Path


class MavconfError(Exception):
    """Base exception for all mavconf errors."""


class MavconfConfigError(MavconfError):
    """Invalid or missing configuration (e.g. a malformed connection string)."""


class MavconfTransportError(MavconfError):
    """Link-level failure while reading from or writing to the vehicle."""

    def __init__(self, message: str, *, connection: str = "") -> None:
        self.connection = connection
        super().__init__(message)


class MavconfConnectionClosedError(MavconfTransportError):
    """The dispatch loop has terminated; the connection can no longer be used.

    Every pending request and open subscription fails with this error once
    the loop stops, and every later operation raises it immediately.
    """


class MavconfProtocolTimeout(MavconfError):
    """No matching reply arrived within the bounded wait."""

    def __init__(self, message: str, *, received: int = 0, expected: int = 0) -> None:
        self.received = received
        self.expected = expected
        super().__init__(message)


class MavconfParseError(MavconfError):
    """A parameter file line or numeric field could not be parsed."""

    def __init__(
        self,
        message: str,
        *,
        line_number: int | None = None,
        path: Path | str | None = None,
    ) -> None:
        self.line_number = line_number
        self.path = path
        super().__init__(message)


class MavconfCancelled(MavconfError):
    """The operator aborted an interactive selection or edit."""


class MavconfDefinitionError(MavconfError):
    """Parameter definition metadata could not be loaded or parsed."""
