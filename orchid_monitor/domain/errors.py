from __future__ import annotations


class OrchidMonitorError(Exception):
    """Base class for errors raised by the monitor core."""


class ValidationError(OrchidMonitorError, ValueError):
    """A user-supplied reading or policy is missing fields or not numeric."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class DecodeError(OrchidMonitorError):
    """An inbound transport payload could not be turned into a reading."""


class StorageError(OrchidMonitorError):
    """The durable store failed on an operation that cannot degrade."""
