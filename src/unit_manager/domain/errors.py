"""
Domain Errors

Error taxonomy for unit lifecycle operations.

Every error carries the unit name and, where applicable, the job verb and
the raw result token reported by systemd, so that operators can correlate
failures with the daemon's own logs. Cancellation and deadlines are not
part of this hierarchy: asyncio.CancelledError and asyncio.TimeoutError
propagate to the caller unchanged.
"""

from typing import Any, Dict, Optional


class UnitManagerError(Exception):
    """Base class for all unit manager errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def unit(self) -> Optional[str]:
        return self.details.get("unit")


class DisconnectedError(UnitManagerError):
    """The systemd D-Bus API client is disconnected."""

    def __init__(self, unit: Optional[str] = None):
        message = "systemd D-Bus API client is disconnected"
        if unit:
            message = f"{message}, can't operate on unit {unit!r}"
        super().__init__(message, {"unit": unit})


class MissingChannelError(UnitManagerError):
    """Watch was called without an output queue."""

    def __init__(self, unit: str):
        super().__init__(
            f"a queue is required for watching unit {unit!r} status changes",
            {"unit": unit},
        )


class BusError(UnitManagerError):
    """A call on the control bus was rejected.

    Raised by control bus port implementations. ``name`` is the bus error
    name (e.g. ``org.freedesktop.systemd1.NoSuchUnit``) when one is known.
    """

    def __init__(self, message: str, name: Optional[str] = None, unit: Optional[str] = None):
        super().__init__(message, {"unit": unit, "name": name})
        self.name = name


class JobSubmissionError(UnitManagerError):
    """The bus rejected the job request itself."""

    def __init__(self, unit: str, verb: str, reason: str = ""):
        message = f"failed to {verb} unit {unit!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, {"unit": unit, "verb": verb})
        self.verb = verb


class JobFailedError(UnitManagerError):
    """The job completed with a result other than ``done``."""

    def __init__(self, unit: str, verb: str, result: str):
        super().__init__(
            f"failed to {verb} unit {unit!r} with result {result!r}",
            {"unit": unit, "verb": verb, "result": result},
        )
        self.verb = verb
        self.result = result


class PropertyLookupError(UnitManagerError):
    """A unit property could not be retrieved."""

    def __init__(self, unit: str, property_name: str, reason: str = ""):
        message = f"failed to retrieve property {property_name!r} for unit {unit!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, {"unit": unit, "property": property_name})


class MalformedTimestampError(UnitManagerError, ValueError):
    """A bus timestamp is not a base-10 integer count of microseconds."""

    def __init__(self, value: str, unit: Optional[str] = None):
        super().__init__(
            f"malformed timestamp {value!r}, expected microseconds since the epoch",
            {"unit": unit, "value": value},
        )
        self.value = value
