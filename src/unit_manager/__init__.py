"""
Unit Manager

Lifecycle control of systemd units over D-Bus: start, stop, restart,
uptime and change watching.
"""

__version__ = "0.1.0"

from .application.services.unit_manager import UnitManager
from .domain.errors import (
    BusError,
    DisconnectedError,
    JobFailedError,
    JobSubmissionError,
    MalformedTimestampError,
    MissingChannelError,
    PropertyLookupError,
    UnitManagerError,
)
from .domain.value_objects import ChangeBatch, JobVerb, UnitStatus

__all__ = [
    "UnitManager",
    "BusError",
    "DisconnectedError",
    "JobFailedError",
    "JobSubmissionError",
    "MalformedTimestampError",
    "MissingChannelError",
    "PropertyLookupError",
    "UnitManagerError",
    "ChangeBatch",
    "JobVerb",
    "UnitStatus",
]
