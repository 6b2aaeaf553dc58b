"""
Unit Value Objects

Immutable value objects describing units, jobs and status changes.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional


# Terminal job result reported by systemd when a job succeeded.
JOB_DONE = "done"

# Job mode replacing any conflicting queued job for the unit.
JOB_MODE_REPLACE = "replace"


class JobVerb(str, Enum):
    """Control operation submitted to systemd as a job."""

    START = "start"
    STOP = "stop"
    RESTART = "restart"
    RELOAD = "reload"

    @property
    def method(self) -> str:
        """Name of the systemd Manager method submitting this job."""
        return f"{self.value.capitalize()}Unit"


class ActiveState(str, Enum):
    """Coarse-grained unit state as reported by systemd."""

    ACTIVE = "active"
    RELOADING = "reloading"
    INACTIVE = "inactive"
    FAILED = "failed"
    ACTIVATING = "activating"
    DEACTIVATING = "deactivating"


@dataclass(frozen=True)
class UnitStatus:
    """
    Snapshot of a unit's state at the moment of a change notification.

    Mirrors one entry of systemd's ``ListUnits`` reply. Only
    ``active_state`` is interpreted by the manager; every other field is
    passed through as reported.
    """

    name: str
    description: str = ""
    load_state: str = ""
    active_state: str = ""
    sub_state: str = ""
    followed: str = ""
    path: str = ""
    job_id: int = 0
    job_type: str = ""
    job_path: str = ""

    @property
    def is_active(self) -> bool:
        return self.active_state == ActiveState.ACTIVE.value

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


@dataclass(frozen=True)
class UnitFileChange:
    """One change performed by systemd when linking or disabling unit files."""

    type: str
    filename: str
    destination: str


# Units that changed together in one notification tick. A value of None
# means the unit vanished from the daemon's set of loaded units.
ChangeBatch = Dict[str, Optional[UnitStatus]]
