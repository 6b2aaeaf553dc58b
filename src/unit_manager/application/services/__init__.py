"""
Application Services

Service classes for handling use cases.
"""

from .job_correlator import JobCorrelator
from .status_dispatcher import StatusDispatcher
from .unit_manager import UnitManager

__all__ = [
    "JobCorrelator",
    "StatusDispatcher",
    "UnitManager",
]
