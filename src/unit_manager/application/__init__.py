"""
Application Layer

Orchestrates the control bus port to implement unit lifecycle use cases.
"""

from .services import JobCorrelator, StatusDispatcher, UnitManager

__all__ = [
    "JobCorrelator",
    "StatusDispatcher",
    "UnitManager",
]
