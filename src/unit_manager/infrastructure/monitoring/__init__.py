"""
Monitoring Infrastructure
"""

from .tracing import OperationTrace

__all__ = ["OperationTrace"]
