"""
Operation tracing for unit lifecycle calls.

Each public manager operation runs inside an OperationTrace, which logs
when the operation starts and how it ended (succeeded, failed or
cancelled) together with the unit name and the wall-clock duration.
"""

import asyncio
import time
from typing import Any, Dict, Optional

import structlog


logger = structlog.get_logger(__name__)


class OperationTrace:
    """
    Async context manager tracing a single unit operation.

    Exceptions are never suppressed.

    Examples:
        >>> async with OperationTrace("start", unit="nginx.service") as trace:
        ...     await correlator.execute("nginx.service", "start")
        ...     trace.set_attribute("job_mode", "replace")
    """

    def __init__(self, operation: str, unit: str):
        self.operation = operation
        self.unit = unit
        self.attributes: Dict[str, Any] = {}
        self.status: Optional[str] = None
        self._start_time: Optional[float] = None
        self.duration_ms: Optional[float] = None

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    async def __aenter__(self) -> "OperationTrace":
        self._start_time = time.perf_counter()
        logger.debug(
            "Operation started",
            operation=self.operation,
            unit=self.unit,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.duration_ms = round((time.perf_counter() - self._start_time) * 1000, 3)
        fields = {
            "operation": self.operation,
            "unit": self.unit,
            "duration_ms": self.duration_ms,
            **self.attributes,
        }

        if exc_type is None:
            self.status = "ok"
            logger.info("Operation succeeded", **fields)
        elif issubclass(exc_type, asyncio.CancelledError):
            self.status = "cancelled"
            logger.info("Operation cancelled", **fields)
        elif issubclass(exc_type, asyncio.TimeoutError):
            self.status = "timeout"
            logger.warning("Operation timed out", **fields)
        else:
            self.status = "error"
            logger.error(
                "Operation failed",
                error=str(exc_val),
                error_type=exc_type.__name__,
                **fields,
            )

        return False  # Don't suppress exceptions
