"""
Control Bus Port Interface

Defines the contract required from a client of systemd's control bus.
This is an output port - implemented by the infrastructure layer.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import AsyncIterator, Set

from unit_manager.domain.value_objects import ChangeBatch


class IChangeSubscription(ABC):
    """
    A live subscription to unit change batches.

    Iterating yields one ChangeBatch per notification tick, in delivery
    order, until the subscription is closed or the connection goes away.
    """

    def __aiter__(self) -> AsyncIterator[ChangeBatch]:
        return self

    @abstractmethod
    async def __anext__(self) -> ChangeBatch:
        pass

    @abstractmethod
    async def close(self) -> None:
        """Terminate the subscription. Safe to call more than once."""
        pass


class IControlBusPort(ABC):
    """
    Port interface for systemd's control bus.

    Implementations must be safe for concurrent use from multiple tasks
    and raise BusError when the bus rejects a call.
    """

    @abstractmethod
    def connected(self) -> bool:
        """
        Non-blocking liveness check.

        Returns:
            True if the bus connection is usable, False otherwise
        """
        pass

    @abstractmethod
    async def submit_job(
        self,
        unit: str,
        verb: str,
        mode: str,
        result: "asyncio.Future[str]",
    ) -> str:
        """
        Submit a start, stop or restart job for a unit.

        Returns as soon as systemd has queued the job. The terminal result
        token is set on ``result`` once the job completes; implementations
        must not set it if the future was cancelled in the meantime.

        Args:
            unit: Unit name
            verb: One of "start", "stop", "restart"
            mode: Job mode, e.g. "replace"
            result: Single-slot future receiving the job result token

        Returns:
            Object path of the queued job
        """
        pass

    @abstractmethod
    async def reload_job(self, unit: str, mode: str) -> str:
        """
        Submit a reload job whose result nobody waits for.

        Returns:
            Object path of the queued job
        """
        pass

    @abstractmethod
    async def get_property(self, unit: str, interface: str, name: str) -> str:
        """
        Look up a unit property.

        Args:
            unit: Unit name
            interface: D-Bus interface owning the property
            name: Property name

        Returns:
            Value in bus text form, possibly type-tagged (``@t 123``);
            empty string if the property has no value
        """
        pass

    @abstractmethod
    def subscribe_changes(self, units: Set[str]) -> IChangeSubscription:
        """
        Open a subscription to status changes of the given units.

        Implementations may still deliver unrelated units in a batch.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Idempotent."""
        pass
