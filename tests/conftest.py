"""
Shared test fixtures.

Provides an in-memory control bus standing in for systemd, and helpers
to wait on asynchronous conditions.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set, Tuple

import pytest

from unit_manager.domain.errors import BusError
from unit_manager.domain.ports import IChangeSubscription, IControlBusPort
from unit_manager.domain.timestamps import EPOCH
from unit_manager.domain.value_objects import ChangeBatch, UnitStatus


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: needs a running systemd reachable over D-Bus")


class FakeSubscription(IChangeSubscription):
    """Subscription fed by FakeControlBus.publish()."""

    _END = object()

    def __init__(self, units: Set[str]):
        self.units = set(units)
        self.batches: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def __anext__(self) -> ChangeBatch:
        item = await self.batches.get()
        if item is self._END:
            raise StopAsyncIteration
        return item

    def end(self) -> None:
        self.batches.put_nowait(self._END)

    async def close(self) -> None:
        self.closed = True


class FakeControlBus(IControlBusPort):
    """
    In-memory control bus.

    Jobs are resolved with ``auto_result`` on the next loop iteration, or
    manually with complete(). ``immediate_result`` resolves the job before
    submit_job even returns.
    """

    def __init__(self):
        self.is_connected = True
        self.auto_result: Optional[str] = None
        self.immediate_result: Optional[str] = None
        self.submit_error: Optional[BusError] = None
        self.reload_error: Optional[BusError] = None
        self.property_error: Optional[BusError] = None
        self.properties: Dict[Tuple[str, str], str] = {}

        self.calls: List[Tuple[str, str]] = []
        self.jobs: Dict[str, Tuple[str, str, asyncio.Future]] = {}
        self.property_lookups: List[Tuple[str, str, str]] = []
        self.subscriptions: List[FakeSubscription] = []
        self.close_count = 0
        self._job_id = 0

    def connected(self) -> bool:
        return self.is_connected

    def _next_job(self) -> str:
        self._job_id += 1
        return f"/org/freedesktop/systemd1/job/{self._job_id}"

    async def submit_job(self, unit, verb, mode, result) -> str:
        self.calls.append((verb, unit))
        if self.submit_error:
            raise self.submit_error
        job = self._next_job()
        self.jobs[job] = (unit, verb, result)
        if self.immediate_result is not None:
            result.set_result(self.immediate_result)
        elif self.auto_result is not None:
            asyncio.get_running_loop().call_soon(self.complete, job, self.auto_result)
        return job

    async def reload_job(self, unit, mode) -> str:
        self.calls.append(("reload", unit))
        if self.reload_error:
            raise self.reload_error
        return self._next_job()

    def complete(self, job: str, result: str) -> None:
        """Deliver a job's terminal result, unless its waiter went away."""
        _, _, future = self.jobs[job]
        if not future.done():
            future.set_result(result)

    def job_for(self, unit: str) -> str:
        return next(job for job, (u, _, _) in self.jobs.items() if u == unit)

    async def get_property(self, unit, interface, name) -> str:
        self.property_lookups.append((unit, interface, name))
        if self.property_error:
            raise self.property_error
        return self.properties.get((unit, name), "")

    def subscribe_changes(self, units) -> FakeSubscription:
        subscription = FakeSubscription(units)
        self.subscriptions.append(subscription)
        return subscription

    def publish(self, batch: ChangeBatch) -> None:
        """Deliver a change batch to every open subscription."""
        for subscription in self.subscriptions:
            if not subscription.closed:
                subscription.batches.put_nowait(batch)

    async def close(self) -> None:
        self.close_count += 1
        self.is_connected = False


async def wait_for_condition(
    condition: Callable[[], bool], timeout: float = 2.0, interval: float = 0.01
) -> bool:
    """
    Wait for a condition to become true.

    Returns:
        True if condition became true, False if timeout
    """
    loop = asyncio.get_running_loop()
    start = loop.time()
    while (loop.time() - start) < timeout:
        if condition():
            return True
        await asyncio.sleep(interval)
    return False


@pytest.fixture
def fake_bus() -> FakeControlBus:
    """A connected in-memory control bus."""
    return FakeControlBus()


@pytest.fixture
def wait_for():
    """The wait_for_condition helper."""
    return wait_for_condition


@pytest.fixture
def make_status():
    """Factory for UnitStatus snapshots."""

    def _make(name: str, active_state: str = "active", sub_state: str = "running") -> UnitStatus:
        return UnitStatus(
            name=name,
            description=f"{name} test unit",
            load_state="loaded",
            active_state=active_state,
            sub_state=sub_state,
            path=f"/org/freedesktop/systemd1/unit/{name.replace('.', '_2e')}",
        )

    return _make


@pytest.fixture
def usec_timestamp():
    """Encoder turning an aware datetime into a bus microsecond timestamp."""

    def _encode(moment: datetime) -> str:
        delta = moment.astimezone(timezone.utc) - EPOCH
        return str((delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds)

    return _encode
