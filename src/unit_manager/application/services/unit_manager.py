"""
Unit Manager

Public facade controlling the lifecycle of systemd units.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import NoReturn, Optional

import structlog

from unit_manager.application.services.job_correlator import JobCorrelator
from unit_manager.application.services.status_dispatcher import StatusDispatcher
from unit_manager.domain.errors import BusError, DisconnectedError, PropertyLookupError
from unit_manager.domain.ports import IControlBusPort
from unit_manager.domain.timestamps import decode_usec_timestamp, strip_type_tag
from unit_manager.domain.value_objects import JOB_MODE_REPLACE, JobVerb, UnitStatus
from unit_manager.infrastructure.config.settings import Settings, get_settings
from unit_manager.infrastructure.monitoring.tracing import OperationTrace


logger = structlog.get_logger(__name__)

SERVICE_INTERFACE = "org.freedesktop.systemd1.Service"
PROPERTY_START_TIMESTAMP = "ExecMainStartTimestamp"


class UnitManager:
    """
    Manages units through a connection to systemd's control bus.

    The connection is created once and shared by every operation; it is
    closed exactly once, by a background task, when the stop event given
    at creation is set. The manager holds no other state, so it is safe to
    use from concurrent tasks for the same or different units.

    Usage:
        async with await UnitManager.create() as manager:
            await manager.start("nginx.service")
            print(await manager.uptime("nginx.service"))
    """

    def __init__(
        self,
        bus: IControlBusPort,
        stop_event: Optional[asyncio.Event] = None,
        job_mode: str = JOB_MODE_REPLACE,
    ):
        """
        Initialize the manager and schedule the connection teardown.

        Must be called from a running event loop. Does not wait for the
        teardown; see close() for that.

        Args:
            bus: Connected control bus, owned by the manager from now on
            stop_event: Event ending the manager's lifetime when set
            job_mode: Mode used for every submitted job
        """
        self._bus = bus
        self._stop_event = stop_event or asyncio.Event()
        self._job_mode = job_mode
        self._jobs = JobCorrelator(bus, mode=job_mode)
        self._dispatcher = StatusDispatcher(bus)
        self._teardown = asyncio.create_task(self._close_when_stopped())

    @classmethod
    async def create(
        cls,
        stop_event: Optional[asyncio.Event] = None,
        settings: Optional[Settings] = None,
        bus: Optional[IControlBusPort] = None,
    ) -> "UnitManager":
        """
        Connect to systemd and return a manager.

        Args:
            stop_event: Event ending the manager's lifetime when set
            settings: Settings, defaults to get_settings()
            bus: Already connected bus to use instead of connecting to systemd

        Returns:
            UnitManager instance
        """
        settings = settings or get_settings()
        if bus is None:
            # Imported here so the application layer doesn't require dbus-fast
            # when a bus is injected.
            from unit_manager.infrastructure.dbus.systemd_client import SystemdBusClient

            bus = await SystemdBusClient.connect(
                bus_type=settings.bus_type,
                subscription_interval=settings.subscription_interval,
                subscription_buffer=settings.subscription_buffer,
            )
        return cls(bus, stop_event=stop_event, job_mode=settings.job_mode)

    async def _close_when_stopped(self) -> None:
        await self._stop_event.wait()
        await self._bus.close()
        logger.debug("Control bus connection closed")

    async def close(self) -> None:
        """End the manager's lifetime and wait for the connection to close."""
        self._stop_event.set()
        await self._teardown

    async def __aenter__(self) -> "UnitManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def connected(self) -> bool:
        return self._bus.connected()

    async def _run_job(self, unit: str, verb: JobVerb, timeout: Optional[float]) -> None:
        async with OperationTrace(verb.value, unit) as trace:
            trace.set_attribute("job_mode", self._job_mode)
            await self._jobs.execute(unit, verb, timeout=timeout)

    async def start(self, unit: str, timeout: Optional[float] = None) -> None:
        """Synchronously start a unit."""
        await self._run_job(unit, JobVerb.START, timeout)

    async def stop(self, unit: str, timeout: Optional[float] = None) -> None:
        """Synchronously stop a unit."""
        await self._run_job(unit, JobVerb.STOP, timeout)

    async def restart(self, unit: str, timeout: Optional[float] = None) -> None:
        """Synchronously reload and restart a unit."""
        await self._run_job(unit, JobVerb.RESTART, timeout)

    async def uptime(self, unit: str, timeout: Optional[float] = None) -> timedelta:
        """
        Return the time elapsed since the unit's main process started.

        Raises:
            DisconnectedError: If the bus is not connected, before the lookup
            PropertyLookupError: If systemd rejected the lookup
            MalformedTimestampError: If the start timestamp is absent or invalid
        """
        async with OperationTrace("uptime", unit) as trace:
            if not self.connected:
                raise DisconnectedError(unit)

            lookup = self._bus.get_property(unit, SERVICE_INTERFACE, PROPERTY_START_TIMESTAMP)
            try:
                if timeout is None:
                    value = await lookup
                else:
                    value = await asyncio.wait_for(lookup, timeout=timeout)
            except BusError as e:
                raise PropertyLookupError(unit, PROPERTY_START_TIMESTAMP, e.message) from e

            started_at = decode_usec_timestamp(strip_type_tag(value), unit=unit)
            uptime = datetime.now(timezone.utc) - started_at
            trace.set_attribute("uptime_seconds", uptime.total_seconds())
            return uptime

    async def watch(
        self,
        unit: str,
        out: "Optional[asyncio.Queue[Optional[UnitStatus]]]",
        timeout: Optional[float] = None,
    ) -> NoReturn:
        """
        Forward status changes of a unit to ``out``. Blocks until cancelled.

        See StatusDispatcher.watch.
        """
        async with OperationTrace("watch", unit):
            await self._dispatcher.watch(unit, out, timeout=timeout)
