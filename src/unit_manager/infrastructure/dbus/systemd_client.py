"""
systemd D-Bus client.

Implements IControlBusPort on top of dbus-fast's asyncio MessageBus by
calling org.freedesktop.systemd1.Manager methods directly.

Job results are delivered by systemd's JobRemoved signal, which is matched
to the waiting future by job object path. Unit changes are detected by
polling ListUnits and diffing consecutive replies.
"""

import asyncio
from typing import Any, Dict, List, Optional, Set, Tuple

import structlog
from dbus_fast import BusType, Message, MessageType, Variant
from dbus_fast.aio import MessageBus

from unit_manager.domain.errors import BusError, DisconnectedError
from unit_manager.domain.ports import IChangeSubscription, IControlBusPort
from unit_manager.domain.value_objects import ChangeBatch, JobVerb, UnitFileChange, UnitStatus


logger = structlog.get_logger(__name__)

SYSTEMD_BUS_NAME = "org.freedesktop.systemd1"
SYSTEMD_PATH = "/org/freedesktop/systemd1"
SYSTEMD_UNIT_PATH = "/org/freedesktop/systemd1/unit"
MANAGER_INTERFACE = "org.freedesktop.systemd1.Manager"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"

DBUS_BUS_NAME = "org.freedesktop.DBus"
DBUS_PATH = "/org/freedesktop/DBus"
DBUS_INTERFACE = "org.freedesktop.DBus"

JOB_REMOVED_MATCH = (
    f"type='signal',sender='{SYSTEMD_BUS_NAME}',interface='{MANAGER_INTERFACE}',"
    f"member='JobRemoved',path='{SYSTEMD_PATH}'"
)

BUS_TYPES = {
    "system": BusType.SYSTEM,
    "session": BusType.SESSION,
}

# Basic types whose literal form is printed without a type marker.
_UNTAGGED_SIGNATURES = {"s", "o", "g", "b", "i", "d"}


def bus_path_escape(name: str) -> str:
    """
    Escape a unit name for use as an object path element.

    Every byte other than an ASCII letter, or a digit in a non-leading
    position, is replaced by ``_`` followed by two lowercase hex digits.
    """
    if not name:
        return "_"
    escaped = []
    for i, byte in enumerate(name.encode("utf-8")):
        char = chr(byte)
        if ("a" <= char <= "z") or ("A" <= char <= "Z") or ("0" <= char <= "9" and i > 0):
            escaped.append(char)
        else:
            escaped.append(f"_{byte:02x}")
    return "".join(escaped)


def unit_path(unit: str) -> str:
    """Object path of a unit."""
    return f"{SYSTEMD_UNIT_PATH}/{bus_path_escape(unit)}"


def variant_to_text(variant: Optional[Variant]) -> str:
    """
    Render a variant in bus text form.

    Values whose literal would be ambiguous carry a ``@<type> `` marker,
    e.g. an unsigned 64-bit timestamp becomes ``@t 1700000000000000``.
    """
    if variant is None:
        return ""
    signature, value = variant.signature, variant.value
    if signature in ("s", "o", "g"):
        return value
    if signature == "b":
        return "true" if value else "false"
    if signature in _UNTAGGED_SIGNATURES:
        return str(value)
    if len(signature) == 1:
        return f"@{signature} {value}"
    return str(value)


def unit_status_from_struct(fields: List[Any]) -> UnitStatus:
    """Build a UnitStatus from one (ssssssouso) entry of a ListUnits reply."""
    name, description, load_state, active_state, sub_state, followed, path, job_id, job_type, job_path = fields
    return UnitStatus(
        name=name,
        description=description,
        load_state=load_state,
        active_state=active_state,
        sub_state=sub_state,
        followed=followed,
        path=path,
        job_id=job_id,
        job_type=job_type,
        job_path=job_path,
    )


def diff_units(
    previous: Dict[str, UnitStatus],
    current: Dict[str, UnitStatus],
) -> ChangeBatch:
    """
    Compute the change batch between two unit listings.

    New and modified units map to their current status, vanished units to
    None.
    """
    changes: ChangeBatch = {}
    for name, status in current.items():
        if previous.get(name) != status:
            changes[name] = status
    for name in previous.keys() - current.keys():
        changes[name] = None
    return changes


class _EndOfStream:
    pass


_END = _EndOfStream()


class PollingSubscription(IChangeSubscription):
    """
    Change subscription backed by periodic ListUnits calls.

    Only units in ``units`` are reported. At most ``buffer`` batches are
    queued; beyond that polling waits for the consumer.
    """

    def __init__(
        self,
        client: "SystemdBusClient",
        units: Set[str],
        interval: float = 1.0,
        buffer: int = 10,
    ):
        self._client = client
        self._units = frozenset(units)
        self._interval = interval
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=buffer)
        self._closed = False
        self._task = asyncio.create_task(self._poll())

    async def __anext__(self) -> ChangeBatch:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self._closed = True
            raise StopAsyncIteration
        return item

    async def close(self) -> None:
        if self._task.done():
            self._closed = True
            return
        self._closed = True
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _poll(self) -> None:
        previous: Dict[str, UnitStatus] = {}
        while self._client.connected():
            try:
                units = await self._client.list_units()
            except BusError as e:
                logger.warning("Failed to list units", error=str(e))
            else:
                current = {u.name: u for u in units if u.name in self._units}
                changes = diff_units(previous, current)
                previous = current
                if changes:
                    await self._queue.put(changes)
            await asyncio.sleep(self._interval)

        logger.debug("Subscription ended, bus disconnected", units=sorted(self._units))
        await self._queue.put(_END)


class SystemdBusClient(IControlBusPort):
    """
    Client of systemd's D-Bus API.

    Use SystemdBusClient.connect() to create a connected instance.
    """

    def __init__(
        self,
        bus: MessageBus,
        subscription_interval: float = 1.0,
        subscription_buffer: int = 10,
    ):
        """
        Initialize client around an already connected message bus.

        Args:
            bus: Connected dbus-fast message bus
            subscription_interval: Seconds between two unit list polls
            subscription_buffer: Change batches buffered per subscription
        """
        self._bus = bus
        self._subscription_interval = subscription_interval
        self._subscription_buffer = subscription_buffer
        self._closed = False

        # Job path -> (unit, future) awaiting the job's JobRemoved signal
        self._jobs: Dict[str, Tuple[str, "asyncio.Future[str]"]] = {}
        # Results that arrived before the submitting call registered its future
        self._early_results: Dict[str, str] = {}
        self._submissions_in_flight = 0

        self._bus.add_message_handler(self._on_message)

    @classmethod
    async def connect(
        cls,
        bus_type: str = "system",
        subscription_interval: float = 1.0,
        subscription_buffer: int = 10,
    ) -> "SystemdBusClient":
        """
        Connect to systemd and subscribe to job signals.

        Raises:
            BusError: If the bus can't be reached or systemd refused the subscription
        """
        try:
            bus = await MessageBus(bus_type=BUS_TYPES[bus_type]).connect()
        except Exception as e:
            raise BusError(f"failed to connect to the {bus_type} bus: {e}") from e

        client = cls(
            bus,
            subscription_interval=subscription_interval,
            subscription_buffer=subscription_buffer,
        )
        try:
            await client._subscribe_job_signals()
        except BusError:
            await client.close()
            raise

        logger.info("Connected to systemd", bus=bus_type, unique_name=bus.unique_name)
        return client

    def connected(self) -> bool:
        return not self._closed and self._bus.connected

    async def _call(
        self,
        member: str,
        signature: str = "",
        body: Optional[List[Any]] = None,
        path: str = SYSTEMD_PATH,
        interface: str = MANAGER_INTERFACE,
        destination: str = SYSTEMD_BUS_NAME,
        unit: Optional[str] = None,
    ) -> List[Any]:
        message = Message(
            destination=destination,
            path=path,
            interface=interface,
            member=member,
            signature=signature,
            body=body or [],
        )
        try:
            reply = await self._bus.call(message)
        except Exception as e:
            raise BusError(f"{member} failed: {e}", unit=unit) from e

        if reply.message_type == MessageType.ERROR:
            text = reply.body[0] if reply.body else reply.error_name
            raise BusError(f"{member} failed: {text}", name=reply.error_name, unit=unit)
        return reply.body

    async def _subscribe_job_signals(self) -> None:
        await self._call(
            "AddMatch",
            "s",
            [JOB_REMOVED_MATCH],
            path=DBUS_PATH,
            interface=DBUS_INTERFACE,
            destination=DBUS_BUS_NAME,
        )
        # systemd only emits job signals once a client subscribed.
        try:
            await self._call("Subscribe")
        except BusError as e:
            if e.name != "org.freedesktop.systemd1.AlreadySubscribed":
                raise

    def _on_message(self, message: Message) -> None:
        if (
            message.message_type != MessageType.SIGNAL
            or message.interface != MANAGER_INTERFACE
            or message.member != "JobRemoved"
        ):
            return None

        _, job, unit, result = message.body
        entry = self._jobs.pop(job, None)
        if entry is None:
            if self._submissions_in_flight:
                self._early_results[job] = result
            return None

        _, future = entry
        if not future.done():
            future.set_result(result)
        logger.debug("Job removed", job=job, unit=unit, result=result)
        return None

    async def submit_job(
        self,
        unit: str,
        verb: str,
        mode: str,
        result: "asyncio.Future[str]",
    ) -> str:
        method = JobVerb(verb).method

        self._submissions_in_flight += 1
        try:
            (job,) = await self._call(method, "ss", [unit, mode], unit=unit)
        finally:
            self._submissions_in_flight -= 1

        early = self._early_results.pop(job, None)
        if early is not None:
            if not result.done():
                result.set_result(early)
        else:
            self._jobs[job] = (unit, result)
            result.add_done_callback(lambda _: self._jobs.pop(job, None))

        if not self._submissions_in_flight:
            self._early_results.clear()

        return job

    async def reload_job(self, unit: str, mode: str) -> str:
        (job,) = await self._call(JobVerb.RELOAD.method, "ss", [unit, mode], unit=unit)
        return job

    async def get_property(self, unit: str, interface: str, name: str) -> str:
        (variant,) = await self._call(
            "Get",
            "ss",
            [interface, name],
            path=unit_path(unit),
            interface=PROPERTIES_INTERFACE,
            unit=unit,
        )
        return variant_to_text(variant)

    async def list_units(self) -> List[UnitStatus]:
        """Return the status of every unit currently loaded by systemd."""
        (units,) = await self._call("ListUnits")
        return [unit_status_from_struct(fields) for fields in units]

    def subscribe_changes(self, units: Set[str]) -> PollingSubscription:
        return PollingSubscription(
            self,
            units,
            interval=self._subscription_interval,
            buffer=self._subscription_buffer,
        )

    async def link_unit_files(
        self,
        files: List[str],
        runtime: bool = True,
        force: bool = True,
    ) -> List[UnitFileChange]:
        """
        Link unit files from outside the search path into systemd's unit directories.

        Args:
            files: Absolute paths of unit files
            runtime: Link into /run (until reboot) instead of /etc
            force: Replace existing symlinks
        """
        (changes,) = await self._call("LinkUnitFiles", "asbb", [files, runtime, force])
        return [UnitFileChange(*change) for change in changes]

    async def disable_unit_files(
        self,
        names: List[str],
        runtime: bool = True,
    ) -> List[UnitFileChange]:
        """Remove the symlinks created for the given units."""
        (changes,) = await self._call("DisableUnitFiles", "asb", [names, runtime])
        return [UnitFileChange(*change) for change in changes]

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        self._bus.remove_message_handler(self._on_message)
        for job, (unit, future) in list(self._jobs.items()):
            if not future.done():
                future.set_exception(DisconnectedError(unit))
        self._jobs.clear()
        self._early_results.clear()

        self._bus.disconnect()
        try:
            await self._bus.wait_for_disconnect()
        except Exception as e:
            logger.debug("Bus disconnected with error", error=str(e))
        logger.info("Disconnected from systemd")
