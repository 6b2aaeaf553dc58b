"""
Status Dispatcher

Narrows the bus-wide stream of unit change batches down to a single unit
and forwards its snapshots to a caller-supplied queue.
"""

import asyncio
from typing import NoReturn, Optional

import structlog

from unit_manager.domain.errors import DisconnectedError, MissingChannelError
from unit_manager.domain.ports import IControlBusPort
from unit_manager.domain.value_objects import UnitStatus


logger = structlog.get_logger(__name__)


class StatusDispatcher:
    """
    Forwards status changes of one unit to a queue.

    Each watch opens its own subscription; concurrent watches, for the
    same unit or not, never share one.
    """

    def __init__(self, bus: IControlBusPort):
        self._bus = bus

    async def watch(
        self,
        unit: str,
        out: "Optional[asyncio.Queue[Optional[UnitStatus]]]",
        timeout: Optional[float] = None,
    ) -> NoReturn:
        """
        Forward status changes of ``unit`` to ``out`` until cancelled.

        Snapshots are put on the queue in delivery order. ``None`` is put
        when the unit vanished from systemd's loaded units. A full queue
        stalls delivery, nothing is dropped.

        This call never returns normally.

        Args:
            unit: Unit name
            out: Queue receiving the snapshots
            timeout: Optional deadline in seconds

        Raises:
            MissingChannelError: If out is None, before any bus interaction
            DisconnectedError: If the bus is, or becomes, disconnected
            asyncio.CancelledError: If the watching task was cancelled
            asyncio.TimeoutError: If timeout elapsed
        """
        if out is None:
            raise MissingChannelError(unit)

        if not self._bus.connected():
            raise DisconnectedError(unit)

        if timeout is None:
            await self._dispatch(unit, out)
        else:
            await asyncio.wait_for(self._dispatch(unit, out), timeout=timeout)

    async def _dispatch(self, unit: str, out: "asyncio.Queue[Optional[UnitStatus]]") -> NoReturn:
        subscription = self._bus.subscribe_changes({unit})
        logger.debug("Subscribed to unit changes", unit=unit)
        try:
            async for changes in subscription:
                # Some systemd versions report unrelated units in the same batch.
                if unit not in changes:
                    continue
                await out.put(changes[unit])
        finally:
            await subscription.close()
            logger.debug("Unsubscribed from unit changes", unit=unit)

        # The stream only ends when the connection went away.
        raise DisconnectedError(unit)
