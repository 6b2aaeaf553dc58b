"""
Job Correlator

Turns systemd's asynchronously completed jobs into synchronous,
cancellable calls.
"""

import asyncio
from typing import Optional, Union

import structlog

from unit_manager.domain.errors import BusError, DisconnectedError, JobFailedError, JobSubmissionError
from unit_manager.domain.ports import IControlBusPort
from unit_manager.domain.value_objects import JOB_DONE, JOB_MODE_REPLACE, JobVerb


logger = structlog.get_logger(__name__)


class JobCorrelator:
    """
    Drives one start, stop or restart request to completion.

    Every call submits its own job with a dedicated single-slot future and
    waits for either the job's terminal result or cancellation of the
    awaiting task, whichever happens first. Cancelling leaves the job
    running in systemd.
    """

    def __init__(self, bus: IControlBusPort, mode: str = JOB_MODE_REPLACE):
        """
        Initialize job correlator.

        Args:
            bus: Control bus the jobs are submitted to
            mode: Job mode used for every submitted job
        """
        self._bus = bus
        self._mode = mode

    async def execute(
        self,
        unit: str,
        verb: Union[JobVerb, str],
        timeout: Optional[float] = None,
    ) -> None:
        """
        Submit a job for a unit and wait for its terminal result.

        Args:
            unit: Unit name
            verb: start, stop or restart
            timeout: Optional deadline in seconds for the whole call

        Raises:
            DisconnectedError: If the bus is not connected, before any bus call
            JobSubmissionError: If systemd rejected the job
            JobFailedError: If the job finished with a result other than "done"
            asyncio.CancelledError: If the awaiting task was cancelled
            asyncio.TimeoutError: If timeout elapsed first
        """
        verb = JobVerb(verb)
        if verb is JobVerb.RELOAD:
            raise ValueError("reload jobs are not correlated, use start, stop or restart")

        if not self._bus.connected():
            raise DisconnectedError(unit)

        if timeout is None:
            await self._execute(unit, verb)
        else:
            await asyncio.wait_for(self._execute(unit, verb), timeout=timeout)

    async def _execute(self, unit: str, verb: JobVerb) -> None:
        if verb is JobVerb.RESTART:
            await self._reload(unit)

        loop = asyncio.get_running_loop()
        result: "asyncio.Future[str]" = loop.create_future()

        try:
            job = await self._bus.submit_job(unit, verb.value, self._mode, result)
        except BusError as e:
            raise JobSubmissionError(unit, verb.value, e.message) from e

        logger.debug("Job queued", unit=unit, verb=verb.value, job=job)

        token = await result
        if token != JOB_DONE:
            raise JobFailedError(unit, verb.value, token)

    async def _reload(self, unit: str) -> None:
        """
        Reload the unit so that on-disk changes are picked up before a restart.

        Reloading a unit that isn't running is expected to fail, so the
        outcome is ignored.
        """
        try:
            await self._bus.reload_job(unit, self._mode)
        except Exception as e:
            logger.debug("Ignoring reload failure", unit=unit, error=str(e))
