import asyncio
import uuid
from dataclasses import replace

import structlog
from pydantic import BaseModel
from structlog.stdlib import BoundLogger

from opscockpit.clock import Clock
from opscockpit.clock import RealClock
from opscockpit.commands.command_registry import CommandRegistry
from opscockpit.commands.command_registry import ExecutableSpec
from opscockpit.commands.command_registry import UnknownCommand
from opscockpit.db.job_store import JobStore
from opscockpit.db.job_store import PersistenceError
from opscockpit.execution.execution_adapter import ExecutionAdapter
from opscockpit.execution.execution_adapter import SpawnError
from opscockpit.jobs.job import Job
from opscockpit.jobs.job import JobId
from opscockpit.jobs.job import JobKind
from opscockpit.jobs.job import JobStatus
from opscockpit.jobs.job import status_for_exit_code
from opscockpit.jobs.stream_multiplexer import DEFAULT_QUEUE_SIZE
from opscockpit.jobs.stream_multiplexer import StreamMultiplexer
from opscockpit.notification import events
from opscockpit.notification.channel import NotificationChannel

logger = structlog.stdlib.get_logger(__name__)

DEFAULT_FINALIZE_ATTEMPTS = 3
DEFAULT_FINALIZE_RETRY_DELAY_SECONDS = 0.5


async def _notify(
    channel: NotificationChannel, event: events.EventName, payload: BaseModel
) -> None:
    try:
        await channel.emit(event, payload)
    except Exception:
        logger.exception(f"cannot deliver {event} event, dropping it")


class JobLifecycleManager:
    """
    Owns the state machine of every job started through it:

        running -> success   (exit code 0)
        running -> failed    (any other exit code, no exit code, spawn error)

    This is the only place that writes a job's status and finish time. Jobs that
    are still running are kept in memory; finalizing a job that isn't running
    (anymore) does nothing except log the anomaly.
    """

    def __init__(
        self,
        registry: CommandRegistry,
        adapter: ExecutionAdapter,
        store: JobStore,
        clock: None | Clock = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        finalize_attempts: int = DEFAULT_FINALIZE_ATTEMPTS,
        finalize_retry_delay_seconds: float = DEFAULT_FINALIZE_RETRY_DELAY_SECONDS,
    ) -> None:
        if finalize_attempts < 2:
            raise ValueError(
                f"finalizing has to be retried at least once, got {finalize_attempts} attempt(s)"
            )
        self._registry = registry
        self._adapter = adapter
        self._store = store
        self._clock = clock if clock is not None else RealClock()
        self._queue_size = queue_size
        self._finalize_attempts = finalize_attempts
        self._finalize_retry_delay_seconds = finalize_retry_delay_seconds
        self._running: dict[JobId, Job] = {}

    @property
    def store(self) -> JobStore:
        return self._store

    def running_jobs(self) -> list[Job]:
        return list(self._running.values())

    async def create_job(self, kind: JobKind, command: str) -> Job:
        """Record a new running job; raises PersistenceError if the row can't be written."""
        job = Job(
            id=str(uuid.uuid4()),
            kind=kind,
            command=command,
            status=JobStatus.RUNNING,
            started_at=self._clock.now(),
        )
        await self._store.insert_job(job)
        self._running[job.id] = job
        return job

    async def finalize_job(self, job_id: JobId, exit_code: None | int) -> None | Job:
        bound_logger = logger.bind(job_id=job_id)
        job = self._running.pop(job_id, None)
        if job is None:
            bound_logger.warning(
                f"job is not running, ignoring request to finalize it with exit code {exit_code}"
            )
            return None

        status = status_for_exit_code(exit_code)
        finished = replace(job, status=status, finished_at=self._clock.now())
        assert finished.finished_at is not None

        for attempt in range(1, self._finalize_attempts + 1):
            try:
                await self._store.update_job_status(
                    job_id, status, finished.finished_at
                )
                break
            except Exception as e:
                reason = e.message if isinstance(e, PersistenceError) else repr(e)
                if attempt == self._finalize_attempts:
                    bound_logger.error(
                        f"giving up recording final status {status.value} after {attempt} attempts, "
                        + f"database will show the job as running: {reason}"
                    )
                else:
                    bound_logger.warning(
                        f"cannot record final status (attempt {attempt}), retrying: {reason}"
                    )
                    await asyncio.sleep(self._finalize_retry_delay_seconds)

        bound_logger.info(f"job finished, status {status.value}")
        return finished

    async def execute_command(
        self, key: str, channel: NotificationChannel
    ) -> None | Job:
        """
        Resolve key, run the command and stream its output until it exits.

        Returns the finalized job, or None if no job was created (unknown key or the
        job couldn't be recorded). Never raises.
        """
        bound_logger = logger.bind(command_key=key)

        try:
            spec = self._registry.resolve(key)
        except UnknownCommand as e:
            bound_logger.warning("unknown command requested")
            await _notify(channel, *events.error(e.message))
            return None

        command = spec.render()
        try:
            job = await self.create_job(spec.kind, command)
        except PersistenceError as e:
            bound_logger.error(f"cannot record job, not starting it: {e.message}")
            await _notify(channel, *events.error(f"Cannot start {key}: {e.message}"))
            return None

        bound_logger = bound_logger.bind(job_id=job.id)
        bound_logger.info(f"job created for {command}")
        await _notify(channel, *events.job_started(job))

        exit_code: None | int = None
        try:
            exit_code = await self._run(job, spec, channel, bound_logger)
        except asyncio.CancelledError:
            bound_logger.warning("job task cancelled, marking job as failed")
            await self._finish(job, None, channel)
            raise
        except Exception:
            bound_logger.exception("unexpected error while running job")
            exit_code = None

        return await self._finish(job, exit_code, channel)

    async def _run(
        self,
        job: Job,
        spec: ExecutableSpec,
        channel: NotificationChannel,
        bound_logger: BoundLogger,
    ) -> None | int:
        try:
            handle = await self._adapter.start(spec)
        except SpawnError as e:
            bound_logger.error(f"cannot spawn process: {e.message}")
            await _notify(channel, *events.error(e.message))
            return None

        result = await StreamMultiplexer(
            self._store, channel, self._clock, self._queue_size
        ).run(job.id, handle, bound_logger)
        if result.persistence_failures:
            bound_logger.warning(
                f"{result.persistence_failures} of {result.records} log record(s) couldn't be persisted"
            )
        return result.exit_code

    async def _finish(
        self, job: Job, exit_code: None | int, channel: NotificationChannel
    ) -> Job:
        finished = await self.finalize_job(job.id, exit_code)
        if finished is None:
            # somebody finalized it already, report what we know
            finished = replace(
                job,
                status=status_for_exit_code(exit_code),
                finished_at=self._clock.now(),
            )
        await _notify(channel, *events.job_finished(finished, finished.status, exit_code))
        return finished
