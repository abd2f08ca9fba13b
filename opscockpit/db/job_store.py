import datetime
from abc import ABC
from abc import abstractmethod
from typing import Sequence

from sqlalchemy import select
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import async_sessionmaker

from opscockpit.db import orm
from opscockpit.jobs.job import Job
from opscockpit.jobs.job import JobId
from opscockpit.jobs.job import JobKind
from opscockpit.jobs.job import JobStatus
from opscockpit.jobs.job import LogRecord
from opscockpit.jobs.job import LogStream

_KIND_TO_DB_TYPE = {JobKind.LOCAL: orm.DB_TYPE_LOCAL, JobKind.REMOTE: orm.DB_TYPE_SSH}
_DB_TYPE_TO_KIND = {v: k for k, v in _KIND_TO_DB_TYPE.items()}


class PersistenceError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def kind_to_db_type(kind: JobKind) -> str:
    return _KIND_TO_DB_TYPE[kind]


class JobStore(ABC):
    """
    Durable storage for jobs and their output.

    Every call is atomic on its own and durable once it returns; implementations
    raise PersistenceError when that can't be guaranteed.
    """

    @abstractmethod
    async def insert_job(self, job: Job) -> None: ...

    @abstractmethod
    async def update_job_status(
        self, job_id: JobId, status: JobStatus, finished_at: datetime.datetime
    ) -> None: ...

    @abstractmethod
    async def append_log(self, record: LogRecord) -> None: ...

    @abstractmethod
    async def list_recent_jobs(self, limit: int) -> Sequence[Job]: ...

    @abstractmethod
    async def get_job(self, job_id: JobId) -> None | Job: ...

    @abstractmethod
    async def read_logs(
        self, job_id: JobId, stream: None | LogStream = None
    ) -> Sequence[LogRecord]: ...


def _as_utc(d: datetime.datetime) -> datetime.datetime:
    # sqlite forgets the time zone, everything we write is UTC
    return d if d.tzinfo is not None else d.replace(tzinfo=datetime.timezone.utc)


def _decode_job(row: orm.Job) -> Job:
    return Job(
        id=row.id,
        kind=_DB_TYPE_TO_KIND[row.type],
        command=row.command,
        status=JobStatus(row.status),
        started_at=_as_utc(row.started_at),
        finished_at=_as_utc(row.finished_at) if row.finished_at is not None else None,
    )


def _decode_log(row: orm.JobLog) -> LogRecord:
    return LogRecord(
        job_id=row.job_id,
        timestamp=_as_utc(row.timestamp),
        stream=LogStream(row.stream),
        data=row.data,
    )


class SqlJobStore(JobStore):
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def insert_job(self, job: Job) -> None:
        try:
            async with self._sessionmaker() as session, session.begin():
                session.add(
                    orm.Job(
                        id=job.id,
                        type=kind_to_db_type(job.kind),
                        command=job.command,
                        status=job.status.value,
                        started_at=job.started_at,
                        finished_at=job.finished_at,
                    )
                )
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"cannot insert job {job.id}: {e}")

    async def update_job_status(
        self, job_id: JobId, status: JobStatus, finished_at: datetime.datetime
    ) -> None:
        try:
            async with self._sessionmaker() as session, session.begin():
                result = await session.execute(
                    update(orm.Job)
                    .where(orm.Job.id == job_id)
                    .values(status=status.value, finished_at=finished_at)
                )
                updated = result.rowcount  # type: ignore[attr-defined]
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"cannot update status of job {job_id}: {e}")
        if updated != 1:
            raise PersistenceError(
                f"cannot update status of job {job_id}: job not found in database"
            )

    async def append_log(self, record: LogRecord) -> None:
        try:
            async with self._sessionmaker() as session, session.begin():
                session.add(
                    orm.JobLog(
                        job_id=record.job_id,
                        timestamp=record.timestamp,
                        stream=record.stream.value,
                        data=record.data,
                    )
                )
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(
                f"cannot append {record.stream.value} log of job {record.job_id}: {e}"
            )

    async def list_recent_jobs(self, limit: int) -> Sequence[Job]:
        try:
            async with self._sessionmaker() as session:
                rows = await session.scalars(
                    select(orm.Job).order_by(orm.Job.started_at.desc()).limit(limit)
                )
                return [_decode_job(row) for row in rows]
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"cannot list jobs: {e}")

    async def get_job(self, job_id: JobId) -> None | Job:
        try:
            async with self._sessionmaker() as session:
                row = await session.get(orm.Job, job_id)
                return _decode_job(row) if row is not None else None
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"cannot read job {job_id}: {e}")

    async def read_logs(
        self, job_id: JobId, stream: None | LogStream = None
    ) -> Sequence[LogRecord]:
        query = select(orm.JobLog).where(orm.JobLog.job_id == job_id)
        if stream is not None:
            query = query.where(orm.JobLog.stream == stream.value)
        try:
            async with self._sessionmaker() as session:
                rows = await session.scalars(
                    query.order_by(orm.JobLog.timestamp, orm.JobLog.id)
                )
                return [_decode_log(row) for row in rows]
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"cannot read logs of job {job_id}: {e}")
