from typing import Any
from typing import Literal

from pydantic import BaseModel

from opscockpit.jobs.job import Job
from opscockpit.jobs.job import JobStatus
from opscockpit.jobs.job import LogRecord

EventName = Literal["job-started", "job-log", "job-finished", "error"]


class JobStartedEvent(BaseModel):
    jobId: str
    command: str


class JobLogEvent(BaseModel):
    jobId: str
    stream: str
    data: str


class JobFinishedEvent(BaseModel):
    jobId: str
    status: str
    exitCode: None | int


class ErrorEvent(BaseModel):
    message: str


class Envelope(BaseModel):
    """What goes over the wire: the event name plus its payload."""

    event: EventName
    data: dict[str, Any]


def job_started(job: Job) -> tuple[EventName, BaseModel]:
    return "job-started", JobStartedEvent(jobId=job.id, command=job.command)


def job_log(record: LogRecord) -> tuple[EventName, BaseModel]:
    return "job-log", JobLogEvent(
        jobId=record.job_id, stream=record.stream.value, data=record.data
    )


def job_finished(
    job: Job, status: JobStatus, exit_code: None | int
) -> tuple[EventName, BaseModel]:
    return "job-finished", JobFinishedEvent(
        jobId=job.id, status=status.value, exitCode=exit_code
    )


def error(message: str) -> tuple[EventName, BaseModel]:
    return "error", ErrorEvent(message=message)
