import datetime
from typing import Literal

from pydantic import BaseModel

from opscockpit.db.job_store import kind_to_db_type
from opscockpit.jobs.job import Job
from opscockpit.jobs.job import LogRecord


class JsonJob(BaseModel):
    id: str
    # "local" or "ssh", like the database column
    type: str
    command: str
    status: Literal["running", "success", "failed"]
    started_at: datetime.datetime
    finished_at: None | datetime.datetime


class JsonJobLog(BaseModel):
    job_id: str
    timestamp: datetime.datetime
    stream: Literal["stdout", "stderr"]
    data: str


class JsonReadJobLogs(BaseModel):
    job: JsonJob
    logs: list[JsonJobLog]


class JsonClientMessage(BaseModel):
    event: Literal["execute-command"]
    # the command key
    data: str


def encode_job(job: Job) -> JsonJob:
    return JsonJob(
        id=job.id,
        type=kind_to_db_type(job.kind),
        command=job.command,
        status=job.status.value,
        started_at=job.started_at,
        finished_at=job.finished_at,
    )


def encode_log(record: LogRecord) -> JsonJobLog:
    return JsonJobLog(
        job_id=record.job_id,
        timestamp=record.timestamp,
        stream=record.stream.value,
        data=record.data,
    )
