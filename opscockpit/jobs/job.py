import datetime
from dataclasses import dataclass
from enum import Enum


class JobKind(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


class JobStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        return self != JobStatus.RUNNING


class LogStream(str, Enum):
    STDOUT = "stdout"
    STDERR = "stderr"


JobId = str


@dataclass(frozen=True)
class Job:
    id: JobId
    kind: JobKind
    command: str
    status: JobStatus
    started_at: datetime.datetime
    finished_at: None | datetime.datetime = None

    def __post_init__(self) -> None:
        if self.status.is_terminal() != (self.finished_at is not None):
            raise ValueError(
                f"job {self.id}: finished_at must be set exactly when the job is terminal, "
                + f"got status {self.status.value} and finished_at {self.finished_at}"
            )


@dataclass(frozen=True)
class LogRecord:
    job_id: JobId
    timestamp: datetime.datetime
    stream: LogStream
    # Fragment boundaries come from pipe buffering, don't expect whole lines here
    data: str


def status_for_exit_code(exit_code: None | int) -> JobStatus:
    # None means the process was killed or we never got an exit code
    return JobStatus.SUCCESS if exit_code == 0 else JobStatus.FAILED
