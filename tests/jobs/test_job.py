import datetime

import pytest

from opscockpit.jobs.job import Job
from opscockpit.jobs.job import JobKind
from opscockpit.jobs.job import JobStatus
from opscockpit.jobs.job import status_for_exit_code

_NOW = datetime.datetime(2024, 5, 1, 12, 0, tzinfo=datetime.timezone.utc)


def test_running_job_has_no_finish_time() -> None:
    with pytest.raises(ValueError):
        Job("a", JobKind.LOCAL, "echo", JobStatus.RUNNING, _NOW, _NOW)


@pytest.mark.parametrize("status", [JobStatus.SUCCESS, JobStatus.FAILED])
def test_terminal_job_needs_finish_time(status: JobStatus) -> None:
    with pytest.raises(ValueError):
        Job("a", JobKind.LOCAL, "echo", status, _NOW, None)
    assert Job("a", JobKind.LOCAL, "echo", status, _NOW, _NOW).finished_at == _NOW


@pytest.mark.parametrize(
    "exit_code_and_status",
    [
        (0, JobStatus.SUCCESS),
        (1, JobStatus.FAILED),
        (255, JobStatus.FAILED),
        (None, JobStatus.FAILED),
    ],
)
def test_status_for_exit_code(exit_code_and_status: tuple[None | int, JobStatus]) -> None:
    exit_code, status = exit_code_and_status
    assert status_for_exit_code(exit_code) == status
