from typing import Sequence

from opscockpit.db.job_store import JobStore
from opscockpit.jobs.job import Job

DEFAULT_RECENT_JOBS_LIMIT = 10


class JobQueryService:
    """Read-only view on the job history, newest first."""

    def __init__(self, store: JobStore) -> None:
        self._store = store

    async def list_recent(self, limit: int = DEFAULT_RECENT_JOBS_LIMIT) -> Sequence[Job]:
        if limit < 1:
            raise ValueError(f"limit has to be positive, got {limit}")
        return await self._store.list_recent_jobs(limit)
