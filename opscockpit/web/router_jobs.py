from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Query

from opscockpit.db.job_store import PersistenceError
from opscockpit.jobs.job import LogStream
from opscockpit.jobs.job_query import DEFAULT_RECENT_JOBS_LIMIT
from opscockpit.web.app_context import AppContext
from opscockpit.web.app_context import get_app_context
from opscockpit.web.json_models import JsonJob
from opscockpit.web.json_models import JsonReadJobLogs
from opscockpit.web.json_models import encode_job
from opscockpit.web.json_models import encode_log

MAX_RECENT_JOBS_LIMIT = 1000

router = APIRouter()


@router.get("/api/jobs", tags=["jobs"])
async def read_jobs(
    limit: int = Query(
        default=DEFAULT_RECENT_JOBS_LIMIT, ge=1, le=MAX_RECENT_JOBS_LIMIT
    ),
    context: AppContext = Depends(get_app_context),
) -> list[JsonJob]:
    try:
        return [encode_job(j) for j in await context.query_service.list_recent(limit)]
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=e.message)


@router.get("/api/jobs/{jobId}/logs", tags=["jobs"])
async def read_job_logs(
    jobId: str,
    stream: None | LogStream = None,
    context: AppContext = Depends(get_app_context),
) -> JsonReadJobLogs:
    store = context.lifecycle.store
    try:
        job = await store.get_job(jobId)
        if job is None:
            raise HTTPException(status_code=404, detail=f"job {jobId} not found")
        logs = await store.read_logs(jobId, stream)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=e.message)
    return JsonReadJobLogs(job=encode_job(job), logs=[encode_log(r) for r in logs])
