import asyncio
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Coroutine

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.requests import HTTPConnection

from opscockpit.config import CockpitConfig
from opscockpit.db.engine import create_engine_with_url
from opscockpit.db.engine import get_orm_sessionmaker
from opscockpit.db.job_store import SqlJobStore
from opscockpit.execution.execution_adapter_factory import create_execution_adapter
from opscockpit.execution.execution_adapter_factory import (
    parse_remote_execution_config,
)
from opscockpit.jobs.job_query import JobQueryService
from opscockpit.jobs.lifecycle import JobLifecycleManager

logger = structlog.stdlib.get_logger(__name__)


@dataclass
class AppContext:
    config: CockpitConfig
    engine: AsyncEngine
    lifecycle: JobLifecycleManager
    query_service: JobQueryService
    # Job tasks belong to the server, not to the connection that started them
    job_tasks: set["asyncio.Task[Any]"] = field(default_factory=set)

    def start_job_task(self, coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
        task = asyncio.create_task(coro)
        self.job_tasks.add(task)
        task.add_done_callback(self._job_task_done)
        return task

    def _job_task_done(self, task: "asyncio.Task[Any]") -> None:
        self.job_tasks.discard(task)
        if task.cancelled():
            return
        exception = task.exception()
        if exception is not None:
            logger.error("job task crashed", exc_info=exception)

    async def shutdown(self, grace_period_seconds: float) -> None:
        if self.job_tasks:
            logger.info(
                f"waiting up to {grace_period_seconds}s for {len(self.job_tasks)} running job(s)"
            )
            _, pending = await asyncio.wait(
                set(self.job_tasks), timeout=grace_period_seconds
            )
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.wait(pending)
        await self.engine.dispose()


def create_app_context(db_url: str, config: CockpitConfig) -> AppContext:
    engine = create_engine_with_url(db_url)
    store = SqlJobStore(get_orm_sessionmaker(engine))
    adapter = create_execution_adapter(
        parse_remote_execution_config(config.remote_execution),
        read_chunk_size=config.read_chunk_size,
    )
    logger.info(f"commands are executed using {adapter.name()}")
    return AppContext(
        config=config,
        engine=engine,
        lifecycle=JobLifecycleManager(
            registry=config.command_registry(),
            adapter=adapter,
            store=store,
            queue_size=config.log_queue_size,
        ),
        query_service=JobQueryService(store),
    )


def get_app_context(connection: HTTPConnection) -> AppContext:
    return connection.app.state.context  # type: ignore[no-any-return]
