from pathlib import Path
from typing import AsyncGenerator

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from opscockpit.db.engine import create_engine_with_url
from opscockpit.db.engine import get_orm_sessionmaker
from opscockpit.db.engine import migrate
from opscockpit.db.job_store import SqlJobStore


def db_url_for(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path}/db.sqlite"


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    result = create_engine_with_url(db_url_for(tmp_path))
    await migrate(result)
    yield result
    await result.dispose()


@pytest_asyncio.fixture
async def sql_store(engine: AsyncEngine) -> SqlJobStore:
    return SqlJobStore(get_orm_sessionmaker(engine))
