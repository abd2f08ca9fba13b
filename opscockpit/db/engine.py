import os
from typing import Any

from sqlalchemy import NullPool
from sqlalchemy import StaticPool
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.ext.asyncio import create_async_engine

from opscockpit.db.migrations.alembic_utilities import upgrade_to_head_connection

IN_MEMORY_DB_URL = "sqlite+aiosqlite://"


def create_engine_with_url(db_url: str) -> AsyncEngine:
    # For the sqlite in-memory stuff, see here:
    #
    # https://docs.sqlalchemy.org/en/13/dialects/sqlite.html#threading-pooling-behavior
    #
    # In short, with in-memory databases, we normally get one DB per connection,
    # so all sessions have to share a single one.
    in_memory_db = db_url == IN_MEMORY_DB_URL

    engine = create_async_engine(
        db_url,
        echo="DB_ECHO" in os.environ,
        connect_args={"check_same_thread": False} if in_memory_db else {},
        poolclass=StaticPool if in_memory_db else NullPool,
    )

    # sqlite doesn't care about foreign keys (and thus cascading deletes) unless you do this dance, see
    # https://stackoverflow.com/questions/2614984/sqlite-sqlalchemy-how-to-enforce-foreign-keys
    def _fk_pragma_on_connect(dbapi_con: Any, _con_record: Any) -> None:
        dbapi_con.execute("pragma foreign_keys=ON")

    if "sqlite" in db_url:
        event.listen(engine.sync_engine, "connect", _fk_pragma_on_connect)

    return engine


def get_orm_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def migrate(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(upgrade_to_head_connection)
