from alembic import command
from alembic.config import Config
from sqlalchemy import Connection

SCRIPT_LOCATION = "opscockpit:db/migrations"


def upgrade_to_connection(conn: Connection, version: str) -> None:
    alembic_cfg = Config()
    # see https://alembic.sqlalchemy.org/en/latest/cookbook.html#programmatic-api-use-connection-sharing-with-asyncio
    alembic_cfg.attributes["connection"] = conn
    alembic_cfg.set_main_option("script_location", SCRIPT_LOCATION)
    command.upgrade(alembic_cfg, version)


def upgrade_to_head_connection(connection: Connection) -> None:
    upgrade_to_connection(connection, "head")
