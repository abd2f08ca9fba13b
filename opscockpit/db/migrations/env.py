from logging.config import fileConfig

from alembic import context

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# We're called programmatically most of the time, then there is no .ini file
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# migrations are written by hand, no autogenerate
target_metadata = None


def run_migrations_online() -> None:
    """Run migrations on the connection handed to us via Config.attributes."""
    connection = config.attributes.get("connection", None)
    if connection is None:
        raise RuntimeError(
            "opscockpit migrations need an existing connection, use opscockpit-upgrade-db"
        )

    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


run_migrations_online()
