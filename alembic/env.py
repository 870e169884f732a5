from __future__ import annotations

from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import Connection

from alembic import context

config = context.config

if config.config_file_name is not None and config.attributes.get("connection") is None:
    fileConfig(config.config_file_name)

target_metadata = None


def run_migrations_offline() -> None:
    """
    Emit security schema SQL without a database connection.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        SQL URL comes from `alembic.ini` or `-x`-style runtime override.
    Raises:
        Exception: Alembic configuration/runtime errors.
    Side Effects:
        Writes SQL statements to Alembic output.

    Related:
      - alembic/versions/20261017_0001_security_v1.py
      - apps/migrations/main.py
    """
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """
    Apply migrations on the connection injected by the advisory-lock runner, or on a new one.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        The injected connection already holds the migration advisory lock.
    Raises:
        Exception: Alembic configuration/runtime errors.
    Side Effects:
        Opens DB connection (when not injected) and applies schema changes.

    Related:
      - apps/migrations/main.py
      - alembic.ini
    """
    injected_connection = config.attributes.get("connection")
    if isinstance(injected_connection, Connection):
        _run_on(connection=injected_connection)
        return

    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        _run_on(connection=connection)


def _run_on(*, connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
