"""Alembic environment, multi-schema aware."""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool, text

from commodity_core.config.loader import load_config
from commodity_core.db.base import Base
from commodity_core.db.engine import _ensure_psycopg_driver

# Import all table modules so Base.metadata sees them
import commodity_core.db.tables  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

MANAGED_SCHEMAS = {
    "commodity_market_data",
    "commodity_signals",
    "commodity_execution",
    "commodity_paper",
}


def get_url() -> str:
    """Resolve the DB URL the same way the services do.

    COMMODITY_DATABASE_URL wins, then ``sqlalchemy.url`` from alembic.ini,
    then the config file named by COMMODITY_CONFIG (or its defaults).
    """
    url = os.environ.get("COMMODITY_DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        url = load_config(os.environ.get("COMMODITY_CONFIG")).database.url
    return _ensure_psycopg_driver(url)


def include_object(obj, name, type_, reflected, compare_to):
    """Only manage tables (and their indexes) in the commodity schemas."""
    if type_ == "table":
        return obj.schema in MANAGED_SCHEMAS
    if type_ == "index":
        return obj.table.schema in MANAGED_SCHEMAS
    return True


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode: emit SQL without connecting."""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        include_schemas=True,
        include_object=include_object,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode: connect and execute."""
    connectable = create_engine(get_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        # Ensure our schemas exist before migrating
        for schema in MANAGED_SCHEMAS:
            connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))
        connection.commit()

        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_schemas=True,
            include_object=include_object,
            version_table_schema="commodity_market_data",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
