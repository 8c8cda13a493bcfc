"""Alembic environment for the users and invoices schema.

Only model metadata and a database URL are needed; the runtime database module
(which builds engines and sessions) is not imported. URL precedence:

1. DB_URL
2. DATABASE_URL
3. sqlalchemy.url from alembic.ini
4. Local Postgres built from DB_* variables

Async driver URLs are mapped back to their sync drivers.
"""
import os
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context

from swift_invoice.models.database import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

_SYNC_DRIVERS = {
    'postgresql+asyncpg://': 'postgresql+psycopg://',
    'sqlite+aiosqlite://': 'sqlite://',
}


def _migration_url() -> str:
    url = (os.getenv('DB_URL') or os.getenv('DATABASE_URL')
           or config.get_main_option('sqlalchemy.url'))
    if not url:
        url = 'postgresql+psycopg://{}:{}@{}:{}/{}'.format(
            os.getenv('DB_USER', 'postgres'),
            os.getenv('DB_PASSWORD', 'postgres'),
            os.getenv('DB_HOST', 'localhost'),
            os.getenv('DB_PORT', '5432'),
            os.getenv('DB_NAME', 'swift_invoice'),
        )
    for async_prefix, sync_prefix in _SYNC_DRIVERS.items():
        if url.startswith(async_prefix):
            return sync_prefix + url[len(async_prefix):]
    return url


config.set_main_option('sqlalchemy.url', _migration_url())
# SQLite cannot ALTER constraints in place
_batch = config.get_main_option('sqlalchemy.url').startswith('sqlite')


def run_migrations_offline():
    """Emit SQL to stdout without connecting."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        render_as_batch=_batch,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix='sqlalchemy.',
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=_batch,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
