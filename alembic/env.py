from __future__ import annotations

import asyncio
from logging.config import fileConfig
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from alembic import context
from sqlalchemy import MetaData, pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

import campus_events.models  # noqa: F401
from campus_events.core.settings import get_settings
from campus_events.database import Base

TARGET_METADATA = Base.metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _normalize_db_url(url: str) -> str:
    # Async drivers only; asyncpg rejects libpq-only query args
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("sqlite:///"):
        url = url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    parsed = urlparse(url)
    if parsed.query:
        unsupported = {"sslmode", "channel_binding"}
        q = [
            (k, v)
            for k, v in parse_qsl(parsed.query, keep_blank_values=True)
            if k.lower() not in unsupported
        ]
        url = urlunparse(
            (
                parsed.scheme,
                parsed.netloc,
                parsed.path,
                parsed.params,
                urlencode(q),
                parsed.fragment,
            )
        )
    return url


# Prefer `-x dburl=...`, then alembic.ini, then settings
x_args = context.get_x_argument(as_dictionary=True)
override_url = x_args.get("dburl") if isinstance(x_args, dict) else None
if override_url:
    config.set_main_option("sqlalchemy.url", _normalize_db_url(str(override_url)))
elif not config.get_main_option("sqlalchemy.url"):
    config.set_main_option(
        "sqlalchemy.url",
        _normalize_db_url(str(get_settings().SQLALCHEMY_DATABASE_URI)),
    )


def get_target_metadata() -> MetaData:
    return TARGET_METADATA


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=get_target_metadata(),
        render_as_batch=True,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=get_target_metadata(),
        render_as_batch=True,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    url = config.get_main_option("sqlalchemy.url")
    connectable = create_async_engine(url, poolclass=pool.NullPool)

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
