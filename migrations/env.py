"""Alembic environment for the SQL store backend; the URL always comes from DATABASE_URL."""
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool
from sqlmodel import SQLModel

from livepush import models  # noqa: F401
from livepush.core.config import settings
from livepush.core.database import normalized_database_url

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

url = normalized_database_url(settings.database_url)
target_metadata = SQLModel.metadata


def run_offline() -> None:
    context.configure(url=url, target_metadata=target_metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    engine = create_engine(url, poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
