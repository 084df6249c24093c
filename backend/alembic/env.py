"""Alembic environment. Migrations are raw SQL, so there is no target metadata."""
from logging.config import fileConfig
from sqlalchemy import create_engine
from alembic import context

import config as app_config

alembic_config = context.config
if alembic_config.config_file_name is not None:
    fileConfig(alembic_config.config_file_name)


def get_url() -> str:
    # DATABASE_PATH (env / .env) wins so the app and migrations share one file
    if app_config.DATABASE_PATH:
        return f"sqlite:///{app_config.DATABASE_PATH}"
    return alembic_config.get_main_option("sqlalchemy.url")


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of touching the database."""
    context.configure(
        url=get_url(),
        target_metadata=None,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    # Batch mode lets ALTER TABLE style migrations work on SQLite
    with create_engine(get_url()).connect() as connection:
        context.configure(connection=connection, target_metadata=None, render_as_batch=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
