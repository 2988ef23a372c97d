"""Alembic environment for the task store.

Migrations are raw SQL, so there is no target metadata. init_db() passes the
app's DATABASE_PATH as an absolute path; alembic.ini's URL is only used when
alembic is run by hand without it.
"""
import os
from logging.config import fileConfig
from sqlalchemy import create_engine
from alembic import context

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def get_database_url() -> str:
    database_path = os.getenv("DATABASE_PATH")
    if database_path:
        return f"sqlite:///{database_path}"
    return config.get_main_option("sqlalchemy.url")


def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting."""
    context.configure(
        url=get_database_url(),
        target_metadata=None,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    # Batch mode so later ALTERs work on SQLite
    engine = create_engine(get_database_url())

    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=None,
            render_as_batch=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
