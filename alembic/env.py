from logging.config import fileConfig
from pathlib import Path

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import create_engine, pool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(PROJECT_ROOT / ".env")

from statportal.config import load_settings  # noqa: E402
from statportal.database.connection import Base, create_db_engine  # noqa: E402
from statportal.database import models  # noqa: E402,F401

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url():
    # Prefer env DATABASE_URL; fall back to ini only if not a dummy
    url = (load_settings().get("DATABASE_URL") or "").strip()
    if url:
        return url
    cfg_url = (config.get_main_option("sqlalchemy.url") or "").strip()
    if cfg_url and not cfg_url.startswith("driver://"):
        return cfg_url
    raise RuntimeError("DATABASE_URL missing. Put real DSN in .env or set sqlalchemy.url (not 'driver://').")


def run_migrations_offline():
    context.configure(url=get_url(), target_metadata=target_metadata, literal_binds=True,
                      dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    url = get_url()
    if url.startswith("sqlite"):
        connectable = create_engine(url, poolclass=pool.NullPool)
    else:
        connectable = create_db_engine(url)
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata,
                          render_as_batch=url.startswith("sqlite"))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
