"""
Alembic migration environment.
Supports both online (connected to DB) and offline (SQL script generation) modes.

The bookings_no_overlap exclusion constraint and the btree_gist extension are
created by hand in 001 and are not part of the model metadata; autogenerate
must not try to drop them.
"""

from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context

from autofleet.db.base import Base
from autofleet.models import User, Vehicle, Booking, Notification  # noqa: F401 - Import models for autogenerate
from autofleet.models.booking import NO_OVERLAP_CONSTRAINT
from autofleet.core.config import get_settings

config = context.config
settings = get_settings()

# Override sqlalchemy.url from settings
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL_SYNC)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def include_object(obj, name, type_, reflected, compare_to):
    return not (reflected and name == NO_OVERLAP_CONSTRAINT)


def run_migrations_offline() -> None:
    """Generate SQL script without connecting to the database."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        include_object=include_object,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live database connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
