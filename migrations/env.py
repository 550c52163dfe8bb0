import sys
from pathlib import Path

# Get the project root directory
project_root = Path(__file__).parents[1].absolute()
sys.path.insert(0, str(project_root))

from catalog.core.config import settings

from alembic import context
from sqlalchemy import engine_from_config, pool

from catalog.db.base import Base

# Import all models to ensure they're registered with Base.metadata
from catalog.db.models import Category, Product  # noqa: F401

# This is the Alembic Config object
config = context.config

# Update sqlalchemy.url value from settings
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,  # Detects column type changes
            compare_server_default=True,  # Detects default value changes
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
