from alembic import context

from db import Base, get_alembic_engine
import models.binding  # noqa: F401  (registers the table on Base.metadata)

target_metadata = Base.metadata


def run_migrations_offline():
    context.configure(
        url=get_alembic_engine().url.render_as_string(hide_password=False),
        target_metadata=target_metadata,
        literal_binds=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    with get_alembic_engine().connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
