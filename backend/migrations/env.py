# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Alembic environment for the temple database.

The connection string comes from the application's Settings (etc/app.conf
or DATABASE_URL), so migrations always target the database the API uses.
SQLite URLs are migrated in batch mode because SQLite cannot ALTER most
constraints in place.
"""

import sys
import os

# ---------------------------------------------------------------------------
# Path setup – ``backend/`` must be importable for settings and models.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from alembic import context  # noqa: E402
from sqlalchemy import create_engine, pool  # noqa: E402

from core.config import settings  # noqa: E402
from database import Base  # noqa: E402

# Every mapped table has to be registered on Base.metadata for autogenerate.
from models import audit_log, page_permission, role, user  # noqa: F401, E402

_URL = settings.database_url
_BATCH = _URL.startswith("sqlite")


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=Base.metadata,
        compare_type=True,
        render_as_batch=_BATCH,
        **kwargs,
    )


def run_migrations_online():
    connectable = create_engine(_URL, poolclass=pool.NullPool)
    with connectable.connect() as conn:
        _configure(connection=conn)
        with context.begin_transaction():
            context.run_migrations()


def run_migrations_offline():
    """Emit SQL to stdout instead of executing it."""
    _configure(url=_URL, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
