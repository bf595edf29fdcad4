# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Bootstrap script – seeds roles, the page-permission catalogue, the default
grants and the first admin account.

Run once after the initial migration (and again after upgrades; existing
rows are left alone):
    python bin/seed_admin.py

The admin account is read from FIRST_ADMIN_USERNAME, FIRST_ADMIN_EMAIL and
FIRST_ADMIN_PASSWORD in etc/app.conf.  After the row is inserted those env
vars are no longer used by the application.
"""

import sys
import os

# ---------------------------------------------------------------------------
# Path setup so backend modules are importable
# ---------------------------------------------------------------------------
# bin/seed_admin.py  →  ../  →  project root
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from models import audit_log, page_permission, role, user  # noqa: E402,F401
from auth.identity import find_user                           # noqa: E402
from auth.service import AccountConflictError, create_account  # noqa: E402
from core.config import settings                              # noqa: E402
from database import SessionLocal                             # noqa: E402
from permissions.seed import grant_admin_role, seed_reference_data  # noqa: E402


def seed():
    db = SessionLocal()
    try:
        seed_reference_data(db)
        db.commit()
        print("[seed_admin] Roles, page permissions and default grants are in place.")

        if not settings.first_admin_email or not settings.first_admin_password:
            print("[seed_admin] FIRST_ADMIN_EMAIL or FIRST_ADMIN_PASSWORD not set in etc/app.conf – no admin created.")
            return

        existing = find_user(db, settings.first_admin_email) or find_user(db, settings.first_admin_username)
        if existing:
            print(f"[seed_admin] User '{existing.username}' already exists – skipping.")
            return

        try:
            admin = create_account(
                db,
                username=settings.first_admin_username,
                email=settings.first_admin_email,
                full_name="System Administrator",
                password=settings.first_admin_password,
                verified=True,
            )
        except AccountConflictError as exc:
            print(f"[seed_admin] {exc} – skipping.")
            db.rollback()
            return

        grant_admin_role(db, admin)
        db.commit()
        print(f"[seed_admin] Admin '{admin.username}' <{admin.email}> created successfully.")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
