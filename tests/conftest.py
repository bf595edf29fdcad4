import os
import sys
from pathlib import Path

# Settings are read at import time – point them at throwaway values first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PASSWORD_HASH_ROUNDS"] = "1000"

# Add backend directory to Python path for imports
backend_dir = Path(__file__).parent.parent / "backend"
sys.path.insert(0, str(backend_dir))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from core.config import AuthorizationSettings  # noqa: E402
from core.security import hash_password  # noqa: E402
from database import Base  # noqa: E402
from main import create_app  # noqa: E402
from models.page_permission import PagePermission, RolePermission  # noqa: E402
from models.role import Role, UserRole  # noqa: E402
from models.user import User  # noqa: E402
from permissions.enums import Permission  # noqa: E402

from helpers import DEFAULT_PASSWORD, basic_auth  # noqa: E402


class Seeder:
    """Inserts rows through short sessions of its own and commits each call."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def _save(self, obj):
        with self._session_factory() as db:
            db.add(obj)
            db.commit()
            db.refresh(obj)
            db.expunge(obj)
        return obj

    def user(self, username, password=DEFAULT_PASSWORD, *, email=None, verified=True,
             active=None, verification_code=None, password_hash=None) -> User:
        return self._save(User(
            username=username,
            email=email or f"{username}@temple.test",
            full_name=username.title(),
            password_hash=password_hash or hash_password(password),
            is_verified=verified,
            is_active=verified if active is None else active,
            verification_code=verification_code,
        ))

    def role(self, name, active=True) -> Role:
        return self._save(Role(name=name, description=f"{name} role", is_active=active))

    def page_permission(self, page_url, permission, active=True) -> PagePermission:
        with self._session_factory() as db:
            pp = (
                db.query(PagePermission)
                .filter(PagePermission.page_url == page_url, PagePermission.permission_id == int(permission))
                .first()
            )
            if pp is not None:
                db.expunge(pp)
                return pp
        return self._save(PagePermission(
            page_name=page_url.strip("/").title() or "Home",
            page_url=page_url,
            permission_id=int(permission),
            is_active=active,
        ))

    def grant(self, role, page_url, permission, active=True) -> RolePermission:
        pp = self.page_permission(page_url, permission)
        return self._save(RolePermission(role_id=role.id, page_permission_id=pp.id, is_active=active))

    def assign(self, user, role, active=True) -> UserRole:
        return self._save(UserRole(user_id=user.id, role_id=role.id, is_active=active))

    def set_active(self, model, pk, active):
        with self._session_factory() as db:
            db.get(model, pk).is_active = active
            db.commit()


@pytest.fixture()
def engine(tmp_path):
    # File-backed so the middleware, the decision point and the handler can
    # each hold their own connection.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'temple.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def seed(engine):
    return Seeder(sessionmaker(bind=engine, expire_on_commit=False))


@pytest.fixture()
def app(session_factory):
    return create_app(session_factory=session_factory, authorization=AuthorizationSettings())


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def admin(seed):
    """An account holding the UserRoleConfiguration policy and full /users rights."""
    user = seed.user("root")
    role = seed.role("Admin")
    seed.grant(role, "/user-role-configuration", Permission.UPDATE)
    for permission in Permission:
        seed.grant(role, "/users", permission)
    seed.assign(user, role)
    return user


@pytest.fixture()
def admin_auth(admin):
    return basic_auth("root", DEFAULT_PASSWORD)
