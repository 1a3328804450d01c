import os
import tempfile

# Log files and token secret must be set before parkmitra is imported
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="parkmitra-logs-"))
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.pop("REDIS_URL", None)

import pytest
from sqlalchemy.pool import StaticPool

from parkmitra.db.session import Database
from parkmitra.models.enums import UserType
from parkmitra.services.container import build_services

from helpers import seed_organization, seed_user


@pytest.fixture
def database():
    db = Database(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db.open()
    db.create_all()
    yield db
    db.close()


@pytest.fixture
def services(database):
    return build_services(database)


@pytest.fixture
def org_id(database):
    return seed_organization(database)


@pytest.fixture
def visitor_id(database):
    return seed_user(database, "visitor@mail.test")


@pytest.fixture
def member_id(database, org_id):
    return seed_user(database, "member@viit.test", UserType.ORGANIZATION_MEMBER, org_id)


@pytest.fixture
def watchman_id(database, org_id):
    return seed_user(database, "watchman@viit.test", UserType.WATCHMAN, org_id)


@pytest.fixture
def admin_id(database, org_id):
    return seed_user(database, "admin@viit.test", UserType.ADMIN, org_id)


@pytest.fixture
def lot(services, org_id):
    """Single lot with two slots."""
    return services.lots.create_lot(org_id, "Main Gate", 2, priority_order=1)
