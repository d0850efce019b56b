import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "development"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ.pop("REDIS_URL", None)
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("ZAPIER_WEBHOOK_URL", None)
os.environ.pop("ZAPIER_CALLBACK_SECRET", None)
os.environ.pop("STRIPE_SECRET_KEY", None)
os.environ.pop("STRIPE_WEBHOOK_SECRET", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from plutify.auth import create_access_token, hash_password  # noqa: E402
from plutify.database import Base, SessionLocal, engine  # noqa: E402
from plutify.main import app  # noqa: E402
from plutify.models import AssignClient, User  # noqa: E402
from plutify.roles import Role  # noqa: E402

TEST_PASSWORD = "Password123!"
# Hashing once keeps the bcrypt cost out of every fixture
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@pytest.fixture()
def db_session():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def api_client(db_session):
    with TestClient(app) as client:
        yield client


def make_user(db, email: str, role: Role, first_name: str = "Test", last_name: str = "User", active: bool = True) -> User:
    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        password=TEST_PASSWORD_HASH,
        role_id=role.value,
        active=active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture()
def admin_user(db_session):
    return make_user(db_session, "admin@plutify.io", Role.ADMIN, "Ada", "Admin")


@pytest.fixture()
def staff_user(db_session):
    return make_user(db_session, "staff@plutify.io", Role.STAFF, "Sam", "Staff")


@pytest.fixture()
def client_user(db_session):
    return make_user(db_session, "client@example.com", Role.CLIENT, "Carla", "Client")


@pytest.fixture()
def other_client(db_session):
    return make_user(db_session, "other@example.com", Role.CLIENT, "Otto", "Other")


@pytest.fixture()
def assignment(db_session, admin_user, staff_user, client_user):
    row = AssignClient(staff_id=staff_user.id, client_id=client_user.id, assigned_by=admin_user.id)
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture()
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture()
def staff_headers(staff_user):
    return auth_headers(staff_user)


@pytest.fixture()
def client_headers(client_user):
    return auth_headers(client_user)


@pytest.fixture()
def user_factory(db_session):
    def factory(email: str, role: Role = Role.CLIENT, **kwargs) -> User:
        return make_user(db_session, email, role, **kwargs)

    return factory


@pytest.fixture()
def headers_for():
    return auth_headers
