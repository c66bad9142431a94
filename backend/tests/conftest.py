"""
Shared fixtures: an in-memory SQLite database per test, crew and admin
accounts, and an API client bound to the same session.
"""
from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth import create_access_token, hash_password
from app.database import Base, get_db
from app.models import db_models  # noqa: F401  (registers tables)
from app.models.db_models import ReportDB, UserDB, UserRole, utcnow

PASSWORD = "password123"
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


def make_user(db, role, name):
    user = UserDB(
        id=str(uuid4()),
        email=f"{name}@skyways.aero",
        username=name,
        password_hash=PASSWORD_HASH,
        first_name=name.capitalize(),
        last_name="Tester",
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    return make_user(db, UserRole.ADMIN.value, "admin")


@pytest.fixture
def second_admin(db):
    return make_user(db, UserRole.ADMIN.value, "deputy")


@pytest.fixture
def captain(db):
    return make_user(db, UserRole.CAPTAIN.value, "captain")


@pytest.fixture
def first_officer(db):
    return make_user(db, UserRole.FIRST_OFFICER.value, "officer")


@pytest.fixture
def insert_report(db):
    """Insert a report row directly, bypassing the writer."""
    def _insert(submitter, report_type="asr", status="submitted", created_at=None, report_id=None, **columns):
        created_at = created_at or utcnow()
        report = ReportDB(
            id=report_id or str(uuid4()),
            report_type=report_type,
            status=status,
            submitted_by=submitter.id,
            is_anonymous=columns.pop("is_anonymous", False),
            description=columns.pop("description", "Test report"),
            extra_data=columns.pop("extra_data", "{}"),
            created_at=created_at,
            updated_at=created_at,
            **columns,
        )
        db.add(report)
        db.commit()
        return report
    return _insert


@pytest.fixture
def seconds_ago():
    now = utcnow()
    return lambda s: now - timedelta(seconds=s)


@pytest.fixture
def client(db):
    from app.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    # No context manager: the lifespan would create tables in the configured database
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email, user.role)}"}


@pytest.fixture
def auth():
    return auth_headers
