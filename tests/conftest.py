import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.append(str(Path(__file__).resolve().parents[1]))
os.environ.setdefault("EVENT_BACKEND", "memory")

from ritual_booking.core.security import get_password_hash  # noqa: E402
from ritual_booking.db.base import Base  # noqa: E402
from ritual_booking.db.models import AdminSetting, Booking, User, UserRole  # noqa: E402,F401
from ritual_booking.db.session import get_db  # noqa: E402
from ritual_booking.main import app  # noqa: E402
from ritual_booking.services.booking_events import event_broker  # noqa: E402
from ritual_booking.services.settings_service import seed_default_settings  # noqa: E402

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "StrongPass123"


@pytest.fixture(autouse=True)
def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    seed_session = TestingSessionLocal()
    try:
        seed_default_settings(seed_session)
    finally:
        seed_session.close()
    event_broker.reset()


@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client() -> TestClient:
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def admin_headers(client) -> dict[str, str]:
    session = TestingSessionLocal()
    try:
        session.add(
            User(
                email=ADMIN_EMAIL,
                hashed_password=get_password_hash(ADMIN_PASSWORD),
                role=UserRole.ADMIN.value,
            )
        )
        session.commit()
    finally:
        session.close()

    response = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
