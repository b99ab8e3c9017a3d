"""
Pytest configuration and fixtures.

Service and router tests run against an in-memory SQLite database shared
across connections (StaticPool), created fresh for each test.
"""
import os

# Must be set before app.database builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime
from itertools import count

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.auth import create_access_token
from app.models.db_models import (
    BookingDB,
    PropertyDB,
    PropertyViewDB,
    UserDB,
    UserRole,
)


@pytest.fixture
def db_engine():
    """Fresh in-memory database per test."""
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
def db_session(db_engine):
    """Session configured like the application's SessionLocal."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session):
    """Test client with the database dependency overridden."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    # Not used as a context manager so the startup hook does not touch DATABASE_URL
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def now():
    return datetime(2026, 3, 15, 12, 0, 0)


# =============================================================================
# FACTORIES
# =============================================================================

class Factory:
    """Creates committed marketplace rows for tests."""

    def __init__(self, db):
        self.db = db
        self._seq = count(1)

    def user(self, role: str = UserRole.USER.value, **kwargs) -> UserDB:
        n = next(self._seq)
        user = UserDB(
            email=kwargs.pop("email", f"{role}{n}@example.com"),
            name=kwargs.pop("name", f"{role.title()} {n}"),
            password_hash=kwargs.pop("password_hash", "not-a-real-hash"),
            role=role,
            **kwargs,
        )
        self.db.add(user)
        self.db.commit()
        return user

    def owner(self, **kwargs) -> UserDB:
        return self.user(role=UserRole.OWNER.value, **kwargs)

    def admin(self, **kwargs) -> UserDB:
        return self.user(role=UserRole.ADMIN.value, **kwargs)

    def property(self, owner: UserDB, **kwargs) -> PropertyDB:
        n = next(self._seq)
        prop = PropertyDB(
            owner_id=owner.id,
            slug=kwargs.pop("slug", f"green-pg-{n}"),
            title=kwargs.pop("title", f"Green PG {n}"),
            city=kwargs.pop("city", "Pune"),
            area=kwargs.pop("area", "Kothrud"),
            sharing=kwargs.pop("sharing", "all123"),
            price=kwargs.pop("price", 8000),
            available_rooms=kwargs.pop("available_rooms", 3),
            is_approved=kwargs.pop("is_approved", True),
            **kwargs,
        )
        self.db.add(prop)
        self.db.commit()
        return prop

    def booking(self, prop: PropertyDB, tenant: UserDB, **kwargs) -> BookingDB:
        booking = BookingDB(
            property_id=prop.id,
            user_id=tenant.id,
            room_type=kwargs.pop("room_type", "Single Sharing"),
            amount=kwargs.pop("amount", prop.price),
            **kwargs,
        )
        self.db.add(booking)
        self.db.commit()
        return booking

    def views(self, prop: PropertyDB, n: int, created_at: datetime) -> None:
        for _ in range(n):
            self.db.add(PropertyViewDB(
                property_id=prop.id,
                owner_id=prop.owner_id,
                created_at=created_at,
            ))
        self.db.commit()


@pytest.fixture
def factory(db_session):
    return Factory(db_session)


@pytest.fixture
def auth_headers():
    """Build a bearer header for a user."""
    def _headers(user: UserDB) -> dict:
        token = create_access_token(user.id, user.email, user.role)
        return {"Authorization": f"Bearer {token}"}
    return _headers
