"""
FindNearPG Risk Backend - Database Configuration
PostgreSQL connection using SQLAlchemy
"""
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

# Falls back to a local findnearpg database owned by the shell user
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('USER', 'postgres')}@localhost:5432/findnearpg"
)

# pool_pre_ping drops connections the server closed between requests
engine = create_engine(DATABASE_URL, echo=False, pool_pre_ping=True)

# Routers commit; services only flush
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Request-scoped session for FastAPI routes."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create any missing tables. Column changes go through backend/migrations."""
    # Register ORM models on Base.metadata before create_all
    from .models import db_models  # noqa: F401

    Base.metadata.create_all(bind=engine)
