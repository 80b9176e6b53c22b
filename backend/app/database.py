"""
Database Engine & Session Management
SQLAlchemy setup with dependency injection for FastAPI.
"""
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from app.config import get_settings

settings = get_settings()

# Ensure data directory exists
if settings.DATABASE_URL.startswith("sqlite:///"):
    _db_dir = os.path.dirname(settings.DATABASE_URL.replace("sqlite:///", ""))
    if _db_dir:
        os.makedirs(_db_dir, exist_ok=True)

engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False},  # Required for SQLite
    echo=settings.DEBUG,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a database session, auto-closes on finish."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create all tables. Called once at application startup."""
    from app.models import user as _user_model               # noqa: F401
    from app.models import patient as _patient_model         # noqa: F401
    from app.models import therapy as _therapy_model         # noqa: F401
    from app.models import session as _session_model         # noqa: F401
    from app.models import leave as _leave_model             # noqa: F401
    from app.models import notification as _notification_model  # noqa: F401
    from app.models import audit as _audit_model             # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
