"""
Base database model and session management
"""
import os
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool, StaticPool
from sqlalchemy.orm import declarative_base, sessionmaker
from storesync.config import get_settings

settings = get_settings()


def _resolve_url(url: str) -> str:
    # Resolve relative SQLite paths to absolute so cwd changes can't break it
    if url.startswith("sqlite:///") and not url.startswith("sqlite:////"):
        rel_path = url[len("sqlite:///"):]
        if rel_path and rel_path != ":memory:":
            return "sqlite:///" + os.path.abspath(rel_path)
    return url


def build_engine(database_url: str) -> Engine:
    """Create an engine with pool settings suited to the backend."""
    url = _resolve_url(database_url)

    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every session sees an empty database
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool
        )

    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 60},
            poolclass=NullPool,
            pool_pre_ping=True
        )

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=3,
        max_overflow=5,
        pool_recycle=300,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Create database engine
engine = build_engine(settings.database_url)

# Create session factory
SessionLocal = build_session_factory(engine)

# Base class for all models
Base = declarative_base()


def init_db(bind: Engine = None):
    """Initialize database tables."""
    # Import models so they register on Base.metadata
    from storesync.models import audit, entities, store  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
