"""
Database engine and session management.
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import Settings


def create_db_engine(database_url: str) -> Engine:
    """Create an engine. SQLite connections are shared across threads."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url == "sqlite://":
            # One connection, or every session would see its own empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    # Import all models so they are registered on the metadata
    from marketplace.models.database import (  # noqa: F401
        ApplicationRecord,
        Base,
        ChallengeRecord,
        ChatMessageRecord,
        ReviewRecord,
        SessionRecord,
        SolutionRecord,
        UserRecord,
    )

    Base.metadata.create_all(bind=engine)


def engine_from_settings(settings: Settings) -> Engine:
    return create_db_engine(settings.DATABASE_URL)
