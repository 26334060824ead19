"""
Database session management.
"""
from typing import Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def build_engine(database_url: str, in_memory: Optional[bool] = None) -> Engine:
    """Create a SQLAlchemy engine for the configured database."""
    is_sqlite = database_url.startswith("sqlite")
    if in_memory is None:
        in_memory = is_sqlite and ":memory:" in database_url

    kwargs = {}
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
    if in_memory:
        # One shared connection so every session sees the same database
        kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def build_session_factory(engine: Engine) -> sessionmaker:
    """Create the session factory bound to an engine."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
