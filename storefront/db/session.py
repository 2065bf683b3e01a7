from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker


def make_engine(database_url: str, **kwargs) -> Engine:
    """Build the engine for ``database_url``; pooling is left to SQLAlchemy."""
    if database_url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True, **kwargs)


def make_session_factory(engine: Optional[Engine] = None, *, database_url: Optional[str] = None):
    # A session is the unit of work for one request or one background job.
    if engine is None:
        engine = make_engine(database_url)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
