"""Trust anchor database setup.

Keep the anchor database on a different medium from the CSV sensor log;
restoring or cloning the log file alone must not produce a matching anchor.
"""
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from sensorchain.config import settings

Base = declarative_base()


def make_engine(url: str) -> Engine:
    """Create an engine; SQLite needs ``check_same_thread=False`` for the sampler thread"""
    connect_args = {}
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        if parsed.database and parsed.database != ":memory:":
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)


engine = make_engine(settings.ANCHOR_DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine = engine) -> None:
    """Create the anchor tables if they do not exist"""
    # Import models so they register on Base.metadata
    from sensorchain import models  # noqa: F401

    Base.metadata.create_all(bind=bind)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding an anchor database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
