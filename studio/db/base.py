import uuid
from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from studio.config import settings

Base = declarative_base()

# process-wide engine/session factory; created by init_engine() at startup
engine: Engine | None = None
SessionLocal = sessionmaker(autocommit=False, autoflush=False)

def utcnow() -> datetime:
    # naive UTC, matches what SQLite hands back
    return datetime.now(timezone.utc).replace(tzinfo=None)

def as_naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)

def new_id() -> str:
    return uuid.uuid4().hex

def init_engine(database_url: str | None = None) -> Engine:
    global engine
    if engine is not None:
        return engine
    url = database_url or settings.database_url  # default: sqlite:///./studio.db
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)
    SessionLocal.configure(bind=engine)
    return engine

def dispose_engine() -> None:
    global engine
    if engine is not None:
        engine.dispose()
        engine = None
