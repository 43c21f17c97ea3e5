from typing import Generator

import httpx

from studio.config import settings
from studio.db import base, models  # noqa: F401  (models registers the tables)
from studio.db.base import Base

_http: httpx.Client | None = None

def init_db() -> None:
    engine = base.init_engine()
    Base.metadata.create_all(bind=engine)

def close_db() -> None:
    base.dispose_engine()

def get_db() -> Generator:
    db = base.SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_http() -> httpx.Client:
    global _http
    if _http is None:
        _http = httpx.Client(timeout=httpx.Timeout(settings.http_timeout, connect=5))
    return _http

def close_http() -> None:
    global _http
    if _http is not None:
        _http.close()
        _http = None

def get_http() -> httpx.Client:
    return init_http()
