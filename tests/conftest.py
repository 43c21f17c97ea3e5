from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from studio.config import settings
from studio.db import base, crud_accounts, crud_posts, models  # noqa: F401
from studio.deps import get_db, get_http
from studio.main import app


class FakePlatforms:
    """Stand-in for every external platform API, served through httpx.MockTransport.

    Routes match on method + URL without the query string. A route is either a
    canned (status, json, headers) triple or a handler taking the request.
    """

    def __init__(self):
        self.routes: Dict[tuple, Callable[[httpx.Request], httpx.Response]] = {}
        self.calls: List[httpx.Request] = []

    def add(self, method: str, url: str, status: int = 200, json: Any = None,
            headers: Optional[Dict[str, str]] = None, handler=None) -> None:
        if handler is None:
            def handler(request, status=status, json=json, headers=headers):
                return httpx.Response(status, json=json if json is not None else {}, headers=headers)
        self.routes[(method.upper(), url)] = handler

    def calls_to(self, url: str) -> List[httpx.Request]:
        return [r for r in self.calls if str(r.url).split("?")[0] == url]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        key = (request.method, str(request.url).split("?")[0])
        handler = self.routes.get(key)
        if handler is None:
            return httpx.Response(404, json={"error": f"no fake route for {key}"})
        return handler(request)


@pytest.fixture
def engine():
    base.dispose_engine()
    eng = base.init_engine("sqlite:///:memory:")
    base.Base.metadata.create_all(bind=eng)
    yield eng
    base.dispose_engine()

@pytest.fixture
def db(engine):
    session = base.SessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def platforms():
    return FakePlatforms()

@pytest.fixture
def http(platforms):
    c = httpx.Client(transport=httpx.MockTransport(platforms))
    yield c
    c.close()

@pytest.fixture
def creds(monkeypatch):
    monkeypatch.setattr(settings, "state_secret", "test-state-secret")
    monkeypatch.setattr(settings, "fernet_key", "")
    monkeypatch.setattr(settings, "app_url", "http://api.test")
    monkeypatch.setattr(settings, "frontend_url", "http://app.test")
    monkeypatch.setattr(settings, "linkedin_client_id", "li-id")
    monkeypatch.setattr(settings, "linkedin_client_secret", "li-secret")
    monkeypatch.setattr(settings, "twitter_client_id", "tw-id")
    monkeypatch.setattr(settings, "twitter_client_secret", "tw-secret")
    monkeypatch.setattr(settings, "facebook_app_id", "fb-id")
    monkeypatch.setattr(settings, "facebook_app_secret", "fb-secret")
    monkeypatch.setattr(settings, "graph_api_version", "v18.0")
    return settings

@pytest.fixture
def client(engine, http, creds):
    def _get_db():
        session = base.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_http] = lambda: http
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_account(db):
    def _make(platform="twitter", user_id="user-1", platform_user_id=None, access_token="access-1",
              refresh_token=None, expires_in=3600, account_name=None, expired=False):
        account, _ = crud_accounts.upsert_social_account(
            db,
            user_id=user_id,
            platform=platform,
            platform_user_id=platform_user_id or f"{platform}-ext-1",
            access_token=access_token,
            expires_in=expires_in,
            refresh_token=refresh_token,
            account_name=account_name or f"{platform} account",
        )
        if expired:
            account.token_expiry = base.utcnow() - timedelta(minutes=5)
            db.add(account)
            db.commit()
            db.refresh(account)
        return account
    return _make

@pytest.fixture
def make_post(db):
    def _make(user_id="user-1", workspace_id="ws-1", content="Hello world", **fields):
        data = {"user_id": user_id, "workspace_id": workspace_id, "content": content, "status": "draft"}
        data.update(fields)
        return crud_posts.create_post(db, data)
    return _make
