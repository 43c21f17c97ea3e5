from datetime import timedelta

import pytest

from studio.db import crud_accounts, crud_posts
from studio.db.base import utcnow
from studio.db.models import Post, SocialAccount, WorkspaceAccount
from studio.services import scheduler, twitter_api
from studio.services.facebook_api import graph_url


def future(hours=2):
    return (utcnow() + timedelta(hours=hours)).isoformat() + "Z"


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


# -- posts CRUD ------------------------------------------------------------

def test_create_post_defaults(client):
    resp = client.post("/posts", json={"userId": "user-1", "workspaceId": "ws-1", "content": "Draft"})
    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "Post created successfully"
    post = body["post"]
    assert post["status"] == "draft"
    assert post["topic"] == "Untitled Post"
    assert post["publishedPlatforms"] == []
    assert post["retryCount"] == 0

def test_create_scheduled_post(client):
    resp = client.post("/posts", json={"userId": "user-1", "workspaceId": "ws-1", "content": "Later",
                                       "status": "scheduled", "scheduledAt": future(),
                                       "scheduledPlatforms": ["twitter", "linkedin", "twitter"]})
    assert resp.status_code == 201
    post = resp.json()["post"]
    assert post["status"] == "scheduled"
    assert post["scheduledAt"]
    assert post["scheduledPlatforms"] == ["twitter", "linkedin"]

@pytest.mark.parametrize("payload,error", [
    ({"workspaceId": "ws-1"}, "userId is required"),
    ({"userId": "user-1"}, "workspaceId is required"),
    ({"userId": "user-1", "workspaceId": "ws-1", "content": "x" * 5001}, "content must not exceed 5000 characters"),
    ({"userId": "user-1", "workspaceId": "ws-1", "status": "archived"}, "Invalid status value"),
    ({"userId": "user-1", "workspaceId": "ws-1", "scheduledAt": "next tuesday"}, "Invalid scheduledAt date format"),
    ({"userId": "user-1", "workspaceId": "ws-1", "scheduledAt": "2001-01-01T00:00:00Z"}, "scheduledAt must be in the future"),
    ({"userId": "user-1", "workspaceId": "ws-1", "status": "scheduled"}, "scheduledAt is required for scheduled posts"),
])
def test_create_post_validation(client, payload, error):
    resp = client.post("/posts", json=payload)
    assert resp.status_code == 400
    assert resp.json() == {"error": error}

def test_list_posts_paginates(client, make_post):
    for i in range(3):
        make_post(content=f"post {i}")
    make_post(workspace_id="ws-2")

    body = client.get("/posts", params={"workspaceId": "ws-1", "limit": 2}).json()
    assert body["total"] == 3
    assert len(body["posts"]) == 2
    assert body["hasMore"] is True

    body = client.get("/posts", params={"workspaceId": "ws-1", "limit": 2, "offset": 2}).json()
    assert len(body["posts"]) == 1
    assert body["hasMore"] is False

def test_list_posts_limit_bounds(client):
    resp = client.get("/posts", params={"workspaceId": "ws-1", "limit": 101})
    assert resp.status_code == 400
    assert resp.json() == {"error": "limit must be between 1 and 100"}

def test_get_missing_post(client):
    resp = client.get("/posts/nope")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Post not found"}

def test_patch_post_fields(client, make_post):
    post = make_post()
    resp = client.patch(f"/posts/{post.id}", json={"content": "Edited", "platformContent": {"twitter": "short"}})
    assert resp.status_code == 200
    body = resp.json()["post"]
    assert body["content"] == "Edited"
    assert body["platformContent"] == {"twitter": "short"}

@pytest.mark.parametrize("status", ["publishing", "published", "failed"])
def test_patch_cannot_set_publish_owned_status(client, make_post, status):
    post = make_post()
    resp = client.patch(f"/posts/{post.id}", json={"status": status})
    assert resp.status_code == 400

def test_patch_rejected_while_publishing(client, make_post):
    post = make_post(status="publishing")
    resp = client.patch(f"/posts/{post.id}", json={"content": "late edit"})
    assert resp.status_code == 400

def test_patch_requires_a_field(client, make_post):
    post = make_post()
    assert client.patch(f"/posts/{post.id}", json={}).json() == {"error": "No fields to update"}

def test_delete_post(client, db, make_post):
    post = make_post()
    assert client.delete(f"/posts/{post.id}").json() == {"message": "Post deleted successfully"}
    db.expire_all()
    assert crud_posts.get_post(db, post.id) is None

def test_delete_refused_while_publishing(client, make_post):
    post = make_post(status="publishing")
    resp = client.delete(f"/posts/{post.id}")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Cannot delete post while it's being published"}


# -- single-platform post ----------------------------------------------------

def test_platform_post_endpoint(client, platforms, make_account):
    platforms.add("POST", twitter_api.TWEETS_URL, status=201, json={"data": {"id": "t-9"}})
    make_account("twitter", account_name="Sam (@sam)")

    resp = client.post("/twitter/post", json={"content": "hello", "userId": "user-1"})

    assert resp.json() == {"success": True, "message": "Tweet posted successfully!",
                           "postId": "t-9", "accountName": "Sam (@sam)"}

def test_platform_post_facebook_passes_link(client, platforms, make_account):
    feed = graph_url("/page-1/feed")
    platforms.add("POST", feed, json={"id": "page-1_2"})
    make_account("facebook", platform_user_id="page-1")

    resp = client.post("/facebook/post", json={"content": "read this", "userId": "user-1",
                                               "link": "https://example.com"})

    assert resp.status_code == 200
    assert "link=https%3A%2F%2Fexample.com" in platforms.calls_to(feed)[0].content.decode()

@pytest.mark.parametrize("platform,payload,status,error", [
    ("twitter", {"userId": "user-1"}, 400, "Post content is required"),
    ("twitter", {"content": "hi"}, 400, "userId is required"),
    ("instagram", {"content": "hi", "userId": "user-1"}, 400,
     "Instagram requires an image URL. Text-only posts are not supported."),
    ("linkedin", {"content": "hi", "userId": "user-1"}, 400,
     "No LinkedIn account connected. Please connect your LinkedIn account first."),
    ("myspace", {"content": "hi", "userId": "user-1"}, 400, "Unsupported platform: myspace"),
])
def test_platform_post_rejections(client, platform, payload, status, error):
    resp = client.post(f"/{platform}/post", json=payload)
    assert resp.status_code == status
    assert resp.json() == {"error": error}

def test_platform_post_expired_session_is_401(client, platforms, make_account):
    platforms.add("POST", twitter_api.TWEETS_URL, status=401, json={"title": "Unauthorized"})
    make_account("twitter")
    resp = client.post("/twitter/post", json={"content": "hi", "userId": "user-1"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Twitter session expired. Please reconnect your Twitter account."}


# -- workspaces --------------------------------------------------------------

def test_workspace_delete_cascades(client, db, make_account, make_post):
    ws = client.post("/workspaces", json={"name": "Main", "ownerId": "user-1"}).json()["workspace"]
    other = client.post("/workspaces", json={"name": "Side", "ownerId": "user-1"}).json()["workspace"]
    only_here = make_account("twitter")
    shared = make_account("linkedin")
    crud_accounts.link_to_workspace(db, ws["id"], only_here)
    crud_accounts.link_to_workspace(db, ws["id"], shared)
    crud_accounts.link_to_workspace(db, other["id"], shared)
    make_post(workspace_id=ws["id"])
    make_post(workspace_id=other["id"])

    resp = client.delete(f"/workspaces/{ws['id']}", params={"userId": "user-1"})

    assert resp.status_code == 200
    assert resp.json()["deleted"] == {"posts": 1, "links": 2, "accounts": 1}
    db.expire_all()
    assert [a.platform for a in db.query(SocialAccount).all()] == ["linkedin"]
    assert db.query(WorkspaceAccount).count() == 1
    assert db.query(Post).count() == 1

def test_workspace_delete_by_non_owner(client):
    ws = client.post("/workspaces", json={"name": "Main", "ownerId": "user-1"}).json()["workspace"]
    resp = client.delete(f"/workspaces/{ws['id']}", params={"userId": "user-2"})
    assert resp.status_code == 403

def test_workspace_create_needs_name_and_owner(client):
    resp = client.post("/workspaces", json={"name": "Main"})
    assert resp.json() == {"error": "name and ownerId are required"}


# -- scheduled dispatch ------------------------------------------------------

def test_due_scheduled_posts_are_published(client, db, http, platforms, make_account, make_post):
    platforms.add("POST", twitter_api.TWEETS_URL, status=201, json={"data": {"id": "t-5"}})
    make_account("twitter")
    due = make_post(status="scheduled", scheduled_at=utcnow() - timedelta(minutes=1),
                    scheduled_platforms=["twitter"])
    later = make_post(status="scheduled", scheduled_at=utcnow() + timedelta(hours=1),
                      scheduled_platforms=["twitter"])
    untargeted = make_post(status="scheduled", scheduled_at=utcnow() - timedelta(minutes=1))

    result = scheduler.run_once(http)

    assert result["dispatched"] == 2
    db.expire_all()
    assert crud_posts.get_post(db, due.id).status == "published"
    assert crud_posts.get_post(db, later.id).status == "scheduled"
    stale = crud_posts.get_post(db, untargeted.id)
    assert stale.status == "failed"
    assert stale.error_log == scheduler.NO_TARGETS_ERROR

def test_scheduler_run_endpoint_with_nothing_due(client, http, monkeypatch):
    monkeypatch.setattr("studio.services.scheduler.get_http", lambda: http)
    assert client.post("/scheduler/run").json() == {"status": "no-due-posts", "dispatched": 0, "posts": []}
