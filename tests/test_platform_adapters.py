import json

import pytest

from studio.errors import AuthExpiredError, PlatformAPIError, ValidationError
from studio.services import linkedin_api, twitter_api
from studio.services.adapters import ADAPTERS, get_adapter
from studio.services.facebook_api import graph_url
from studio.services.platform_base import truncate


@pytest.mark.parametrize("platform", sorted(ADAPTERS))
def test_over_limit_content_is_cut_to_limit_with_marker(platform):
    limit = ADAPTERS[platform].max_length
    for extra in (1, 2, 57):
        text = "x" * (limit + extra)
        out = get_adapter(platform, None).prepare_content(text)
        assert len(out) == limit
        assert out.endswith("...")

def test_content_at_limit_is_untouched():
    assert truncate("a" * 280, 280) == "a" * 280
    assert truncate("short", 280) == "short"


def test_twitter_scenario_400_chars_sent_as_277_plus_marker(db, http, platforms, make_account):
    platforms.add("POST", twitter_api.TWEETS_URL, status=201, json={"data": {"id": "1790", "text": "..."}})
    account = make_account("twitter")

    outcome = get_adapter("twitter", http).publish("y" * 400, account, "access-1")

    sent = json.loads(platforms.calls_to(twitter_api.TWEETS_URL)[0].content)
    assert sent["text"] == "y" * 277 + "..."
    assert outcome.post_id == "1790"
    assert outcome.url == "https://x.com/i/web/status/1790"

@pytest.mark.parametrize("status,exc,needle", [
    (401, AuthExpiredError, "reconnect"),
    (403, PlatformAPIError, "Permission denied"),
])
def test_twitter_auth_failures(db, http, platforms, make_account, status, exc, needle):
    platforms.add("POST", twitter_api.TWEETS_URL, status=status, json={"title": "Unauthorized"})
    with pytest.raises(exc) as info:
        get_adapter("twitter", http).publish("hi", make_account("twitter"), "access-1")
    assert needle in info.value.message

def test_twitter_other_error_surfaces_detail(db, http, platforms, make_account):
    platforms.add("POST", twitter_api.TWEETS_URL, status=429, json={"title": "Too Many Requests", "detail": "slow down"})
    with pytest.raises(PlatformAPIError) as info:
        get_adapter("twitter", http).publish("hi", make_account("twitter"), "access-1")
    assert info.value.message == "Failed to post to Twitter: slow down"
    assert info.value.status_code == 429


def test_linkedin_reads_post_id_from_restli_header(db, http, platforms, make_account):
    platforms.add("POST", linkedin_api.POSTS_URL, status=201, headers={"x-restli-id": "urn:li:share:42"})
    account = make_account("linkedin", platform_user_id="abc123")

    outcome = get_adapter("linkedin", http).publish("Hello LinkedIn", account, "access-1")

    req = platforms.calls_to(linkedin_api.POSTS_URL)[0]
    body = json.loads(req.content)
    assert body["author"] == "urn:li:person:abc123"
    assert body["commentary"] == "Hello LinkedIn"
    assert req.headers["Authorization"] == "Bearer access-1"
    assert req.headers["LinkedIn-Version"]
    assert outcome.post_id == "urn:li:share:42"
    assert outcome.url == "https://www.linkedin.com/feed/update/urn:li:share:42/"

def test_linkedin_401_maps_to_reconnect(db, http, platforms, make_account):
    platforms.add("POST", linkedin_api.POSTS_URL, status=401, json={"message": "expired"})
    with pytest.raises(AuthExpiredError) as info:
        get_adapter("linkedin", http).publish("x", make_account("linkedin"), "access-1")
    assert info.value.status_code == 401
    assert "reconnect your LinkedIn account" in info.value.message


def test_facebook_posts_to_page_feed_with_link(db, http, platforms, make_account):
    feed = graph_url("/page-9/feed")
    platforms.add("POST", feed, json={"id": "page-9_555"})
    account = make_account("facebook", platform_user_id="page-9")

    outcome = get_adapter("facebook", http).publish("news", account, "page-token", link="https://example.com/a")

    form = platforms.calls_to(feed)[0].content.decode()
    assert "message=news" in form
    assert "access_token=page-token" in form
    assert "link=https%3A%2F%2Fexample.com%2Fa" in form
    assert outcome.post_id == "page-9_555"
    assert outcome.url == "https://www.facebook.com/page-9_555"

def test_facebook_code_190_maps_to_reconnect(db, http, platforms, make_account):
    platforms.add("POST", graph_url("/page-9/feed"), status=400,
                  json={"error": {"message": "Session has expired", "code": 190}})
    with pytest.raises(AuthExpiredError):
        get_adapter("facebook", http).publish("x", make_account("facebook", platform_user_id="page-9"), "t")

def test_facebook_error_body_on_200_is_a_failure(db, http, platforms, make_account):
    platforms.add("POST", graph_url("/page-9/feed"), json={"error": {"message": "Duplicate status", "code": 506}})
    with pytest.raises(PlatformAPIError) as info:
        get_adapter("facebook", http).publish("x", make_account("facebook", platform_user_id="page-9"), "t")
    assert info.value.message == "Facebook error: Duplicate status"
    assert info.value.status_code == 400


def test_instagram_without_image_fails_before_any_call(db, http, platforms, make_account):
    with pytest.raises(ValidationError) as info:
        get_adapter("instagram", http).publish("caption", make_account("instagram"), "t")
    assert "requires an image URL" in info.value.message
    assert platforms.calls == []

def test_instagram_two_step_publish(db, http, platforms, make_account):
    platforms.add("POST", graph_url("/ig-1/media"), json={"id": "container-7"})
    platforms.add("POST", graph_url("/ig-1/media_publish"), json={"id": "media-8"})
    account = make_account("instagram", platform_user_id="ig-1")

    outcome = get_adapter("instagram", http).publish("c" * 2300, account, "t", image_url="https://img.test/1.jpg")

    first, second = platforms.calls
    assert "image_url=https%3A%2F%2Fimg.test%2F1.jpg" in first.content.decode()
    assert "creation_id=container-7" in second.content.decode()
    assert outcome.post_id == "media-8"

def test_instagram_step_two_failure_names_the_orphaned_container(db, http, platforms, make_account):
    platforms.add("POST", graph_url("/ig-1/media"), json={"id": "container-7"})
    platforms.add("POST", graph_url("/ig-1/media_publish"), status=500, json={"error": {"message": "boom"}})
    account = make_account("instagram", platform_user_id="ig-1")

    with pytest.raises(PlatformAPIError) as info:
        get_adapter("instagram", http).publish("c", account, "t", image_url="https://img.test/1.jpg")
    assert "container-7" in info.value.message
    assert "boom" in info.value.message

def test_instagram_code_190_on_container_step(db, http, platforms, make_account):
    platforms.add("POST", graph_url("/ig-1/media"), status=400, json={"error": {"message": "bad", "code": 190}})
    account = make_account("instagram", platform_user_id="ig-1")
    with pytest.raises(AuthExpiredError):
        get_adapter("instagram", http).publish("c", account, "t", image_url="https://img.test/1.jpg")
    assert len(platforms.calls) == 1


def test_unknown_platform_is_rejected():
    with pytest.raises(ValidationError):
        get_adapter("myspace", None)


@pytest.mark.parametrize("platform,url,status,body,label", [
    ("linkedin", linkedin_api.POSTS_URL, 201, {}, "LinkedIn"),
    ("twitter", twitter_api.TWEETS_URL, 201, {"data": {}}, "Twitter"),
    ("facebook", graph_url("/page-9/feed"), 200, {}, "Facebook"),
])
def test_success_without_post_id_is_an_error(db, http, platforms, make_account, platform, url, status, body, label):
    platforms.add("POST", url, status=status, json=body)
    account = make_account(platform, platform_user_id="page-9")
    with pytest.raises(PlatformAPIError) as info:
        get_adapter(platform, http).publish("hi", account, "t")
    assert info.value.message == f"{label} did not return a post id"

def test_instagram_container_without_id_stops_before_publish(db, http, platforms, make_account):
    platforms.add("POST", graph_url("/ig-1/media"), json={})
    account = make_account("instagram", platform_user_id="ig-1")
    with pytest.raises(PlatformAPIError):
        get_adapter("instagram", http).publish("c", account, "t", image_url="https://img.test/1.jpg")
    assert len(platforms.calls) == 1
