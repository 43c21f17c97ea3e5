"""Fan one post out to several platforms and fold the results into one status.

Platforms are published one after another in request order. A failure on
one platform is recorded as that platform's result and never stops the
rest; only storage failures (or anything before fan-out starts) abort the
whole request.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studio.db import crud_posts
from studio.errors import (
    InfrastructureError,
    NotFoundError,
    OwnershipError,
    PublishConflictError,
    StudioError,
    ValidationError,
)
from studio.services.accounts import resolve_account
from studio.services.adapters import ADAPTERS, get_adapter
from studio.services.platform_base import PublishOutcome

logger = structlog.get_logger(__name__)


@dataclass
class PlatformPublishResult:
    platform: str
    success: bool
    post_id: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"platform": self.platform, "success": self.success}
        if self.post_id is not None:
            out["postId"] = self.post_id
        if self.url is not None:
            out["url"] = self.url
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass
class PublishSummary:
    post_id: str
    status: str
    results: List[PlatformPublishResult] = field(default_factory=list)

    @property
    def published(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success(self) -> bool:
        return self.published > 0

    @property
    def message(self) -> str:
        if self.published == self.total:
            return "Post published successfully to all platforms"
        if self.published > 0:
            return "Post published with some errors"
        return "Failed to publish post to any platform"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "results": [r.to_dict() for r in self.results],
            "published": self.published,
            "failed": self.failed,
            "total": self.total,
        }


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

def normalize_platforms(platforms: List[str]) -> List[str]:
    """Validate the requested targets; duplicates collapse, order is kept."""
    if not platforms:
        raise ValidationError("platforms array is required")
    seen: List[str] = []
    for p in platforms:
        if p not in ADAPTERS:
            raise ValidationError(f"Unsupported platform: {p}")
        if p not in seen:
            seen.append(p)
    return seen

def publish_to_platform(
    db: Session,
    http: httpx.Client,
    platform: str,
    content: str,
    user_id: str,
    account_id: Optional[str] = None,
    image_url: Optional[str] = None,
    link: Optional[str] = None,
) -> PublishOutcome:
    """Resolve the account, check its token and make the platform call."""
    adapter = get_adapter(platform, http)
    adapter.check_request(content, image_url)
    account = resolve_account(db, platform, user_id, account_id)
    access_token = adapter.usable_access_token(db, account)
    return adapter.publish(content, account, access_token, image_url=image_url, link=link)

def _attempt(
    db: Session,
    http: httpx.Client,
    platform: str,
    content: str,
    user_id: str,
    image_url: Optional[str],
) -> PlatformPublishResult:
    try:
        outcome = publish_to_platform(db, http, platform, content, user_id, image_url=image_url)
    except StudioError as e:
        return PlatformPublishResult(platform=platform, success=False, error=e.message)
    except httpx.HTTPError as e:
        logger.warning("platform_unreachable", platform=platform, error=str(e))
        return PlatformPublishResult(platform=platform, success=False, error=f"{platform} request failed: {e}")
    except SQLAlchemyError:
        raise
    except Exception as e:
        logger.exception("platform_publish_crashed", platform=platform)
        return PlatformPublishResult(platform=platform, success=False, error=str(e) or type(e).__name__)
    return PlatformPublishResult(platform=platform, success=True, post_id=outcome.post_id, url=outcome.url)

def publish_post(
    db: Session,
    http: httpx.Client,
    post_id: str,
    platforms: List[str],
    user_id: str,
    workspace_id: Optional[str] = None,
) -> PublishSummary:
    targets = normalize_platforms(platforms)

    post = crud_posts.get_post(db, post_id)
    if post is None:
        raise NotFoundError("Post not found")
    if post.user_id != user_id:
        raise OwnershipError("Unauthorized")
    if post.status == "publishing":
        raise PublishConflictError("Post is already being published")

    # compare-and-set; loses to any request that got there first
    if not crud_posts.try_mark_publishing(db, post_id, is_retry=post.status == "failed"):
        raise PublishConflictError("Post is already being published")

    log = logger.bind(post_id=post_id, workspace_id=workspace_id or post.workspace_id)
    log.info("publish_started", platforms=targets)

    try:
        content = post.content or ""
        overrides = dict(post.platform_content or {})
        media = list(post.media_urls or [])
        published_platforms = list(post.published_platforms or [])
        image_url = media[0] if media else None

        summary = PublishSummary(post_id=post_id, status="publishing")
        for platform in targets:
            platform_content = overrides.get(platform) or content
            result = _attempt(
                db, http, platform, platform_content, user_id,
                image_url if platform == "instagram" else None,
            )
            summary.results.append(result)
            if result.success and result.post_id:
                entry = {"platform": platform, "postId": result.post_id, "publishedAt": _now_iso()}
                if result.url:
                    entry["url"] = result.url
                published_platforms.append(entry)

        failures = [r for r in summary.results if not r.success]
        summary.status = "failed" if len(failures) == len(summary.results) else "published"
        error_log = "; ".join(f"{r.platform}: {r.error}" for r in failures) or None

        crud_posts.finish_publish(db, post_id, summary.status, published_platforms, error_log)
        log.info("publish_finished", status=summary.status, published=summary.published, failed=summary.failed)
        return summary
    except Exception as e:
        log.exception("publish_aborted")
        try:
            db.rollback()
            crud_posts.mark_failed(db, post_id, str(e) or type(e).__name__)
        except Exception:
            log.exception("publish_status_fallback_failed")
        raise InfrastructureError(str(e) or "Failed to publish post") from e
