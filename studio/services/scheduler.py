from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
import structlog
from sqlalchemy.orm import Session

from studio.db import base, crud_posts
from studio.db.models import Post
from studio.deps import get_http
from studio.errors import StudioError
from studio.services.publisher import publish_post

logger = structlog.get_logger(__name__)

NO_TARGETS_ERROR = "Scheduled post has no target platforms"


def dispatch_due_posts(db: Session, http: httpx.Client, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Publish every scheduled post whose time has come; one entry per post."""
    report: List[Dict[str, Any]] = []
    for post in crud_posts.due_scheduled_posts(db, now=now):
        report.append(_dispatch(db, http, post))
    return report

def _dispatch(db: Session, http: httpx.Client, post: Post) -> Dict[str, Any]:
    targets = list(post.scheduled_platforms or [])
    if not targets:
        crud_posts.mark_failed(db, post.id, NO_TARGETS_ERROR)
        logger.warning("scheduled_post_without_targets", post_id=post.id)
        return {"postId": post.id, "status": "failed", "error": NO_TARGETS_ERROR}
    try:
        summary = publish_post(db, http, post.id, targets, post.user_id, post.workspace_id)
    except StudioError as e:
        # another worker got it, or the store failed; next tick picks it up if still due
        logger.warning("scheduled_dispatch_failed", post_id=post.id, error=e.message)
        return {"postId": post.id, "status": "error", "error": e.message}
    return {"postId": post.id, "status": summary.status, **summary.to_dict()}

def run_once(http: Optional[httpx.Client] = None) -> Dict[str, Any]:
    # each job run gets its own session
    db = base.SessionLocal()
    try:
        report = dispatch_due_posts(db, http or get_http())
    finally:
        db.close()
    logger.info("scheduler_tick", dispatched=len(report))
    if not report:
        return {"status": "no-due-posts", "dispatched": 0, "posts": []}
    return {"status": "dispatched", "dispatched": len(report), "posts": report}
