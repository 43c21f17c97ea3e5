from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from studio.db.base import utcnow
from studio.db.models import Post

def create_post(db: Session, data: Dict[str, Any]) -> Post:
    obj = Post(**data)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def get_post(db: Session, post_id: str) -> Post | None:
    return db.get(Post, post_id)

def list_posts(
    db: Session,
    workspace_id: str,
    status: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> Tuple[List[Post], int]:
    q = db.query(Post).filter(Post.workspace_id == workspace_id)
    if status:
        q = q.filter(Post.status == status)
    total = q.count()
    rows = q.order_by(Post.created_at.desc(), Post.id.desc()).offset(offset).limit(limit).all()
    return rows, total

def update_post(db: Session, post: Post, fields: Dict[str, Any]) -> Post:
    for key, value in fields.items():
        setattr(post, key, value)
    db.add(post)
    db.commit()
    db.refresh(post)
    return post

def delete_post(db: Session, post: Post) -> None:
    db.delete(post)
    db.commit()

def try_mark_publishing(db: Session, post_id: str, is_retry: bool = False) -> bool:
    """Compare-and-set status -> publishing. False when another request holds it."""
    values: Dict[Any, Any] = {Post.status: "publishing", Post.updated_at: utcnow()}
    if is_retry:
        values[Post.retry_count] = Post.retry_count + 1
        values[Post.last_retry_at] = utcnow()
    n = (
        db.query(Post)
        .filter(Post.id == post_id, Post.status != "publishing")
        .update(values, synchronize_session=False)
    )
    db.commit()
    return n == 1

def finish_publish(
    db: Session,
    post_id: str,
    status: str,
    published_platforms: List[Dict[str, Any]],
    error_log: Optional[str],
) -> None:
    # single write for status + published list + error log
    db.query(Post).filter(Post.id == post_id).update(
        {
            Post.status: status,
            Post.published_platforms: published_platforms,
            Post.error_log: error_log,
            Post.updated_at: utcnow(),
        },
        synchronize_session=False,
    )
    db.commit()

def mark_failed(db: Session, post_id: str, error_log: str) -> None:
    db.query(Post).filter(Post.id == post_id).update(
        {Post.status: "failed", Post.error_log: error_log, Post.updated_at: utcnow()},
        synchronize_session=False,
    )
    db.commit()

def due_scheduled_posts(db: Session, now: datetime | None = None, limit: int = 50) -> List[Post]:
    return (
        db.query(Post)
        .filter(Post.status == "scheduled", Post.scheduled_at.isnot(None), Post.scheduled_at <= (now or utcnow()))
        .order_by(Post.scheduled_at.asc())
        .limit(limit)
        .all()
    )

def delete_workspace_posts(db: Session, workspace_id: str) -> int:
    n = db.query(Post).filter(Post.workspace_id == workspace_id).delete(synchronize_session=False)
    db.commit()
    return n

def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None

def post_to_dict(p: Post) -> Dict[str, Any]:
    return {
        "id": p.id,
        "userId": p.user_id,
        "workspaceId": p.workspace_id,
        "content": p.content,
        "topic": p.topic,
        "tone": p.tone,
        "status": p.status,
        "scheduledAt": _iso(p.scheduled_at),
        "scheduledPlatforms": list(p.scheduled_platforms or []),
        "publishedPlatforms": list(p.published_platforms or []),
        "errorLog": p.error_log,
        "mediaUrls": list(p.media_urls or []),
        "retryCount": p.retry_count or 0,
        "lastRetryAt": _iso(p.last_retry_at),
        "platformContent": dict(p.platform_content or {}),
        "createdAt": _iso(p.created_at),
        "updatedAt": _iso(p.updated_at),
    }
