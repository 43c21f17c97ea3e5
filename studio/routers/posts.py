from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from studio.db import crud_posts
from studio.db.base import as_naive_utc, utcnow
from studio.db.models import POST_STATUSES
from studio.deps import get_db, get_http
from studio.errors import NotFoundError, ValidationError
from studio.services.publisher import normalize_platforms, publish_post

router = APIRouter(prefix="/posts", tags=["posts"])

MAX_CONTENT_LENGTH = 5000
EDITABLE_STATUSES = ("draft", "scheduled")


class PostCreateIn(BaseModel):
    userId: str
    workspaceId: str
    content: Optional[str] = None
    topic: Optional[str] = None
    tone: Optional[str] = None
    status: Optional[str] = None
    scheduledAt: Optional[str] = None
    scheduledPlatforms: Optional[List[str]] = None
    mediaUrls: Optional[List[str]] = None
    platformContent: Optional[Dict[str, str]] = None

class PostUpdateIn(BaseModel):
    content: Optional[str] = None
    topic: Optional[str] = None
    tone: Optional[str] = None
    status: Optional[str] = None
    scheduledAt: Optional[str] = None
    scheduledPlatforms: Optional[List[str]] = None
    mediaUrls: Optional[List[str]] = None
    platformContent: Optional[Dict[str, str]] = None

class PublishIn(BaseModel):
    platforms: List[str]
    userId: str
    workspaceId: Optional[str] = None


def _parse_scheduled_at(raw: str) -> datetime:
    try:
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError("Invalid scheduledAt date format")
    return as_naive_utc(value)

def _check_content(content: Optional[str]) -> None:
    if content and len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(f"content must not exceed {MAX_CONTENT_LENGTH} characters")

def _check_platforms(platforms: Optional[List[str]]) -> Optional[List[str]]:
    if not platforms:
        return platforms
    return normalize_platforms(platforms)

def _load(db: Session, post_id: str):
    post = crud_posts.get_post(db, post_id)
    if post is None:
        raise NotFoundError("Post not found")
    return post


@router.post("", status_code=201)
def create_post(body: PostCreateIn, db: Session = Depends(get_db)) -> Dict[str, Any]:
    if not body.userId:
        raise ValidationError("userId is required")
    if not body.workspaceId:
        raise ValidationError("workspaceId is required")
    _check_content(body.content)

    status = body.status or "draft"
    if status not in POST_STATUSES:
        raise ValidationError("Invalid status value")
    if status == "publishing":
        raise ValidationError("status publishing is set by the publish flow")

    scheduled_at = None
    if body.scheduledAt:
        scheduled_at = _parse_scheduled_at(body.scheduledAt)
        if scheduled_at < utcnow():
            raise ValidationError("scheduledAt must be in the future")
    if status == "scheduled" and scheduled_at is None:
        raise ValidationError("scheduledAt is required for scheduled posts")

    post = crud_posts.create_post(db, {
        "user_id": body.userId,
        "workspace_id": body.workspaceId,
        "content": body.content or "",
        "topic": body.topic or "Untitled Post",
        "tone": body.tone,
        "status": status,
        "scheduled_at": scheduled_at,
        "scheduled_platforms": _check_platforms(body.scheduledPlatforms) or [],
        "media_urls": body.mediaUrls or [],
        "platform_content": body.platformContent or {},
    })
    return {"post": crud_posts.post_to_dict(post), "message": "Post created successfully"}

@router.get("")
def list_posts(
    workspaceId: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    if not workspaceId:
        raise ValidationError("workspaceId is required")
    if limit < 1 or limit > 100:
        raise ValidationError("limit must be between 1 and 100")
    if offset < 0:
        raise ValidationError("offset must not be negative")
    if status and status not in POST_STATUSES:
        raise ValidationError("Invalid status value")
    rows, total = crud_posts.list_posts(db, workspaceId, status=status, limit=limit, offset=offset)
    return {
        "posts": [crud_posts.post_to_dict(p) for p in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
        "hasMore": offset + limit < total,
    }

@router.get("/{post_id}")
def get_post(post_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    return {"post": crud_posts.post_to_dict(_load(db, post_id))}

@router.patch("/{post_id}")
def update_post(post_id: str, body: PostUpdateIn, db: Session = Depends(get_db)) -> Dict[str, Any]:
    post = _load(db, post_id)
    sent = body.model_dump(exclude_unset=True)
    if not sent:
        raise ValidationError("No fields to update")
    if post.status == "publishing":
        raise ValidationError("Cannot edit post while it's being published")
    _check_content(sent.get("content"))

    fields: Dict[str, Any] = {}
    for key, column in (("content", "content"), ("topic", "topic"), ("tone", "tone"),
                        ("mediaUrls", "media_urls"), ("platformContent", "platform_content")):
        if key in sent:
            fields[column] = sent[key]
    if "status" in sent:
        if sent["status"] not in POST_STATUSES:
            raise ValidationError("Invalid status value")
        # the publish flow owns publishing/published/failed
        if sent["status"] not in EDITABLE_STATUSES:
            raise ValidationError(f"status can only be set to {' or '.join(EDITABLE_STATUSES)}")
        fields["status"] = sent["status"]
    if "scheduledAt" in sent:
        fields["scheduled_at"] = _parse_scheduled_at(sent["scheduledAt"]) if sent["scheduledAt"] else None
    if "scheduledPlatforms" in sent:
        fields["scheduled_platforms"] = _check_platforms(sent["scheduledPlatforms"]) or []
    fields["updated_at"] = utcnow()

    post = crud_posts.update_post(db, post, fields)
    return {"post": crud_posts.post_to_dict(post), "message": "Post updated successfully"}

@router.delete("/{post_id}")
def delete_post(post_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    post = _load(db, post_id)
    if post.status == "publishing":
        raise ValidationError("Cannot delete post while it's being published")
    crud_posts.delete_post(db, post)
    return {"message": "Post deleted successfully"}

@router.post("/{post_id}/publish")
def publish(
    post_id: str,
    body: PublishIn,
    db: Session = Depends(get_db),
    http: httpx.Client = Depends(get_http),
) -> Dict[str, Any]:
    if not body.userId:
        raise ValidationError("userId is required")
    summary = publish_post(db, http, post_id, body.platforms, body.userId, body.workspaceId)
    return summary.to_dict()
