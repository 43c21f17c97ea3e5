from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from studio.deps import get_db, get_http
from studio.errors import ValidationError
from studio.services.adapters import get_adapter
from studio.services.publisher import publish_to_platform

router = APIRouter(tags=["platform-post"])

SUCCESS_MESSAGES = {
    "linkedin": "Post published successfully!",
    "twitter": "Tweet posted successfully!",
    "facebook": "Post published to Facebook successfully!",
    "instagram": "Post published to Instagram successfully!",
}


class PlatformPostIn(BaseModel):
    content: Optional[str] = None
    userId: Optional[str] = None
    accountId: Optional[str] = None
    # instagram only
    imageUrl: Optional[str] = None
    # facebook only
    link: Optional[str] = None


@router.post("/{platform}/post")
def post_to_platform(
    platform: str,
    body: PlatformPostIn,
    db: Session = Depends(get_db),
    http: httpx.Client = Depends(get_http),
) -> Dict[str, Any]:
    # content/image problems are reported before a missing userId
    get_adapter(platform, http).check_request(body.content or "", body.imageUrl)
    if not body.userId:
        raise ValidationError("userId is required")

    outcome = publish_to_platform(
        db,
        http,
        platform,
        body.content or "",
        body.userId,
        account_id=body.accountId,
        image_url=body.imageUrl if platform == "instagram" else None,
        link=body.link if platform == "facebook" else None,
    )
    return {
        "success": True,
        "message": SUCCESS_MESSAGES[platform],
        "postId": outcome.post_id,
        "accountName": outcome.account_name,
    }
