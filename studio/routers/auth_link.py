from typing import Optional

import httpx
import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from studio.deps import get_db, get_http
from studio.errors import StudioError
from studio.services import linking
from studio.services.adapters import ADAPTERS
from studio.services.oauth_state import peek_workspace_id

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["account-link"])


@router.get("/link/{platform}")
def link(platform: str, userId: Optional[str] = None, workspaceId: Optional[str] = None) -> RedirectResponse:
    url = linking.start_link(platform, userId, workspaceId)
    return RedirectResponse(url, status_code=302)

@router.get("/callback/{platform}-link")
def callback(
    platform: str,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    db: Session = Depends(get_db),
    http: httpx.Client = Depends(get_http),
) -> RedirectResponse:
    if error:
        logger.info("link_denied", platform=platform, error=error)
        return RedirectResponse(linking.settings_redirect(None, error=error_description or error), status_code=302)
    if not code or not state:
        return RedirectResponse(
            linking.settings_redirect(None, error="Missing authorization code or state"), status_code=302
        )

    label = ADAPTERS[platform].label if platform in ADAPTERS else platform
    try:
        result = linking.complete_link(db, http, platform, code, state)
    except (StudioError, httpx.HTTPError) as e:
        message = e.message if isinstance(e, StudioError) else f"Failed to reach {platform}"
        logger.warning("link_failed", platform=platform, error=message)
        return RedirectResponse(
            linking.settings_redirect(peek_workspace_id(state), error=message or f"Failed to link {label} account"),
            status_code=302,
        )
    except Exception:
        logger.exception("link_crashed", platform=platform)
        db.rollback()
        return RedirectResponse(
            linking.settings_redirect(peek_workspace_id(state), error=f"Failed to link {label} account"),
            status_code=302,
        )
    return RedirectResponse(linking.settings_redirect(result.workspace_id, success=result.message), status_code=302)
