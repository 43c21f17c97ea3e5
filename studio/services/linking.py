"""Account-link round trip: consent redirect out, callback back in."""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, urlencode

import httpx
import structlog
from sqlalchemy.orm import Session

from studio.config import settings
from studio.db import crud_accounts
from studio.errors import ValidationError
from studio.services import oauth_state, tokens
from studio.services.adapters import get_adapter

logger = structlog.get_logger(__name__)


@dataclass
class LinkResult:
    workspace_id: str
    account_id: str
    created: bool
    linked: bool
    message: str


def start_link(platform: str, user_id: Optional[str], workspace_id: Optional[str]) -> str:
    """Consent URL to redirect the browser to."""
    get_adapter(platform, None)
    if not user_id or not workspace_id:
        raise ValidationError("userId and workspaceId are required")
    state = oauth_state.new_state(user_id, workspace_id, platform)
    url = tokens.authorize_url(platform, state, oauth_state.sign_state(state))
    logger.info("link_started", platform=platform, user_id=user_id, workspace_id=workspace_id)
    return url

def complete_link(db: Session, http: httpx.Client, platform: str, code: str, state_token: str) -> LinkResult:
    adapter = get_adapter(platform, http)
    state = oauth_state.decode_state(state_token, platform)
    log = logger.bind(platform=platform, user_id=state.user_id, workspace_id=state.workspace_id)

    token_set = tokens.exchange_code_for_tokens(
        http,
        platform,
        code,
        settings.redirect_uri(platform),
        code_verifier=state.code_verifier if platform == "twitter" else None,
    )
    log.info("link_tokens_exchanged", expires_in=token_set.expires_in)

    identity = adapter.fetch_identity(token_set.access_token)
    # a Page token replaces the user token; its lifetime follows the user token's
    account, created = crud_accounts.upsert_social_account(
        db,
        user_id=state.user_id,
        platform=platform,
        platform_user_id=identity.platform_user_id,
        access_token=identity.access_token,
        expires_in=token_set.expires_in,
        refresh_token=token_set.refresh_token if adapter.supports_refresh else None,
        account_name=identity.account_name,
        account_email=identity.account_email,
        account_image=identity.account_image,
    )
    _, linked = crud_accounts.link_to_workspace(db, state.workspace_id, account)
    log.info("link_completed", account_id=account.id, created=created, linked=linked)

    return LinkResult(
        workspace_id=state.workspace_id,
        account_id=account.id,
        created=created,
        linked=linked,
        message=success_message(adapter.label, identity.description, platform),
    )

def success_message(label: str, description: Optional[str], platform: str) -> str:
    if platform == "facebook" and description:
        return f'Facebook Page "{description}" linked successfully'
    if platform == "instagram" and description:
        return f"Instagram account {description} linked successfully"
    return f"{label} account linked successfully"

def settings_redirect(workspace_id: Optional[str], **params: str) -> str:
    """Frontend page to land on after the callback, with success/error in the query."""
    path = f"/workspace/{workspace_id}/settings" if workspace_id else "/onboarding"
    qs = urlencode(params, quote_via=quote)
    return f"{settings.frontend_url.rstrip('/')}{path}?{qs}"
