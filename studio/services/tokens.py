"""OAuth token lifecycle: consent URLs, code exchange, refresh.

Only Twitter has a refresh path; for the other platforms an expired token
means the user reconnects.
"""

import base64
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import urlencode, quote

import httpx
import structlog
from cryptography.fernet import InvalidToken
from sqlalchemy.orm import Session

from studio.config import settings
from studio.db import crud_accounts
from studio.db.models import SocialAccount
from studio.errors import ConfigurationError, PlatformAPIError, ValidationError
from studio.services import facebook_api, linkedin_api, twitter_api
from studio.services.adapters import ADAPTERS
from studio.services.oauth_state import LinkState, pkce_challenge
from studio.services.platform_base import json_body

logger = structlog.get_logger(__name__)

TWITTER_SCOPES = "tweet.read tweet.write users.read offline.access"
FACEBOOK_SCOPES = "public_profile,email,pages_show_list,pages_read_engagement,pages_manage_posts"
INSTAGRAM_SCOPES = (
    "instagram_basic,instagram_content_publish,pages_show_list,pages_read_engagement,business_management"
)

# used when the provider omits expires_in
DEFAULT_EXPIRES_IN = {"linkedin": 3600, "twitter": 7200, "facebook": 3600, "instagram": 3600}
LONG_LIVED_EXPIRES_IN = 5184000  # ~60 days


@dataclass
class TokenSet:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


def client_credentials(platform: str) -> Tuple[str, str]:
    if platform == "linkedin":
        pair = (settings.linkedin_client_id, settings.linkedin_client_secret)
    elif platform == "twitter":
        pair = (settings.twitter_client_id, settings.twitter_client_secret)
    elif platform in ("facebook", "instagram"):
        pair = (settings.facebook_app_id, settings.facebook_app_secret)
    else:
        raise ValidationError(f"Unsupported platform: {platform}")
    if not pair[0] or not pair[1]:
        raise ConfigurationError(f"{ADAPTERS[platform].label} is not configured")
    return pair

def authorize_url(platform: str, state: LinkState, signed_state: str) -> str:
    """Consent URL for the platform, carrying the signed state."""
    client_id, _ = client_credentials(platform)
    redirect_uri = settings.redirect_uri(platform)
    if platform == "linkedin":
        base = linkedin_api.AUTH_URL
        params = {
            "response_type": "code",
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "state": signed_state,
            "scope": settings.linkedin_scopes,
        }
    elif platform == "twitter":
        base = twitter_api.AUTH_URL
        params = {
            "response_type": "code",
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "scope": TWITTER_SCOPES,
            "state": signed_state,
            "code_challenge": pkce_challenge(state.code_verifier),
            "code_challenge_method": "S256",
        }
    else:
        base = facebook_api.DIALOG_URL.format(version=settings.graph_api_version)
        params = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "scope": FACEBOOK_SCOPES if platform == "facebook" else INSTAGRAM_SCOPES,
            "state": signed_state,
            "response_type": "code",
        }
    qs = urlencode(params, quote_via=quote, safe=":/")
    return f"{base}?{qs}"

def _basic_auth(client_id: str, client_secret: str) -> str:
    return "Basic " + base64.b64encode(f"{client_id}:{client_secret}".encode()).decode()

def _token_set(platform: str, data: dict) -> TokenSet:
    access_token = data.get("access_token")
    if not access_token:
        raise PlatformAPIError(f"Token exchange failed: no access_token in {platform} response")
    return TokenSet(
        access_token=access_token,
        refresh_token=data.get("refresh_token"),
        expires_in=int(data.get("expires_in") or DEFAULT_EXPIRES_IN[platform]),
    )

def exchange_code_for_tokens(
    http: httpx.Client,
    platform: str,
    code: str,
    redirect_uri: str,
    code_verifier: Optional[str] = None,
) -> TokenSet:
    client_id, client_secret = client_credentials(platform)

    if platform == "linkedin":
        r = http.post(
            linkedin_api.TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": client_id,
                "client_secret": client_secret,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
    elif platform == "twitter":
        if not code_verifier:
            raise ValidationError("Invalid state: missing PKCE verifier")
        r = http.post(
            twitter_api.TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "code_verifier": code_verifier,
            },
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Authorization": _basic_auth(client_id, client_secret),
            },
        )
    else:
        r = http.get(
            facebook_api.graph_url("/oauth/access_token"),
            params={
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": redirect_uri,
                "code": code,
            },
        )

    if r.status_code != 200:
        logger.warning("token_exchange_failed", platform=platform, status=r.status_code, body=r.text[:500])
        raise PlatformAPIError(f"Token exchange failed: {r.text}", r.status_code)
    tokens = _token_set(platform, json_body(r))

    if platform in ("facebook", "instagram"):
        tokens = _upgrade_facebook_token(http, tokens, client_id, client_secret)
    return tokens

def _upgrade_facebook_token(http: httpx.Client, short: TokenSet, client_id: str, client_secret: str) -> TokenSet:
    """Swap a ~1h token for a ~60 day one; keep the short-lived token if that fails."""
    try:
        r = http.get(
            facebook_api.graph_url("/oauth/access_token"),
            params={
                "grant_type": "fb_exchange_token",
                "client_id": client_id,
                "client_secret": client_secret,
                "fb_exchange_token": short.access_token,
            },
        )
    except httpx.HTTPError as e:
        logger.warning("facebook_long_lived_exchange_error", error=str(e))
        return short
    if r.status_code != 200:
        logger.warning("facebook_long_lived_exchange_failed", status=r.status_code)
        return short
    data = json_body(r)
    if not data.get("access_token"):
        logger.warning("facebook_long_lived_exchange_unusable", body=r.text[:200])
        return short
    return TokenSet(
        access_token=data["access_token"],
        expires_in=int(data.get("expires_in") or LONG_LIVED_EXPIRES_IN),
    )

def refresh_access_token(http: httpx.Client, platform: str, refresh_token: str) -> Optional[TokenSet]:
    """New tokens, or None when the user has to reconnect."""
    if platform != "twitter" or not refresh_token:
        return None
    try:
        client_id, client_secret = client_credentials(platform)
        r = http.post(
            twitter_api.TOKEN_URL,
            data={"grant_type": "refresh_token", "refresh_token": refresh_token},
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Authorization": _basic_auth(client_id, client_secret),
            },
        )
    except (httpx.HTTPError, ConfigurationError) as e:
        logger.warning("token_refresh_error", platform=platform, error=str(e))
        return None
    if r.status_code != 200:
        logger.warning("token_refresh_failed", platform=platform, status=r.status_code)
        return None
    try:
        return _token_set(platform, json_body(r))
    except PlatformAPIError:
        return None

def refresh_account_token(db: Session, http: httpx.Client, account: SocialAccount) -> Optional[str]:
    """Refresh and persist the account's tokens; returns the new access token."""
    try:
        current_refresh = crud_accounts.refresh_token_of(account)
    except (TypeError, InvalidToken):
        return None
    if not current_refresh:
        return None
    tokens = refresh_access_token(http, account.platform, current_refresh)
    if tokens is None:
        return None
    # keeps the old refresh token when the provider doesn't rotate it
    crud_accounts.update_tokens(db, account, tokens.access_token, tokens.expires_in, tokens.refresh_token)
    logger.info("token_refreshed", platform=account.platform, account_id=account.id)
    return tokens.access_token
