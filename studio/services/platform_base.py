"""Common shape for the per-platform publish adapters.

An adapter knows one platform's publish call, its content-length policy and
how that platform signals an invalid token. Results come back as a
``PublishOutcome``; failures are raised as ``studio.errors`` exceptions.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
import structlog
from cryptography.fernet import InvalidToken
from sqlalchemy.orm import Session

from studio.db import crud_accounts
from studio.db.models import SocialAccount
from studio.errors import AuthExpiredError, PlatformAPIError, ValidationError

logger = structlog.get_logger(__name__)

TRUNCATION_MARKER = "..."

def json_body(resp: httpx.Response) -> Dict[str, Any]:
    """Decoded JSON object, or {} when the body is not one."""
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}

def truncate(content: str, limit: int) -> str:
    if len(content) <= limit:
        return content
    return content[: limit - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


@dataclass
class PublishOutcome:
    post_id: str
    url: Optional[str] = None
    account_name: Optional[str] = None


@dataclass
class LinkedIdentity:
    """Who the OAuth grant belongs to, and which token to store for publishing."""
    platform_user_id: str
    access_token: str
    account_name: Optional[str] = None
    account_email: Optional[str] = None
    account_image: Optional[str] = None
    # Facebook/Instagram store a Page token whose owner differs from the user
    description: Optional[str] = None


class PlatformAdapter:
    platform: str = ""
    label: str = ""
    max_length: int = 0
    supports_refresh: bool = False

    def __init__(self, http: httpx.Client):
        self.http = http

    # -- content policy -------------------------------------------------

    def prepare_content(self, content: str) -> str:
        return truncate(content or "", self.max_length)

    def check_request(self, content: str, image_url: Optional[str] = None) -> None:
        """Reject requests the platform can never accept, before any lookup or call."""
        if not content:
            raise ValidationError("Post content is required")

    # -- auth -----------------------------------------------------------

    def token_expired_error(self) -> AuthExpiredError:
        return AuthExpiredError(f"{self.label} token expired. Please reconnect your {self.label} account.")

    def session_expired_error(self) -> AuthExpiredError:
        return AuthExpiredError(f"{self.label} session expired. Please reconnect your {self.label} account.")

    def permission_denied_error(self) -> PlatformAPIError:
        return PlatformAPIError("Permission denied. Make sure you have granted posting permissions.", 403)

    def usable_access_token(self, db: Session, account: SocialAccount) -> str:
        """Pre-flight: fail fast on an expired token unless the platform can refresh."""
        if crud_accounts.is_token_expired(account):
            if not self.supports_refresh:
                raise self.token_expired_error()
            # imported here; tokens imports the adapters' endpoint constants
            from studio.services import tokens
            fresh = tokens.refresh_account_token(db, self.http, account)
            if not fresh:
                raise self.token_expired_error()
            return fresh
        try:
            return crud_accounts.access_token_of(account)
        except (TypeError, InvalidToken):
            raise self.token_expired_error()

    # -- platform calls -------------------------------------------------

    def publish(
        self,
        content: str,
        account: SocialAccount,
        access_token: str,
        image_url: Optional[str] = None,
        link: Optional[str] = None,
    ) -> PublishOutcome:
        raise NotImplementedError

    def fetch_identity(self, access_token: str) -> LinkedIdentity:
        raise NotImplementedError

    # -- helpers --------------------------------------------------------

    _json = staticmethod(json_body)

    def require_post_id(self, post_id: Optional[str]) -> str:
        if not post_id:
            raise PlatformAPIError(f"{self.label} did not return a post id")
        return post_id

    def _log_failure(self, resp: httpx.Response, step: str = "publish") -> None:
        logger.warning(
            "platform_call_failed",
            platform=self.platform,
            step=step,
            status=resp.status_code,
            body=resp.text[:500],
        )
