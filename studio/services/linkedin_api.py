# studio/services/linkedin_api.py
from typing import Optional

import httpx
import structlog

from studio.config import settings
from studio.db.models import SocialAccount
from studio.errors import PlatformAPIError
from studio.services.platform_base import LinkedIdentity, PlatformAdapter, PublishOutcome

logger = structlog.get_logger(__name__)

AUTH_URL  = "https://www.linkedin.com/oauth/v2/authorization"
TOKEN_URL = "https://www.linkedin.com/oauth/v2/accessToken"
POSTS_URL = "https://api.linkedin.com/rest/posts"
USERINFO_URL = "https://api.linkedin.com/v2/userinfo"

# Helper: log request id if present in LinkedIn response
def log_request_id(resp: httpx.Response) -> None:
    req_id = resp.headers.get("x-restli-request-id")
    if req_id:
        logger.info("linkedin_request", request_id=req_id, status=resp.status_code)


class LinkedInAdapter(PlatformAdapter):
    platform = "linkedin"
    label = "LinkedIn"
    max_length = 3000

    def publish(
        self,
        content: str,
        account: SocialAccount,
        access_token: str,
        image_url: Optional[str] = None,
        link: Optional[str] = None,
    ) -> PublishOutcome:
        payload = {
            "author": f"urn:li:person:{account.platform_user_id}",
            "commentary": self.prepare_content(content),
            "visibility": "PUBLIC",
            "distribution": {
                "feedDistribution": "MAIN_FEED",
                "targetEntities": [],
                "thirdPartyDistributionChannels": [],
            },
            "lifecycleState": "PUBLISHED",
        }
        r = self.http.post(
            POSTS_URL,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
                "X-Restli-Protocol-Version": "2.0.0",
                "LinkedIn-Version": settings.linkedin_api_version,
            },
            json=payload,
        )
        log_request_id(r)
        if r.status_code == 401:
            self._log_failure(r)
            raise self.session_expired_error()
        if r.status_code == 403:
            self._log_failure(r)
            raise self.permission_denied_error()
        if r.status_code not in (200, 201, 202):
            self._log_failure(r)
            raise PlatformAPIError(f"Failed to post to LinkedIn: {r.text}", r.status_code)

        # 201 Created; the post urn comes back in x-restli-id
        post_id = self.require_post_id(r.headers.get("x-restli-id") or self._json(r).get("id"))
        url = f"https://www.linkedin.com/feed/update/{post_id}/"
        return PublishOutcome(post_id=post_id, url=url, account_name=account.account_name)

    def fetch_identity(self, access_token: str) -> LinkedIdentity:
        r = self.http.get(USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"})
        if r.status_code != 200:
            self._log_failure(r, step="userinfo")
            raise PlatformAPIError("Failed to fetch LinkedIn profile", r.status_code)
        profile = self._json(r)
        sub = profile.get("sub")
        if not sub:
            raise PlatformAPIError("LinkedIn profile has no 'sub'")
        return LinkedIdentity(
            platform_user_id=str(sub),
            access_token=access_token,
            account_name=profile.get("name"),
            account_email=profile.get("email"),
            account_image=profile.get("picture"),
        )
