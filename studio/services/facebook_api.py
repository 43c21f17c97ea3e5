from typing import Any, Dict, Optional

import httpx
import structlog

from studio.config import settings
from studio.db.models import SocialAccount
from studio.errors import PlatformAPIError
from studio.services.platform_base import LinkedIdentity, PlatformAdapter, PublishOutcome

logger = structlog.get_logger(__name__)

DIALOG_URL = "https://www.facebook.com/{version}/dialog/oauth"
GRAPH_URL = "https://graph.facebook.com/{version}"

# Graph API: OAuthException "invalid/expired access token"
TOKEN_INVALID_CODE = 190

def graph_url(path: str = "") -> str:
    return GRAPH_URL.format(version=settings.graph_api_version) + path

def graph_error(body: Dict[str, Any]) -> Dict[str, Any]:
    err = body.get("error")
    return err if isinstance(err, dict) else {}

def is_token_invalid(resp: httpx.Response, body: Dict[str, Any]) -> bool:
    return resp.status_code == TOKEN_INVALID_CODE or graph_error(body).get("code") == TOKEN_INVALID_CODE


class FacebookAdapter(PlatformAdapter):
    platform = "facebook"
    label = "Facebook"
    max_length = 63206

    def publish(
        self,
        content: str,
        account: SocialAccount,
        access_token: str,
        image_url: Optional[str] = None,
        link: Optional[str] = None,
    ) -> PublishOutcome:
        data = {"message": self.prepare_content(content), "access_token": access_token}
        if link:
            data["link"] = link
        # platform_user_id is the Page id when a Page was connected at link time
        r = self.http.post(graph_url(f"/{account.platform_user_id}/feed"), data=data)
        body = self._json(r)
        if r.status_code != 200 or graph_error(body):
            self._log_failure(r)
            if is_token_invalid(r, body):
                raise self.session_expired_error()
            message = graph_error(body).get("message") or "Unknown error"
            if r.status_code == 200:
                raise PlatformAPIError(f"Facebook error: {message}", 400)
            raise PlatformAPIError(f"Failed to post to Facebook: {message}", r.status_code)

        post_id = str(self.require_post_id(body.get("id")))
        return PublishOutcome(
            post_id=post_id,
            url=f"https://www.facebook.com/{post_id}",
            account_name=account.account_name,
        )

    def fetch_identity(self, access_token: str) -> LinkedIdentity:
        r = self.http.get(graph_url("/me"), params={"fields": "id,name,email,picture", "access_token": access_token})
        if r.status_code != 200:
            self._log_failure(r, step="me")
            raise PlatformAPIError("Failed to fetch Facebook profile", r.status_code)
        profile = self._json(r)
        image = ((profile.get("picture") or {}).get("data") or {}).get("url")

        identity = LinkedIdentity(
            platform_user_id=str(profile.get("id", "")),
            access_token=access_token,
            account_name=profile.get("name"),
            account_email=profile.get("email"),
            account_image=image,
        )

        # Publishing needs a Page token; first Page wins, else keep the user token.
        pages = self.http.get(graph_url("/me/accounts"), params={"access_token": access_token})
        if pages.status_code == 200:
            data = [p for p in self._json(pages).get("data") or [] if isinstance(p, dict) and p.get("id")]
            if data:
                page = data[0]
                logger.info("facebook_page_found", page_id=page.get("id"))
                identity.platform_user_id = str(page["id"])
                identity.access_token = page.get("access_token") or access_token
                identity.account_name = f"{page.get('name')} (Page)"
                identity.description = page.get("name")
        else:
            self._log_failure(pages, step="me/accounts")

        if not identity.platform_user_id:
            raise PlatformAPIError("Failed to fetch Facebook profile")
        return identity
