from typing import Optional

import structlog

from studio.db.models import SocialAccount
from studio.errors import PlatformAPIError
from studio.services.platform_base import LinkedIdentity, PlatformAdapter, PublishOutcome

logger = structlog.get_logger(__name__)

AUTH_URL = "https://twitter.com/i/oauth2/authorize"
TOKEN_URL = "https://api.twitter.com/2/oauth2/token"
TWEETS_URL = "https://api.twitter.com/2/tweets"
ME_URL = "https://api.twitter.com/2/users/me"


class TwitterAdapter(PlatformAdapter):
    platform = "twitter"
    label = "Twitter"
    max_length = 280
    # the only platform with a refresh_token grant wired up
    supports_refresh = True

    def publish(
        self,
        content: str,
        account: SocialAccount,
        access_token: str,
        image_url: Optional[str] = None,
        link: Optional[str] = None,
    ) -> PublishOutcome:
        r = self.http.post(
            TWEETS_URL,
            headers={"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"},
            json={"text": self.prepare_content(content)},
        )
        if r.status_code == 401:
            self._log_failure(r)
            raise self.session_expired_error()
        if r.status_code == 403:
            self._log_failure(r)
            raise self.permission_denied_error()
        if r.status_code not in (200, 201):
            self._log_failure(r)
            err = self._json(r)
            detail = err.get("detail") or err.get("title") or "Unknown error"
            raise PlatformAPIError(f"Failed to post to Twitter: {detail}", r.status_code)

        tweet_id = str(self.require_post_id((self._json(r).get("data") or {}).get("id")))
        return PublishOutcome(
            post_id=tweet_id,
            url=f"https://x.com/i/web/status/{tweet_id}",
            account_name=account.account_name,
        )

    def fetch_identity(self, access_token: str) -> LinkedIdentity:
        r = self.http.get(
            ME_URL,
            params={"user.fields": "profile_image_url,name,username"},
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if r.status_code != 200:
            self._log_failure(r, step="users/me")
            raise PlatformAPIError("Failed to fetch Twitter profile", r.status_code)
        user = self._json(r).get("data") or {}
        if not user.get("id"):
            raise PlatformAPIError("Failed to fetch Twitter profile")
        return LinkedIdentity(
            platform_user_id=str(user["id"]),
            access_token=access_token,
            account_name=f"{user.get('name', '')} (@{user.get('username', '')})",
            account_image=user.get("profile_image_url"),
        )
