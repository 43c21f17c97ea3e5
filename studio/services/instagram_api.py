from typing import Optional

import structlog

from studio.db.models import SocialAccount
from studio.errors import PlatformAPIError, ValidationError
from studio.services.facebook_api import graph_error, graph_url, is_token_invalid
from studio.services.platform_base import LinkedIdentity, PlatformAdapter, PublishOutcome

logger = structlog.get_logger(__name__)


class InstagramAdapter(PlatformAdapter):
    """Instagram Graph API: create a media container, then publish it.

    There is no rollback: when the publish step fails the container stays
    on Instagram's side unpublished, and the error names its creation id.
    """

    platform = "instagram"
    label = "Instagram"
    max_length = 2200

    def check_request(self, content: str, image_url: Optional[str] = None) -> None:
        # caption is optional, the image is not
        if not image_url:
            raise ValidationError("Instagram requires an image URL. Text-only posts are not supported.")

    def publish(
        self,
        content: str,
        account: SocialAccount,
        access_token: str,
        image_url: Optional[str] = None,
        link: Optional[str] = None,
    ) -> PublishOutcome:
        self.check_request(content, image_url)

        ig_id = account.platform_user_id
        caption = self.prepare_content(content) if content else ""

        r = self.http.post(
            graph_url(f"/{ig_id}/media"),
            data={"image_url": image_url, "caption": caption, "access_token": access_token},
        )
        body = self._json(r)
        if r.status_code != 200 or graph_error(body):
            self._log_failure(r, step="media")
            if is_token_invalid(r, body):
                raise self.session_expired_error()
            message = graph_error(body).get("message") or "Unknown error"
            raise PlatformAPIError(f"Failed to create Instagram media: {message}", r.status_code if r.status_code != 200 else 400)
        if not body.get("id"):
            raise PlatformAPIError("Instagram did not return a media container id")
        creation_id = str(body["id"])

        r = self.http.post(
            graph_url(f"/{ig_id}/media_publish"),
            data={"creation_id": creation_id, "access_token": access_token},
        )
        body = self._json(r)
        if r.status_code != 200 or graph_error(body):
            self._log_failure(r, step="media_publish")
            logger.warning("instagram_container_orphaned", creation_id=creation_id)
            if is_token_invalid(r, body):
                raise self.session_expired_error()
            message = graph_error(body).get("message") or "Unknown error"
            raise PlatformAPIError(
                f"Failed to publish to Instagram: {message} "
                f"(media container {creation_id} was created but not published)",
                r.status_code if r.status_code != 200 else 400,
            )

        media_id = str(self.require_post_id(body.get("id")))
        return PublishOutcome(post_id=media_id, account_name=account.account_name)

    def fetch_identity(self, access_token: str) -> LinkedIdentity:
        pages = self.http.get(
            graph_url("/me/accounts"),
            params={"fields": "id,name,access_token,instagram_business_account", "access_token": access_token},
        )
        if pages.status_code != 200:
            self._log_failure(pages, step="me/accounts")
            raise PlatformAPIError("Failed to fetch Facebook pages", pages.status_code)

        for page in self._json(pages).get("data") or []:
            business = page.get("instagram_business_account") if isinstance(page, dict) else None
            if not isinstance(business, dict) or not business.get("id"):
                continue
            page_token = page.get("access_token")
            ig = self.http.get(
                graph_url(f"/{business['id']}"),
                params={"fields": "id,username,profile_picture_url", "access_token": page_token},
            )
            if ig.status_code != 200:
                self._log_failure(ig, step="ig_user")
                continue
            data = self._json(ig)
            if not data.get("id"):
                continue
            logger.info("instagram_account_found", ig_id=data.get("id"))
            return LinkedIdentity(
                platform_user_id=str(data["id"]),
                access_token=page_token,
                account_name=f"@{data.get('username')}",
                account_image=data.get("profile_picture_url"),
                description=f"@{data.get('username')}",
            )

        raise PlatformAPIError(
            "No Instagram Business account found. Make sure you have an Instagram "
            "Professional account connected to a Facebook Page.",
            400,
        )
