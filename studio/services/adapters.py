from typing import Dict, Type

import httpx

from studio.errors import ValidationError
from studio.services.facebook_api import FacebookAdapter
from studio.services.instagram_api import InstagramAdapter
from studio.services.linkedin_api import LinkedInAdapter
from studio.services.platform_base import PlatformAdapter
from studio.services.twitter_api import TwitterAdapter

ADAPTERS: Dict[str, Type[PlatformAdapter]] = {
    "linkedin": LinkedInAdapter,
    "twitter": TwitterAdapter,
    "facebook": FacebookAdapter,
    "instagram": InstagramAdapter,
}

def get_adapter(platform: str, http: httpx.Client) -> PlatformAdapter:
    cls = ADAPTERS.get(platform)
    if cls is None:
        raise ValidationError(f"Unsupported platform: {platform}")
    return cls(http)
