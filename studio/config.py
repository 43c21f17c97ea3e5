import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./studio.db")
    # where this API is reachable (OAuth redirect URIs are built from it)
    app_url: str = os.getenv("APP_URL", "http://localhost:8000")
    # where users land after an OAuth callback
    frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    state_secret: str = os.getenv("STATE_SECRET", "")
    state_ttl_seconds: int = int(os.getenv("STATE_TTL_SECONDS", "600"))
    fernet_key: str = os.getenv("FERNET_KEY", "")

    linkedin_client_id: str = os.getenv("LINKEDIN_CLIENT_ID", "")
    linkedin_client_secret: str = os.getenv("LINKEDIN_CLIENT_SECRET", "")
    linkedin_scopes: str = os.getenv("LINKEDIN_SCOPES", "openid profile email w_member_social")
    linkedin_api_version: str = os.getenv("LINKEDIN_API_VERSION", "202411")

    twitter_client_id: str = os.getenv("TWITTER_CLIENT_ID", "")
    twitter_client_secret: str = os.getenv("TWITTER_CLIENT_SECRET", "")

    # Instagram publishing goes through the same Facebook app
    facebook_app_id: str = os.getenv("FACEBOOK_APP_ID", "")
    facebook_app_secret: str = os.getenv("FACEBOOK_APP_SECRET", "")
    graph_api_version: str = os.getenv("GRAPH_API_VERSION", "v18.0")

    http_timeout: float = float(os.getenv("HTTP_TIMEOUT", "30"))
    scheduler_interval_seconds: int = int(os.getenv("SCHEDULER_INTERVAL_SECONDS", "60"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_json: bool = os.getenv("LOG_JSON", "false").lower() in ("1", "true", "yes")

    def redirect_uri(self, platform: str) -> str:
        return f"{self.app_url.rstrip('/')}/auth/callback/{platform}-link"

settings = Settings()
