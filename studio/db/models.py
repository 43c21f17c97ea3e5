from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, ForeignKey, UniqueConstraint
from studio.db.base import Base, new_id, utcnow

PLATFORMS = ("linkedin", "twitter", "facebook", "instagram")
POST_STATUSES = ("draft", "scheduled", "publishing", "published", "failed")

class Workspace(Base):
    __tablename__ = "workspaces"
    id = Column(String(32), primary_key=True, default=new_id)
    owner_id = Column(String(64), nullable=False, index=True)
    name = Column(String(256), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

class SocialAccount(Base):
    __tablename__ = "social_accounts"
    __table_args__ = (UniqueConstraint("platform_user_id", "platform", name="uq_social_account_external"),)
    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(64), nullable=False, index=True)
    platform = Column(String(16), nullable=False, index=True)
    platform_user_id = Column(String(128), nullable=False)  # LinkedIn sub, Page id, IG business id...
    # stored via token_crypto (Fernet when FERNET_KEY is set)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    token_expiry = Column(DateTime, nullable=True)
    account_name = Column(String(256), nullable=True)
    account_email = Column(String(320), nullable=True)
    account_image = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

class WorkspaceAccount(Base):
    __tablename__ = "workspace_accounts"
    __table_args__ = (UniqueConstraint("workspace_id", "social_account_id", name="uq_workspace_account"),)
    id = Column(String(32), primary_key=True, default=new_id)
    workspace_id = Column(String(64), nullable=False, index=True)
    social_account_id = Column(String(32), ForeignKey("social_accounts.id"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

class Post(Base):
    __tablename__ = "posts"
    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(64), nullable=False, index=True)
    workspace_id = Column(String(64), nullable=False, index=True)
    content = Column(Text, default="", nullable=False)
    topic = Column(String(512), default="Untitled Post")
    tone = Column(String(64), nullable=True)
    status = Column(String(16), default="draft", nullable=False, index=True)
    scheduled_at = Column(DateTime, nullable=True)
    # targets used by the scheduled dispatcher
    scheduled_platforms = Column(JSON, default=list)
    # [{platform, postId, publishedAt, url?}]
    published_platforms = Column(JSON, default=list)
    error_log = Column(Text, nullable=True)
    media_urls = Column(JSON, default=list)
    retry_count = Column(Integer, default=0, nullable=False)
    last_retry_at = Column(DateTime, nullable=True)
    # {platform: content override}
    platform_content = Column(JSON, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
