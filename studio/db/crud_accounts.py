# studio/db/crud_accounts.py
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from studio.db.base import utcnow, as_naive_utc
from studio.db.models import SocialAccount, WorkspaceAccount
from studio.db import token_crypto
from studio.errors import OwnershipError

def get_account(db: Session, account_id: str) -> SocialAccount | None:
    return db.get(SocialAccount, account_id)

def latest_account_for(db: Session, user_id: str, platform: str) -> SocialAccount | None:
    return (
        db.query(SocialAccount)
        .filter(SocialAccount.user_id == user_id, SocialAccount.platform == platform)
        .order_by(SocialAccount.created_at.desc(), SocialAccount.id.desc())
        .first()
    )

def find_by_external_id(db: Session, platform: str, platform_user_id: str) -> SocialAccount | None:
    return (
        db.query(SocialAccount)
        .filter(SocialAccount.platform == platform, SocialAccount.platform_user_id == platform_user_id)
        .first()
    )

def expiry_from(expires_in: Optional[int]) -> datetime | None:
    if not expires_in:
        return None
    return utcnow() + timedelta(seconds=int(expires_in))

def upsert_social_account(
    db: Session,
    user_id: str,
    platform: str,
    platform_user_id: str,
    access_token: str,
    expires_in: Optional[int],
    refresh_token: str | None = None,
    account_name: str | None = None,
    account_email: str | None = None,
    account_image: str | None = None,
) -> Tuple[SocialAccount, bool]:
    """Create or refresh the account for (platform, platform_user_id). Returns (row, created)."""
    row = find_by_external_id(db, platform, platform_user_id)
    if row is not None and row.user_id != user_id:
        raise OwnershipError(f"This {platform} account is already connected by another user")

    created = row is None
    if created:
        row = SocialAccount(user_id=user_id, platform=platform, platform_user_id=platform_user_id)
    row.access_token = token_crypto.encrypt_token(access_token)
    row.refresh_token = token_crypto.encrypt_token(refresh_token)
    row.token_expiry = expiry_from(expires_in)
    row.account_name = account_name
    row.account_email = account_email
    row.account_image = account_image
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        # a concurrent callback created it first; update that row instead
        db.rollback()
        if not created:
            raise
        return upsert_social_account(
            db, user_id, platform, platform_user_id, access_token, expires_in,
            refresh_token, account_name, account_email, account_image,
        )
    db.refresh(row)
    return row, created

def update_tokens(
    db: Session,
    account: SocialAccount,
    access_token: str,
    expires_in: Optional[int],
    refresh_token: str | None = None,
) -> SocialAccount:
    account.access_token = token_crypto.encrypt_token(access_token)
    if refresh_token:
        account.refresh_token = token_crypto.encrypt_token(refresh_token)
    account.token_expiry = expiry_from(expires_in)
    db.add(account)
    db.commit()
    db.refresh(account)
    return account

def access_token_of(account: SocialAccount) -> str:
    return token_crypto.decrypt_token(account.access_token)

def refresh_token_of(account: SocialAccount) -> str | None:
    return token_crypto.decrypt_token(account.refresh_token)

def is_token_expired(account: SocialAccount, now: datetime | None = None) -> bool:
    expiry = as_naive_utc(account.token_expiry)
    if expiry is None:
        return False
    return expiry < (now or utcnow())

def link_to_workspace(db: Session, workspace_id: str, account: SocialAccount) -> Tuple[WorkspaceAccount, bool]:
    link = (
        db.query(WorkspaceAccount)
        .filter(WorkspaceAccount.workspace_id == workspace_id, WorkspaceAccount.social_account_id == account.id)
        .first()
    )
    if link:
        return link, False
    link = WorkspaceAccount(workspace_id=workspace_id, social_account_id=account.id, user_id=account.user_id)
    db.add(link)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return link_to_workspace(db, workspace_id, account)
    db.refresh(link)
    return link, True

def list_user_accounts(db: Session, user_id: str, platform: str | None = None) -> List[SocialAccount]:
    q = db.query(SocialAccount).filter(SocialAccount.user_id == user_id)
    if platform:
        q = q.filter(SocialAccount.platform == platform)
    return q.order_by(SocialAccount.created_at.desc(), SocialAccount.id.desc()).all()

def list_workspace_accounts(db: Session, workspace_id: str, platform: str | None = None) -> List[SocialAccount]:
    q = (
        db.query(SocialAccount)
        .join(WorkspaceAccount, WorkspaceAccount.social_account_id == SocialAccount.id)
        .filter(WorkspaceAccount.workspace_id == workspace_id)
    )
    if platform:
        q = q.filter(SocialAccount.platform == platform)
    return q.order_by(SocialAccount.created_at.desc(), SocialAccount.id.desc()).all()

def unlink_from_workspace(db: Session, workspace_id: str, account_id: str) -> int:
    n = (
        db.query(WorkspaceAccount)
        .filter(WorkspaceAccount.workspace_id == workspace_id, WorkspaceAccount.social_account_id == account_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return n

def delete_account(db: Session, account: SocialAccount) -> None:
    # links first, then the account itself
    db.query(WorkspaceAccount).filter(WorkspaceAccount.social_account_id == account.id).delete(synchronize_session=False)
    db.delete(account)
    db.commit()

def delete_orphaned_accounts(db: Session, account_ids: List[str]) -> int:
    """Delete the given accounts that no workspace links any more."""
    removed = 0
    for account_id in account_ids:
        still_linked = db.query(WorkspaceAccount).filter(WorkspaceAccount.social_account_id == account_id).first()
        if still_linked:
            continue
        account = get_account(db, account_id)
        if account:
            db.delete(account)
            removed += 1
    db.commit()
    return removed

def account_to_public_dict(a: SocialAccount) -> Dict[str, Any]:
    # token fields never leave the server
    return {
        "id": a.id,
        "createdAt": a.created_at.isoformat() if a.created_at else None,
        "userId": a.user_id,
        "platform": a.platform,
        "platformUserId": a.platform_user_id,
        "accountName": a.account_name,
        "accountEmail": a.account_email,
        "accountImage": a.account_image,
    }
