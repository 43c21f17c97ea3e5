from typing import Optional

from sqlalchemy.orm import Session

from studio.db import crud_accounts
from studio.db.models import SocialAccount
from studio.errors import NotConnectedError, NotFoundError, OwnershipError, ValidationError
from studio.services.adapters import ADAPTERS

def resolve_account(db: Session, platform: str, user_id: str, account_id: Optional[str] = None) -> SocialAccount:
    """Pick the credential to publish with.

    An explicit account id must belong to the user (user-scoped, not
    workspace-scoped). Otherwise the user's most recently created account
    for the platform is used.
    """
    adapter_cls = ADAPTERS.get(platform)
    if adapter_cls is None:
        raise ValidationError(f"Unsupported platform: {platform}")

    if account_id:
        account = crud_accounts.get_account(db, account_id)
        if account is None:
            raise NotFoundError("Account not found")
        if account.user_id != user_id:
            raise OwnershipError("Unauthorized")
        if account.platform != platform:
            raise ValidationError(f"Account {account_id} is not a {adapter_cls.label} account")
        return account

    account = crud_accounts.latest_account_for(db, user_id, platform)
    if account is None:
        label = adapter_cls.label
        raise NotConnectedError(f"No {label} account connected. Please connect your {label} account first.")
    return account
