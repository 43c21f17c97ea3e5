from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from studio.db import crud_accounts
from studio.deps import get_db
from studio.errors import NotFoundError, OwnershipError, ValidationError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("")
def list_accounts(
    workspaceId: Optional[str] = None,
    userId: Optional[str] = None,
    platform: Optional[str] = None,
    all_accounts: bool = Query(False, alias="all"),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Workspace-linked accounts, or every account of the user with ``all=true``."""
    if all_accounts and userId:
        rows = crud_accounts.list_user_accounts(db, userId, platform)
    elif workspaceId:
        rows = crud_accounts.list_workspace_accounts(db, workspaceId, platform)
    else:
        raise ValidationError("workspaceId is required")
    return {"accounts": [crud_accounts.account_to_public_dict(a) for a in rows]}

@router.delete("")
def remove_account(
    accountId: Optional[str] = None,
    userId: Optional[str] = None,
    workspaceId: Optional[str] = None,
    deleteCompletely: bool = False,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    if not accountId or not userId:
        raise ValidationError("accountId and userId are required")
    account = crud_accounts.get_account(db, accountId)
    if account is None:
        raise NotFoundError("Account not found")
    if account.user_id != userId:
        raise OwnershipError("Unauthorized")

    if deleteCompletely:
        crud_accounts.delete_account(db, account)
        logger.info("account_deleted", account_id=accountId, platform=account.platform)
    elif workspaceId:
        n = crud_accounts.unlink_from_workspace(db, workspaceId, accountId)
        logger.info("account_unlinked", account_id=accountId, workspace_id=workspaceId, links=n)
    else:
        raise ValidationError("workspaceId is required for unlinking")
    return {"success": True}
