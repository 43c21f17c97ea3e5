from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from studio.db import crud
from studio.deps import get_db
from studio.errors import NotFoundError, OwnershipError, ValidationError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


class WorkspaceIn(BaseModel):
    name: Optional[str] = None
    ownerId: Optional[str] = None


@router.post("", status_code=201)
def create_workspace(body: WorkspaceIn, db: Session = Depends(get_db)) -> Dict[str, Any]:
    if not body.name or not body.ownerId:
        raise ValidationError("name and ownerId are required")
    ws = crud.create_workspace(db, owner_id=body.ownerId, name=body.name)
    return {"workspace": crud.workspace_to_dict(ws)}

@router.get("")
def list_workspaces(ownerId: Optional[str] = None, db: Session = Depends(get_db)) -> Dict[str, Any]:
    if not ownerId:
        raise ValidationError("ownerId is required")
    return {"workspaces": [crud.workspace_to_dict(w) for w in crud.list_workspaces(db, ownerId)]}

@router.delete("/{workspace_id}")
def delete_workspace(workspace_id: str, userId: Optional[str] = None, db: Session = Depends(get_db)) -> Dict[str, Any]:
    if not userId:
        raise ValidationError("userId is required")
    ws = crud.get_workspace(db, workspace_id)
    if ws is None:
        raise NotFoundError("Workspace not found")
    if ws.owner_id != userId:
        raise OwnershipError("Unauthorized")
    removed = crud.delete_workspace(db, ws)
    logger.info("workspace_deleted", workspace_id=workspace_id, **removed)
    return {"success": True, "deleted": removed}
