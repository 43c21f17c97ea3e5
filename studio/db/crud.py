from sqlalchemy.orm import Session
from typing import List, Dict, Any
from studio.db import models, crud_accounts, crud_posts

def create_workspace(db: Session, owner_id: str, name: str) -> models.Workspace:
    obj = models.Workspace(owner_id=owner_id, name=name)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def get_workspace(db: Session, workspace_id: str) -> models.Workspace | None:
    return db.get(models.Workspace, workspace_id)

def list_workspaces(db: Session, owner_id: str) -> List[models.Workspace]:
    return (
        db.query(models.Workspace)
        .filter(models.Workspace.owner_id == owner_id)
        .order_by(models.Workspace.created_at.desc())
        .all()
    )

def delete_workspace(db: Session, ws: models.Workspace) -> Dict[str, int]:
    """Remove the workspace, its posts and links; accounts left unlinked go too."""
    linked_ids = [
        row.social_account_id
        for row in db.query(models.WorkspaceAccount).filter(models.WorkspaceAccount.workspace_id == ws.id).all()
    ]
    links = (
        db.query(models.WorkspaceAccount)
        .filter(models.WorkspaceAccount.workspace_id == ws.id)
        .delete(synchronize_session=False)
    )
    db.commit()
    posts = crud_posts.delete_workspace_posts(db, ws.id)
    accounts = crud_accounts.delete_orphaned_accounts(db, linked_ids)
    db.delete(ws)
    db.commit()
    return {"posts": posts, "links": links, "accounts": accounts}

def workspace_to_dict(ws: models.Workspace) -> Dict[str, Any]:
    return {
        "id": ws.id,
        "ownerId": ws.owner_id,
        "name": ws.name,
        "createdAt": ws.created_at.isoformat() if ws.created_at else None,
    }
