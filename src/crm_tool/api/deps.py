"""API dependencies - request context, database session and record store"""
from typing import Annotated
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from src.crm_tool.database import get_db
from src.crm_tool.services.client_store import RecordStore, SqlAlchemyClientStore
from src.crm_tool.services.import_types import ImportContext


def get_import_context(
    x_user_id: str = Header(..., description="Acting user ID supplied by the host application"),
    x_workspace_id: str = Header(..., description="Workspace the import is scoped to")
) -> ImportContext:
    user_id = x_user_id.strip()
    workspace_id = x_workspace_id.strip()
    if not user_id or not workspace_id:
        raise HTTPException(status_code=400, detail="X-User-Id and X-Workspace-Id are required")
    return ImportContext(user_id=user_id, workspace_id=workspace_id)


def get_client_store(db: Session = Depends(get_db)) -> RecordStore:
    return SqlAlchemyClientStore(db)


DbSession = Annotated[Session, Depends(get_db)]
RequestContext = Annotated[ImportContext, Depends(get_import_context)]
ClientStore = Annotated[RecordStore, Depends(get_client_store)]
