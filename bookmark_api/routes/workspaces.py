"""
Lester v1 - Workspace Routes
"""

from fastapi import APIRouter

from shared.models import Workspace

from ..db import get_store
from ..models import WorkspaceCreate

router = APIRouter(prefix="/workspaces", tags=["Workspaces"])


@router.get("", response_model=list[Workspace])
def list_workspaces():
    """List workspaces, newest first."""
    return get_store().list_workspaces()


@router.post("", response_model=Workspace, status_code=201)
def create_workspace(request: WorkspaceCreate):
    """Create a workspace. Blank names are rejected with 400."""
    return get_store().create_workspace(request.name)
