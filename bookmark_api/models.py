"""
Lester v1 - Bookmark API Pydantic Models

Request and response bodies that are not core models.
"""

from pydantic import BaseModel, Field

from shared.models import Bookmark, SyncOp, TagJob


class WorkspaceCreate(BaseModel):
    """Request body for creating a workspace"""
    name: str = Field(..., description="Workspace name")


class CreateBookmarkResponse(BaseModel):
    """A new bookmark together with the tag job queued for it"""
    bookmark: Bookmark
    job: TagJob


class MergeRequest(BaseModel):
    """Two operation logs to reconcile"""
    left: list[SyncOp] = Field(default_factory=list, description="Ops from the first device")
    right: list[SyncOp] = Field(default_factory=list, description="Ops from the second device")


class ErrorResponse(BaseModel):
    """Error body returned for every handled failure"""
    error: str = Field(..., description="Error message")


class HealthResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")
    database: str = Field(..., description="Database connection status")
