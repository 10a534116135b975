"""
Lester v1 - Core Models

Pydantic models for workspaces, bookmarks, tags, tag jobs and sync operations.
"""

import time
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidInputError


def now_ts() -> int:
    """Current time in whole seconds since the epoch"""
    return int(time.time())


class TagSource(str, Enum):
    """Provenance of a tag suggestion"""
    RULES = "rules"
    LLM = "llm"


class TagJobStatus(str, Enum):
    """Lifecycle states of a tag job"""
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class Workspace(BaseModel):
    """A named grouping of bookmarks"""
    id: UUID
    name: str
    created_at: int


class Bookmark(BaseModel):
    """A saved URL inside a workspace"""
    id: UUID
    workspace_id: UUID
    url: str
    title: str
    notes: Optional[str] = None
    created_at: int
    updated_at: int


class BookmarkInput(BaseModel):
    """Fields supplied when creating a bookmark"""
    workspace_id: UUID
    url: str
    title: str
    notes: Optional[str] = None

    def cleaned(self) -> "BookmarkInput":
        """
        Return a copy with url and title trimmed.

        Raises:
            InvalidInputError: If url or title is blank
        """
        url = self.url.strip()
        title = self.title.strip()
        if not url or not title:
            raise InvalidInputError("bookmark url or title is empty")
        return self.model_copy(update={"url": url, "title": title})


class BookmarkFilter(BaseModel):
    """Optional filters for listing bookmarks"""
    workspace_id: Optional[UUID] = None
    tag: Optional[str] = None
    query: Optional[str] = None


class Tag(BaseModel):
    """A deduplicated tag, unique by name"""
    id: UUID
    name: str
    created_at: int


class TagSuggestion(BaseModel):
    """A candidate tag that has not been persisted yet"""
    name: str
    confidence: float = Field(ge=0.0, le=1.0)
    source: TagSource


class TagCloudEntry(BaseModel):
    name: str
    weight: float


class TagJob(BaseModel):
    """One enrichment task for one bookmark"""
    id: UUID
    bookmark_id: UUID
    status: TagJobStatus = TagJobStatus.PENDING
    attempts: int = 0
    created_at: int
    updated_at: int


class SyncOp(BaseModel):
    """
    A single field-level edit made on one device.

    Ops are immutable once created. ``value`` holds any JSON value and keeps
    its type (number, string, boolean, null) through serialization.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID
    entity: str
    entity_id: UUID
    field: str
    value: Any = None
    timestamp: int
    device_id: UUID


class SyncEnvelope(BaseModel):
    """The operation log of one device, as shipped between devices"""
    device_id: UUID
    ops: list[SyncOp] = Field(default_factory=list)


class SyncConflict(BaseModel):
    """Two edits of the same field with the same timestamp from different devices"""
    entity: str
    entity_id: UUID
    field: str
    left: SyncOp
    right: SyncOp


class MergeResult(BaseModel):
    """Reconciled ops, one per (entity, entity_id, field), plus detected conflicts"""
    merged_ops: list[SyncOp] = Field(default_factory=list)
    conflicts: list[SyncConflict] = Field(default_factory=list)
