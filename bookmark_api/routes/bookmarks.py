"""
Lester v1 - Bookmark Routes

Creating a bookmark also queues a tag job for it; the tag worker picks the
job up asynchronously.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, Response

from shared.errors import NotFoundError
from shared.models import Bookmark, BookmarkFilter, BookmarkInput

from ..db import get_store
from ..models import CreateBookmarkResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookmarks", tags=["Bookmarks"])


@router.get("", response_model=list[Bookmark])
def list_bookmarks(
    workspace_id: Optional[UUID] = Query(None),
    tag: Optional[str] = Query(None),
    q: Optional[str] = Query(None, description="Substring of title or URL"),
):
    """List bookmarks, most recently updated first."""
    filters = BookmarkFilter(workspace_id=workspace_id, tag=tag, query=q)
    return get_store().list_bookmarks(filters)


@router.post("", response_model=CreateBookmarkResponse, status_code=201)
def create_bookmark(request: BookmarkInput):
    """
    Create a bookmark and queue it for tagging.

    Blank url or title is rejected with 400 before anything is written.
    """
    store = get_store()
    bookmark = store.create_bookmark(request)
    job = store.enqueue_tag_job(bookmark.id)
    logger.info(f"Created bookmark {bookmark.id}, queued tag job {job.id}")
    return CreateBookmarkResponse(bookmark=bookmark, job=job)


@router.get("/{bookmark_id}", response_model=Bookmark)
def get_bookmark(bookmark_id: UUID):
    bookmark = get_store().get_bookmark(bookmark_id)
    if bookmark is None:
        raise NotFoundError(f"bookmark {bookmark_id} not found")
    return bookmark


@router.delete("/{bookmark_id}", status_code=204)
def delete_bookmark(bookmark_id: UUID):
    """Delete a bookmark. Its tag jobs are kept for auditing."""
    if not get_store().delete_bookmark(bookmark_id):
        raise NotFoundError(f"bookmark {bookmark_id} not found")
    return Response(status_code=204)
