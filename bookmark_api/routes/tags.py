"""
Lester v1 - Tag Routes
"""

from fastapi import APIRouter, Query

from shared.models import Tag, TagCloudEntry

from ..db import get_store

router = APIRouter(tags=["Tags"])


@router.get("/tags", response_model=list[Tag])
def list_tags():
    """List all tags by name."""
    return get_store().list_tags()


@router.get("/tag-cloud", response_model=list[TagCloudEntry])
def tag_cloud(limit: int = Query(40, ge=1, le=500)):
    """Most used tags weighted by usage and confidence."""
    return get_store().get_tag_cloud(limit)
