"""
Lester v1 - Bookmark API Routes
"""

from .bookmarks import router as bookmarks_router
from .jobs import router as jobs_router
from .sync import router as sync_router
from .tags import router as tags_router
from .workspaces import router as workspaces_router

__all__ = [
    "bookmarks_router",
    "jobs_router",
    "sync_router",
    "tags_router",
    "workspaces_router",
]
