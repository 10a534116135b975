"""
Lester v1 - Bookmark API

JSON API for workspaces, bookmarks, tags, tag jobs and log merging.
"""

__version__ = "1.0.0"
