"""
Lester v1 - Enrichment Service

Background worker that turns pending tag jobs into tag suggestions
stored against their bookmarks.
"""

__version__ = "1.0.0"
