"""
Lester v1 - Admin Module

Command-line tools for the bookmark store and device log merging.
Entry point: ``admin.cli:main``.
"""
