"""
Lester v1 - Bookmark API Store Access

Holds the store instance shared by all routes.
"""

import logging
from typing import Optional

from config import get_config
from shared.store import LesterStore

logger = logging.getLogger(__name__)

# Global store instance
_store: Optional[LesterStore] = None


def get_store() -> LesterStore:
    """Get the global store instance"""
    global _store
    if _store is None:
        cfg = get_config()
        _store = LesterStore(
            cfg.database.url,
            connect_timeout=cfg.database.connect_timeout,
            connect_retries=cfg.database.connect_retries,
        )
    return _store


def init_store() -> None:
    """Create the store and make sure the schema exists"""
    store = get_store()
    store.migrate()
    logger.info("Store ready")


def close_store() -> None:
    """Drop the global store"""
    global _store
    _store = None
