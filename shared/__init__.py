"""
Lester v1 - Shared Core

Models, tagging rules, the tag job state machine, the operation log merge and
the PostgreSQL store used across services.
"""

from .errors import (
    FatalStoreError,
    InvalidInputError,
    InvalidTransitionError,
    LesterError,
    NotFoundError,
    StoreError,
)
from .store import LesterStore
from .sync import merge_logs
from .tagging import RescalePolicy, TaggingRules, rescale_suggestions

__all__ = [
    "FatalStoreError",
    "InvalidInputError",
    "InvalidTransitionError",
    "LesterError",
    "LesterStore",
    "NotFoundError",
    "RescalePolicy",
    "StoreError",
    "TaggingRules",
    "merge_logs",
    "rescale_suggestions",
]
