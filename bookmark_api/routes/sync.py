"""
Lester v1 - Sync Routes

Stateless log reconciliation: the caller sends two device logs and decides
how to apply the result.
"""

from fastapi import APIRouter

from shared.models import MergeResult
from shared.sync import merge_logs

from ..models import MergeRequest

router = APIRouter(prefix="/sync", tags=["Sync"])


@router.post("/merge", response_model=MergeResult)
def merge(request: MergeRequest):
    """
    Merge two operation logs.

    Returns one op per (entity, entity_id, field), sorted by timestamp, and
    every conflict found (same field, same timestamp, different devices).
    """
    return merge_logs(request.left, request.right)
