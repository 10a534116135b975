"""
Lester v1 - Operation Log Merge

Reconciles the field-level edit logs of two devices.

The merge is last-writer-wins per (entity, entity_id, field): ops are sorted
so that all edits of one field sit together ordered by timestamp, and the
last op scanned for a field wins. Two edits with the same timestamp from
different devices are reported as a conflict; the later-scanned one still
wins so reconciliation never blocks.
"""

import logging
from typing import Iterable

from .models import MergeResult, SyncConflict, SyncOp

logger = logging.getLogger(__name__)


def field_key(op: SyncOp) -> tuple:
    """The logical field an op writes to"""
    return (op.entity, op.entity_id, op.field)


def _scan_order(op: SyncOp) -> tuple:
    # device_id orders ties between devices independently of argument order;
    # the stable sort keeps arrival order for ties within one device
    return (op.entity, op.entity_id, op.field, op.timestamp, op.device_id)


def merge_logs(left: Iterable[SyncOp], right: Iterable[SyncOp]) -> MergeResult:
    """
    Merge two operation logs.

    Args:
        left: Ops from one device, in arrival order
        right: Ops from another device, in arrival order

    Returns:
        MergeResult with one winning op per field, sorted by timestamp, and
        the conflicts in the order they were detected
    """
    ops = sorted([*left, *right], key=_scan_order)

    winners: dict[tuple, SyncOp] = {}
    conflicts: list[SyncConflict] = []

    for op in ops:
        key = field_key(op)
        current = winners.get(key)
        if (
            current is not None
            and current.timestamp == op.timestamp
            and current.device_id != op.device_id
        ):
            conflicts.append(SyncConflict(
                entity=op.entity,
                entity_id=op.entity_id,
                field=op.field,
                left=current,
                right=op,
            ))
        winners[key] = op

    merged = sorted(winners.values(), key=lambda op: op.timestamp)

    if conflicts:
        logger.info(f"Merged {len(ops)} ops into {len(merged)} with {len(conflicts)} conflicts")

    return MergeResult(merged_ops=merged, conflicts=conflicts)

