"""
Lester v1 - Tag Job State Machine

pending -> running -> done | failed

Done and failed are terminal. Every transition is written by the store as a
single conditional update that also bumps ``updated_at`` and ``attempts``.
"""

from .errors import InvalidTransitionError
from .models import TagJobStatus

TRANSITIONS: dict[TagJobStatus, frozenset[TagJobStatus]] = {
    TagJobStatus.PENDING: frozenset({TagJobStatus.RUNNING}),
    TagJobStatus.RUNNING: frozenset({TagJobStatus.DONE, TagJobStatus.FAILED}),
    TagJobStatus.DONE: frozenset(),
    TagJobStatus.FAILED: frozenset(),
}


def can_transition(current: TagJobStatus, target: TagJobStatus) -> bool:
    return target in TRANSITIONS[TagJobStatus(current)]


def check_transition(current: TagJobStatus, target: TagJobStatus) -> None:
    """
    Raises:
        InvalidTransitionError: If ``target`` is not reachable from ``current``
    """
    if not can_transition(current, target):
        raise InvalidTransitionError(TagJobStatus(current).value, TagJobStatus(target).value)


def sources_for(target: TagJobStatus) -> list[TagJobStatus]:
    """States a job must be in for a move to ``target`` to be allowed"""
    return [state for state, targets in TRANSITIONS.items() if target in targets]


def is_terminal(status: TagJobStatus) -> bool:
    return not TRANSITIONS[TagJobStatus(status)]
