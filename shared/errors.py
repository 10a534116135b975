"""
Lester v1 - Error Types

Exception hierarchy shared by the store, the worker and the API.
"""


class LesterError(Exception):
    """Base class for all Lester errors"""


class NotFoundError(LesterError):
    """A referenced entity does not exist"""


class InvalidInputError(LesterError):
    """Required input is missing or blank"""


class InvalidTransitionError(LesterError):
    """A tag job was asked to move between states that are not connected"""

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move tag job from {current} to {target}")
        self.current = current
        self.target = target


class StoreError(LesterError):
    """The persistent store failed a read or a write"""


class FatalStoreError(StoreError):
    """
    The store is in a state no retry will fix.

    Raised when the database or its schema is missing. Long running
    processes should stop instead of polling a store that cannot recover.
    """
