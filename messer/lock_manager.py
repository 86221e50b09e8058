"""Thread lock state for rapid messaging."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .errors import NotLockedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockInfo:
    """Information about the current thread lock."""
    target: str
    anonymous: bool = False
    started: Optional[datetime] = None


class LockStore:
    """
    Holds the thread every input line is addressed to while locked.

    Only the lock and unlock handlers mutate it; the router reads it on every
    line. It is only touched from the command execution context, so it takes
    no locks of its own.
    """

    def __init__(self):
        self._info: Optional[LockInfo] = None

    @property
    def info(self) -> Optional[LockInfo]:
        return self._info

    def is_locked(self) -> bool:
        return self._info is not None

    def get_locked_target(self) -> str:
        """
        Get the locked thread ID.

        Raises:
            NotLockedError: If no lock is held
        """
        if self._info is None:
            raise NotLockedError()
        return self._info.target

    def is_anonymous(self) -> bool:
        """Anonymous only has meaning while locked."""
        return self._info is not None and self._info.anonymous

    def set_lock(self, target: str, anonymous: bool = False):
        if not target:
            raise ValueError("Lock target must be a non-empty thread ID")
        self._info = LockInfo(target=target, anonymous=anonymous, started=datetime.now())
        logger.info(f"Locked to thread {target} (anonymous={anonymous})")

    def clear_lock(self):
        if self._info is not None:
            logger.info(f"Released lock on thread {self._info.target}")
        self._info = None
