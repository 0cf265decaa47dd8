"""Transient user-facing notices.

Failures surface as a single message that expires on its own. A new notice
replaces the current one. Expiry is checked against an injectable monotonic
clock, so nothing has to be scheduled on the event loop.
"""

import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notice:
    message: str
    posted_at: float
    expires_at: float

    def is_live(self, now: float) -> bool:
        return now < self.expires_at


class NoticeBoard:
    """Holds at most one visible notice at a time."""

    def __init__(self, clock: Callable[[], float] = time.monotonic, history_limit: int = 50):
        self._clock = clock
        self._notice: Notice | None = None
        self._history: deque[Notice] = deque(maxlen=history_limit)

    def post(self, message: str, seconds: float) -> Notice:
        now = self._clock()
        notice = Notice(message=message, posted_at=now, expires_at=now + seconds)
        self._notice = notice
        self._history.append(notice)
        logger.info("Notice posted for %.1fs: %s", seconds, message)
        return notice

    @property
    def current(self) -> Notice | None:
        if self._notice is not None and not self._notice.is_live(self._clock()):
            self._notice = None
        return self._notice

    @property
    def message(self) -> str | None:
        notice = self.current
        return notice.message if notice else None

    def dismiss(self) -> None:
        self._notice = None

    @property
    def history(self) -> list[Notice]:
        return list(self._history)
