"""
Session-scoped state shared by the engine components.

Replaces module-level flags and maps with one explicit object injected into
every component. All state is touched only between suspension points of a
single event loop, so no locks are needed.
"""

import asyncio
import logging
import time
from contextlib import contextmanager
from typing import Callable, Coroutine, Dict, Iterator, Optional, Set

from common.types import UploadTicket

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def monotonic_ms() -> int:
    """Milliseconds from a monotonic clock."""
    return int(time.monotonic() * 1000)


def wall_clock_ms() -> int:
    """Milliseconds since the epoch."""
    return int(time.time() * 1000)


class GuardBusyError(RuntimeError):
    """Raised by SyncSession.hold when the flag is already set."""
    pass


class SyncSession:
    """
    Explicit session context for one engine instance.

    Attributes:
        clock: Millisecond clock used for intervals and cooldowns
        last_refresh_request_ms: Start time of the last accepted refresh request
        tickets: Upload tickets, oldest first
    """

    LOADING = "loading"
    UPLOAD_IN_PROGRESS = "upload_in_progress"

    def __init__(self, clock: Optional[Clock] = None):
        self.clock: Clock = clock or monotonic_ms
        self.last_refresh_request_ms: Optional[int] = None
        self.tickets: list[UploadTicket] = []
        self._flags: Dict[str, bool] = {self.LOADING: False, self.UPLOAD_IN_PROGRESS: False}
        self._tasks: Set[asyncio.Task] = set()
        self._named_tasks: Dict[str, asyncio.Task] = {}

    def now_ms(self) -> int:
        return self.clock()

    def is_set(self, flag: str) -> bool:
        return self._flags.get(flag, False)

    @property
    def is_loading(self) -> bool:
        return self.is_set(self.LOADING)

    @property
    def is_uploading(self) -> bool:
        return self.is_set(self.UPLOAD_IN_PROGRESS)

    @contextmanager
    def hold(self, flag: str) -> Iterator[None]:
        """
        Set a guard flag for the duration of the block.

        The flag is reset on scope exit, including cancellation and errors.

        Raises:
            GuardBusyError: If the flag is already held
        """
        if self._flags.get(flag):
            raise GuardBusyError(flag)
        self._flags[flag] = True
        try:
            yield
        finally:
            self._flags[flag] = False

    def spawn(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        """
        Run a coroutine as a task owned by this session.

        A named task replaces (cancels) a previous task with the same name.

        Args:
            coro: Coroutine to schedule
            name: Optional slot name

        Returns:
            The created task
        """
        if name is not None:
            previous = self._named_tasks.pop(name, None)
            if previous is not None and not previous.done():
                previous.cancel()

        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        if name is not None:
            self._named_tasks[name] = task
        task.add_done_callback(self._forget_task)
        return task

    def _forget_task(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        for name, named in list(self._named_tasks.items()):
            if named is task:
                del self._named_tasks[name]
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background task failed: {task.exception()!r}")

    @property
    def pending_tasks(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def aclose(self) -> None:
        """Cancel and await every task spawned in this session."""
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._named_tasks.clear()
