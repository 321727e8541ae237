"""Unauthorized signal - broadcast when the session stops being valid"""

import asyncio
import inspect
import logging
from typing import Any, Callable, List, Set

logger = logging.getLogger(__name__)

Listener = Callable[[], Any]


class UnauthorizedSignal:
    """Publish/subscribe channel without payload.

    ``emit`` is fire-and-forget: plain listeners are called in subscription
    order, coroutine listeners are scheduled on the running loop, and a
    failing listener never affects the caller that emitted.
    """

    def __init__(self):
        self._listeners: List[Listener] = []
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener

        Returns:
            Callable that unsubscribes the listener
        """
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self) -> None:
        logger.debug(f"Emitting unauthorized signal to {len(self._listeners)} listener(s)")
        for listener in list(self._listeners):
            try:
                result = listener()
            except Exception:
                logger.exception(f"Unauthorized listener {listener!r} failed")
                continue
            if inspect.isawaitable(result):
                self._schedule(result)

    def _schedule(self, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; async unauthorized listener skipped")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Async unauthorized listener failed: {task.exception()}")
