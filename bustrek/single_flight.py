"""
single_flight.py - memoized, fallible async initializer with reset.

Concurrent callers of get() share one in-flight attempt. A successful result is
cached until reset(); a failed attempt is dropped so the next caller starts over.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AsyncInitializer(Generic[T]):
    """
    Lazily run an async factory once and share its result.

    Usage:
        engine = AsyncInitializer(build_engine, release=dispose_engine)
        value = await engine.get()      # first call runs build_engine()
        stale = engine.reset(value)     # drops it only if it is still the cached one

    `release` (optional) is awaited for results that finish after their attempt
    was reset, since no caller is left to clean them up.
    """

    def __init__(
        self,
        factory: Callable[[], Awaitable[T]],
        name: str = "resource",
        release: Optional[Callable[[T], Awaitable[None]]] = None,
    ) -> None:
        self._factory = factory
        self._name = name
        self._release = release
        self._task: Optional["asyncio.Future[T]"] = None
        self._releasing: set = set()

    @property
    def ready(self) -> bool:
        """True when a successful result is cached."""
        task = self._task
        return (
            task is not None
            and task.done()
            and not task.cancelled()
            and task.exception() is None
        )

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    async def get(self) -> T:
        if self._task is None:
            logger.debug("Starting initialization of %s", self._name)
            self._task = asyncio.ensure_future(self._factory())
        task = self._task
        try:
            # shield: a cancelled waiter must not cancel the shared attempt
            return await asyncio.shield(task)
        except Exception:
            if self._task is task and task.done():
                logger.debug("Initialization of %s failed, slot cleared", self._name)
                self._task = None
            raise

    def reset(self, expected: Optional[T] = None) -> Optional[T]:
        """
        Drop the cached attempt so the next get() starts from scratch.

        With `expected`, this is a compare-and-reset: the slot is only cleared when
        it holds exactly that established value. A caller reporting a failure on an
        old value therefore cannot throw away a newer one.

        Returns the dropped value (so the caller can release it), or None if
        nothing established was dropped. An attempt still in flight is left to
        finish and its result goes to `release`.
        """
        task = self._task
        if task is None:
            return None
        if expected is not None and not self._holds(task, expected):
            logger.debug("Ignoring stale reset of %s", self._name)
            return None

        self._task = None
        if not task.done():
            if self._release is not None:
                task.add_done_callback(self._release_late)
            return None
        if task.cancelled() or task.exception() is not None:
            return None
        return task.result()

    @staticmethod
    def _holds(task: "asyncio.Future[T]", value: T) -> bool:
        return (
            task.done()
            and not task.cancelled()
            and task.exception() is None
            and task.result() is value
        )

    def _release_late(self, task: "asyncio.Future[T]") -> None:
        if task.cancelled() or task.exception() is not None:
            return
        logger.debug("Releasing %s established after reset", self._name)
        pending = asyncio.ensure_future(self._run_release(task.result()))
        self._releasing.add(pending)
        pending.add_done_callback(self._releasing.discard)

    async def _run_release(self, value: T) -> None:
        try:
            await self._release(value)
        except Exception as exc:
            logger.warning("Releasing %s failed: %s", self._name, exc)
