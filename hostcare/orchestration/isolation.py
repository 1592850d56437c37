"""
Run a task coroutine on its own thread and event loop.

``asyncio.wait_for`` can only interrupt a coroutine at an ``await``. A
detector that blocks (``time.sleep``, a synchronous walk, a subprocess) would
otherwise hold the session loop past its timeout. Here the coroutine runs on a
daemon thread with a private loop, so the caller's wait is always bounded.

On timeout the worker task is asked to cancel; a worker stuck in blocking
code is abandoned and finishes on its own.
"""

from __future__ import annotations

import asyncio
import contextvars
import threading
from typing import Any, Awaitable, Callable

__all__ = ("run_isolated",)


class _Worker:
    def __init__(self, factory: Callable[[], Awaitable[Any]], name: str):
        self.factory = factory
        self.name = name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task | None = None
        self._ready = threading.Event()

    def start(self, caller_loop: asyncio.AbstractEventLoop, done: asyncio.Future) -> None:
        context = contextvars.copy_context()
        thread = threading.Thread(
            target=context.run,
            args=(self._run, caller_loop, done),
            name=self.name,
            daemon=True,
        )
        thread.start()

    def _run(self, caller_loop: asyncio.AbstractEventLoop, done: asyncio.Future) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        try:
            try:
                self._task = loop.create_task(self.factory())
                self._ready.set()
                result = loop.run_until_complete(self._task)
            except BaseException as exc:
                _deliver(caller_loop, done, None, exc)
            else:
                _deliver(caller_loop, done, result, None)
            loop.run_until_complete(loop.shutdown_default_executor())
        finally:
            self._ready.set()
            asyncio.set_event_loop(None)
            loop.close()

    def cancel(self) -> None:
        """Ask the worker task to stop at its next ``await``."""
        self._ready.wait(timeout=1)
        loop, task = self._loop, self._task
        if loop is None or task is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(task.cancel)
        except RuntimeError:
            # loop closed between the check and the call: the task is over
            pass


def _settle(done: asyncio.Future, result: Any, exc: BaseException | None) -> None:
    if done.done():
        return
    if isinstance(exc, asyncio.CancelledError):
        done.cancel()
    elif exc is not None:
        done.set_exception(exc)
    else:
        done.set_result(result)


def _deliver(
    caller_loop: asyncio.AbstractEventLoop,
    done: asyncio.Future,
    result: Any,
    exc: BaseException | None,
) -> None:
    try:
        caller_loop.call_soon_threadsafe(_settle, done, result, exc)
    except RuntimeError:
        # caller loop already closed, nobody is waiting for this result
        pass


async def run_isolated(factory: Callable[[], Awaitable[Any]], timeout: float, *, name: str) -> Any:
    """
    Await ``factory()`` on a worker thread, for at most *timeout* seconds.

    Exceptions raised by the coroutine propagate. Raises ``TimeoutError``
    when the bound is exceeded, whether or not the coroutine yields.
    """
    caller_loop = asyncio.get_running_loop()
    done: asyncio.Future = caller_loop.create_future()
    worker = _Worker(factory, name)
    worker.start(caller_loop, done)
    try:
        return await asyncio.wait_for(asyncio.shield(done), timeout=timeout)
    except (TimeoutError, asyncio.CancelledError):
        done.cancel()
        worker.cancel()
        raise
