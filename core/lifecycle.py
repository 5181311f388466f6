"""Shared background asyncio loop with sync bridge helpers."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Coroutine
from concurrent.futures import TimeoutError
from typing import Any, TypeVar

L = logging.getLogger("morse_runtime.runtime")

T = TypeVar("T")


class LoopRunner:
    """Owns one asyncio loop on a daemon thread; sync code submits coroutines to it."""

    def __init__(self, *, logger: logging.Logger | None = None):
        self._logger = logger or L
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._stopped = False
        self._lock = threading.Lock()
        self._loop_thread_ident: int | None = None

    @property
    def is_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._stopped:
                raise RuntimeError("Async loop already stopped")
            if self._loop and self._thread and self._thread.is_alive():
                return self._loop
            loop = asyncio.new_event_loop()
            ready = threading.Event()

            def _runner():
                asyncio.set_event_loop(loop)
                self._loop_thread_ident = threading.get_ident()
                ready.set()
                loop.run_forever()

            self._loop = loop
            self._thread = threading.Thread(
                target=_runner, name="morse-async-loop", daemon=True
            )
            self._thread.start()
            ready.wait(timeout=0.5)
            return loop

    def _check_not_loop_thread(self, what: str):
        if (
            self._loop_thread_ident is not None
            and threading.get_ident() == self._loop_thread_ident
        ):
            raise RuntimeError(f"{what} must not be called from the loop thread")

    def run_async(self, coro: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
        """Run a coroutine on the shared loop and wait for its result."""
        self._check_not_loop_thread("run_async")
        loop = self._ensure_loop()
        fut = asyncio.run_coroutine_threadsafe(coro, loop)
        try:
            return fut.result(timeout=timeout)
        except TimeoutError:
            fut.cancel()
            self._logger.warning("run_async timeout after %.2fs", timeout or 0)
            raise

    def shutdown_loop(self, timeout: float = 1.0):
        """Cancel pending tasks and stop the shared loop."""
        self._check_not_loop_thread("shutdown_loop")
        with self._lock:
            self._stopped = True
            loop = self._loop
            thread = self._thread
            if not loop or not thread or loop.is_closed():
                return

        async def _shutdown():
            current = asyncio.current_task()
            tasks = [t for t in asyncio.all_tasks() if t is not current and not t.done()]
            self._logger.debug("shutdown_loop pending_tasks=%d", len(tasks))
            for t in tasks:
                t.cancel()
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
            await loop.shutdown_asyncgens()

        fut = asyncio.run_coroutine_threadsafe(_shutdown(), loop)
        try:
            fut.result(timeout=timeout)
        except TimeoutError:
            fut.cancel()
            self._logger.warning("shutdown_loop timeout after %.2fs", timeout)
        finally:
            loop.call_soon_threadsafe(loop.stop)
            if thread.is_alive():
                thread.join(timeout=timeout)
            if not thread.is_alive() and not loop.is_closed():
                loop.close()
            self._loop = None
            self._thread = None
            self._loop_thread_ident = None


def run_async_cleanup(
    coro: Coroutine[Any, Any, Any],
    *,
    loop_runner: LoopRunner,
    timeout: float = 0.5,
):
    """Run async cleanup from sync code with a bounded wait; no-op once the loop is gone."""
    if not loop_runner.is_running:
        coro.close()
        return None
    return loop_runner.run_async(coro, timeout=timeout)


__all__ = ["LoopRunner", "run_async_cleanup"]
