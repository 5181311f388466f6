"""Non-blocking queue helpers for the single-consumer side of handoff queues."""

from __future__ import annotations

import queue
from typing import Any


def drain_queue_nowait(q: queue.Queue, *, limit: int | None = None) -> list[Any]:
    """Pop everything currently queued (up to `limit`) without blocking.

    Calls `task_done()` per item so `join()` callers stay consistent.
    """
    items: list[Any] = []
    while limit is None or len(items) < limit:
        try:
            item = q.get_nowait()
        except queue.Empty:
            break
        q.task_done()
        items.append(item)
    return items


__all__ = ["drain_queue_nowait"]
