"""Concurrency helpers for fanning out storefront and content store calls."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from collections.abc import Awaitable, Iterable
from typing import Optional, TypeVar

T = TypeVar("T")


async def _bounded(
    semaphore: Optional[asyncio.Semaphore], awaitable: Awaitable[T]
) -> T:
    try:
        if semaphore is None:
            return await awaitable
        async with semaphore:
            return await awaitable
    finally:
        # A coroutine cancelled before it acquired the semaphore never started.
        if inspect.iscoroutine(awaitable):
            awaitable.close()


async def gather_or_cancel(
    awaitables: Iterable[Awaitable[T]],
    semaphore: Optional[asyncio.Semaphore] = None,
) -> list[T]:
    """Await all ``awaitables`` and return their results in input order.

    The first failure cancels every task that is still running and is then
    re-raised. With a semaphore, at most its value run at the same time.
    """
    tasks = [asyncio.create_task(_bounded(semaphore, aw)) for aw in awaitables]
    if not tasks:
        return []
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        with contextlib.suppress(BaseException):
            await asyncio.gather(*tasks, return_exceptions=True)
        raise
