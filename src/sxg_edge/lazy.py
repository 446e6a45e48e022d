from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")


class Once(Generic[T]):
    """Single-assignment shared outcome of an async initializer.

    The first caller starts ``factory``; every concurrent or later caller
    awaits the same future and observes the same value or the same
    exception. A failed outcome is kept for the lifetime of the object.
    """

    def __init__(self, factory: Callable[[], Awaitable[T]]):
        self._factory = factory
        self._future: asyncio.Future[T] | None = None

    async def get(self) -> T:
        if self._future is None:
            self._future = asyncio.ensure_future(self._factory())
        if self._future.done():
            return self._future.result()
        # shield: a cancelled waiter must not cancel the shared initializer
        return await asyncio.shield(self._future)
