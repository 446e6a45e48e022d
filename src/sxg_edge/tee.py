from __future__ import annotations

import asyncio
from collections import deque

from .models import ByteStream, OriginResponse


class _TeeSource:
    def __init__(self, source: ByteStream):
        self._source = source
        self._iter = source.__aiter__()
        self._lock = asyncio.Lock()
        self._branches: list[TeeBranch] = []
        self.finished = False
        self.error: BaseException | None = None

    async def pull(self, requester: TeeBranch) -> None:
        async with self._lock:
            # another branch may have delivered while we waited for the lock
            if requester.pending or self.finished:
                return
            try:
                chunk = await self._iter.__anext__()
            except StopAsyncIteration:
                self.finished = True
                return
            except Exception as e:
                self.finished = True
                self.error = e
                raise
            for branch in self._branches:
                if not branch.closed:
                    branch.pending.append(chunk)

    async def branch_closed(self) -> None:
        if self.finished:
            return
        if all(b.closed for b in self._branches):
            self.finished = True
            await self._source.aclose()


class TeeBranch:
    """One independently consumable view of a tee'd byte stream.

    Chunks read by the sibling branch are queued here until consumed; the
    source is cancelled only once both branches are closed.
    """

    def __init__(self, tee: _TeeSource):
        self._tee = tee
        self.pending: deque[bytes] = deque()
        self.closed = False

    def __aiter__(self) -> TeeBranch:
        return self

    async def __anext__(self) -> bytes:
        while True:
            if self.pending:
                return self.pending.popleft()
            if self.closed:
                raise StopAsyncIteration
            if self._tee.finished:
                if self._tee.error is not None:
                    raise self._tee.error
                raise StopAsyncIteration
            await self._tee.pull(self)

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.pending.clear()
        await self._tee.branch_closed()


def tee_stream(source: ByteStream) -> tuple[TeeBranch, TeeBranch]:
    tee = _TeeSource(source)
    first, second = TeeBranch(tee), TeeBranch(tee)
    tee._branches.extend((first, second))
    return first, second


def tee_response(response: OriginResponse) -> tuple[OriginResponse, OriginResponse]:
    """Split one origin response into two views sharing status and a header snapshot."""
    first, second = tee_stream(response.body)
    return (
        OriginResponse(response.status, list(response.headers), first),
        OriginResponse(response.status, list(response.headers), second),
    )
