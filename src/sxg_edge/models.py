from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Protocol

from pydantic import BaseModel, Field

HeaderList = list[tuple[str, str]]
# Async callback producing a raw signature over a message
Signer = Callable[[bytes], Awaitable[bytes]]


class ByteStream(Protocol):
    """Single-read async byte stream that can be cancelled with ``aclose``."""

    def __aiter__(self) -> AsyncIterator[bytes]: ...

    async def aclose(self) -> None: ...


@dataclass(frozen=True)
class IncomingRequest:
    url: str
    headers: tuple[tuple[str, str], ...]
    method: str = "GET"
    body: bytes = b""


@dataclass
class OriginResponse:
    status: int
    headers: HeaderList
    body: ByteStream


@dataclass
class BufferedPayload:
    data: bytes = b""
    overflow: bool = False

    @property
    def length(self) -> int:
        return len(self.data)


@dataclass
class SignedExchangePayload:
    url: str
    status: int
    headers: HeaderList
    body: bytes
    signing_timestamp: int  # unix seconds


class EngineResponse(BaseModel):
    """Status/header envelope plus opaque body bytes produced by the signing engine."""

    status: int = 200
    headers: list[tuple[str, str]] = Field(default_factory=list)
    body: bytes = b""

