from __future__ import annotations

from typing import AsyncIterator, Iterable
from urllib.parse import urlsplit, urlunsplit

import httpx
from starlette.responses import Response, StreamingResponse

from .headers import passthrough_request_headers, strip_connection_headers
from .models import EngineResponse, HeaderList, IncomingRequest, OriginResponse


async def _raw_body(response: httpx.Response) -> AsyncIterator[bytes]:
    try:
        if response.is_stream_consumed:
            # transports handing over in-memory content have already read it
            if response.content:
                yield response.content
            return
        async for chunk in response.aiter_raw():
            yield chunk
    finally:
        await response.aclose()


class OriginFetcher:
    """Issues the (single) origin fetch for a request.

    ``origin_url`` replaces the scheme and authority of the public request
    URL; the path and query are kept.
    """

    def __init__(self, client: httpx.AsyncClient, origin_url: str | None = None):
        self._client = client
        self._origin = urlsplit(origin_url) if origin_url else None

    def target(self, url: str) -> str:
        if self._origin is None:
            return url
        parts = urlsplit(url)
        return urlunsplit((self._origin.scheme, self._origin.netloc, parts.path, parts.query, ""))

    async def fetch(
        self,
        url: str,
        headers: Iterable[tuple[str, str]],
        method: str = "GET",
        content: bytes | None = None,
    ) -> OriginResponse:
        request = self._client.build_request(method, self.target(url), headers=list(headers), content=content or None)
        response = await self._client.send(request, stream=True)
        raw_headers = [(k.decode("latin-1"), v.decode("latin-1")) for k, v in response.headers.raw]
        return OriginResponse(response.status_code, raw_headers, _raw_body(response))

    async def passthrough(self, request: IncomingRequest) -> OriginResponse:
        return await self.fetch(
            request.url,
            passthrough_request_headers(request.headers),
            method=request.method,
            content=request.body,
        )


def _encode_headers(headers: Iterable[tuple[str, str]]) -> list[tuple[bytes, bytes]]:
    return [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in headers]


def relay_response(origin: OriginResponse, extra_headers: HeaderList | None = None) -> Response:
    """Stream an origin response to the client with its status, headers and body bytes."""
    response = StreamingResponse(origin.body, status_code=origin.status)
    headers = strip_connection_headers(origin.headers) + list(extra_headers or [])
    response.raw_headers.extend(_encode_headers(headers))
    return response


def engine_response(result: EngineResponse) -> Response:
    response = Response(content=result.body, status_code=result.status)
    headers = [(k, v) for k, v in result.headers if k.lower() != "content-length"]
    response.raw_headers.extend(_encode_headers(headers))
    return response


__all__ = ["OriginFetcher", "relay_response", "engine_response"]
