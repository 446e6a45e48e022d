from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from starlette.responses import PlainTextResponse, Response

from .engine import SigningEngine
from .errors import EngineFault, ValidationError
from .fetch import OriginFetcher, relay_response
from .lazy import Once
from .models import IncomingRequest, OriginResponse

DEBUG_HEADER = "sxg-edge-worker-debug-info"


@dataclass
class Attempt:
    """Per-request state the failure boundary can fall back on."""

    engine: SigningEngine | None = None
    # untouched origin response, set once the origin has been fetched
    fallback: OriginResponse | None = None


# a pipeline returns None when the request is not eligible for signing
Pipeline = Callable[[IncomingRequest, Attempt], Awaitable["Response | None"]]


def classify_failure(exc: BaseException, engine: SigningEngine | None) -> str:
    if isinstance(exc, EngineFault):
        detail = engine.last_error_message() if engine is not None else (exc.detail or "")
        return f"Signing engine is aborted.\n{exc}.\n{detail}"
    if isinstance(exc, ValidationError):
        return f"A message is gracefully thrown.\n{exc.reason}"
    return f"Python code raises an error.\n{exc!r}"


class FallbackDebugHandler:
    """The single failure boundary around a request pipeline.

    Debug mode: always answer, with the fallback (or a synthetic body holding
    the message) plus the debug header; the status is left as is.
    Production: return the fallback unmodified, or fetch the request afresh
    when the origin was never reached.
    """

    def __init__(self, engines: Once[SigningEngine], fetcher: OriginFetcher):
        self._engines = engines
        self._fetcher = fetcher

    async def run(self, request: IncomingRequest, pipeline: Pipeline) -> Response | None:
        attempt = Attempt()
        try:
            attempt.engine = await self._engines.get()
            return await pipeline(request, attempt)
        except Exception as e:
            return await self._recover(request, attempt, e)

    async def _recover(self, request: IncomingRequest, attempt: Attempt, exc: Exception) -> Response:
        message = classify_failure(exc, attempt.engine)
        if isinstance(exc, ValidationError):
            logging.info("Not signing %s: %s", request.url, exc.reason)
        else:
            logging.exception("SXG pipeline failed for %s", request.url, exc_info=exc)
        debug = attempt.engine is not None and attempt.engine.should_respond_debug_info()
        if debug:
            debug_header = [(DEBUG_HEADER, json.dumps(message))]
            if attempt.fallback is not None:
                return relay_response(attempt.fallback, debug_header)
            response = PlainTextResponse(message)
            response.headers[DEBUG_HEADER] = json.dumps(message)
            return response
        if attempt.fallback is not None:
            # the origin was already fetched: reuse that response
            return relay_response(attempt.fallback)
        # nothing reusable; fetch again with all of the user's headers
        return relay_response(await self._fetcher.passthrough(request))


__all__ = ["DEBUG_HEADER", "Attempt", "classify_failure", "FallbackDebugHandler"]
