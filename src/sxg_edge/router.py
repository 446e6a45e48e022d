from __future__ import annotations

import logging
from urllib.parse import urlsplit

from starlette.responses import PlainTextResponse, Response

from .certs import serve_certificate
from .fallback import Attempt, FallbackDebugHandler, Pipeline
from .fetch import OriginFetcher, engine_response, relay_response
from .headers import accepts_signed_exchange, get_header
from .models import IncomingRequest
from .orchestrator import SigningOrchestrator
from .settings import Settings
from .tee import tee_response

CONFIG_ERROR_MESSAGE = "The worker host and content host are not configured properly."


class RequestRouter:
    """Classifies each request and dispatches it under the failure boundary.

    split topology: ``worker_host`` serves the certificate chain,
    ``content_host`` serves signed exchanges, any other host gets a fixed
    configuration error. single topology: preset content first, then
    sign-and-serve.
    """

    def __init__(
        self,
        settings: Settings,
        fetcher: OriginFetcher,
        orchestrator: SigningOrchestrator,
        boundary: FallbackDebugHandler,
    ):
        self.settings = settings
        self.fetcher = fetcher
        self.orchestrator = orchestrator
        self.boundary = boundary

    async def handle(self, request: IncomingRequest) -> Response:
        if self.settings.topology == "split":
            host = _request_host(request)
            if host and host == _lower(self.settings.worker_host):
                return await self._dispatch(request, self._serve_certificate)
            if host and host == _lower(self.settings.content_host):
                return await self._dispatch(request, self._sign_and_serve)
            return PlainTextResponse(CONFIG_ERROR_MESSAGE)
        return await self._dispatch(request, self._preset_or_sign)

    async def _dispatch(self, request: IncomingRequest, pipeline: Pipeline) -> Response:
        response = await self.boundary.run(request, pipeline)
        if response is None:
            logging.debug("Passing %s %s through unsigned", request.method, request.url)
            return relay_response(await self.fetcher.passthrough(request))
        return response

    async def _serve_certificate(self, request: IncomingRequest, attempt: Attempt) -> Response:
        return serve_certificate(attempt.engine, request.url, self.settings.cert_path)

    async def _preset_or_sign(self, request: IncomingRequest, attempt: Attempt) -> Response | None:
        preset = attempt.engine.serve_preset_content(request.url)
        if preset is not None:
            return engine_response(preset)
        return await self._sign_and_serve(request, attempt)

    async def _sign_and_serve(self, request: IncomingRequest, attempt: Attempt) -> Response | None:
        if request.method != "GET" or not accepts_signed_exchange(get_header(request.headers, "accept")):
            return None
        engine = attempt.engine
        origin = await self.fetcher.fetch(request.url, engine.create_request_headers(request.headers))
        payload, attempt.fallback = tee_response(origin)
        try:
            result = await self.orchestrator.sign(engine, request.url, payload)
        finally:
            # an unread payload branch would otherwise queue the whole fallback body
            await payload.body.aclose()
        # signed: the untouched copy is no longer needed
        await attempt.fallback.body.aclose()
        return engine_response(result)


def _lower(host: str | None) -> str | None:
    return host.lower() if host else None


def _request_host(request: IncomingRequest) -> str | None:
    host = get_header(request.headers, "host")
    if host:
        return urlsplit(f"//{host}").hostname
    return urlsplit(request.url).hostname


__all__ = ["CONFIG_ERROR_MESSAGE", "RequestRouter"]
