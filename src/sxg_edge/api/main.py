from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Response

from ..engine import EngineFactory, engine_loader
from ..fallback import FallbackDebugHandler
from ..fetch import OriginFetcher
from ..models import IncomingRequest
from ..orchestrator import CallbackSigning, InternalSigning, SigningOrchestrator
from ..router import RequestRouter
from ..settings import Settings, settings as default_settings
from ..signer import KeySigner

_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_app(
    settings: Settings | None = None,
    engine_factory: EngineFactory | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the edge worker app.

    The engine and key singletons live on ``app.state`` and are shared by
    every request the app serves. ``transport`` replaces the network
    transport of the origin client (tests use ``httpx.MockTransport``).
    """
    cfg = settings or default_settings
    # no client timeout: the hosting request cycle bounds the pipeline
    client = httpx.AsyncClient(transport=transport, timeout=None, follow_redirects=False)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await client.aclose()

    app = FastAPI(title="SXG Edge Worker", lifespan=lifespan)
    engines = engine_loader(cfg, engine_factory)
    key_signer = KeySigner(cfg.private_key_jwk)
    strategy = InternalSigning() if cfg.topology == "split" else CallbackSigning(key_signer)
    fetcher = OriginFetcher(client, cfg.origin_url)
    orchestrator = SigningOrchestrator(
        strategy,
        payload_size_limit=cfg.payload_size_limit,
        skew_seconds=cfg.signing_time_skew_seconds,
    )
    router = RequestRouter(cfg, fetcher, orchestrator, FallbackDebugHandler(engines, fetcher))

    app.state.settings = cfg
    app.state.engines = engines
    app.state.key_signer = key_signer
    app.state.orchestrator = orchestrator
    app.state.router = router
    logging.info("SXG edge worker configured (topology=%s)", cfg.topology)

    @app.api_route("/{path:path}", methods=_METHODS)
    async def edge(request: Request) -> Response:
        body = await request.body() if request.method != "GET" else b""
        incoming = IncomingRequest(
            url=str(request.url),
            headers=tuple(request.headers.items()),
            method=request.method,
            body=body,
        )
        return await router.handle(incoming)

    return app


app = create_app()
