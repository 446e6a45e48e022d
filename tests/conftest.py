import json

import httpx
import pytest

from sxg_edge.api.main import create_app
from sxg_edge.engine import SigningEngine
from sxg_edge.settings import Settings
from sxg_edge.signer import gen_p256_jwk

CERT_CHAIN = b"\x82\x64\xf0\x9f\x93\x9c" + bytes(range(64))
SXG_ACCEPT = "application/signed-exchange;v=b3;q=0.9,text/html;q=0.8"


class FakeEngine(SigningEngine):
    """Stand-in signing engine: records what it is asked to sign."""

    def __init__(self, settings):
        super().__init__(settings)
        self.signed = []
        self.signatures = []
        self.fail_with = None

    async def init(self):
        self._cert_chain = CERT_CHAIN

    async def create_signed_exchange(self, payload, signer):
        if self.fail_with is not None:
            raise self.fail_with
        self.signed.append(payload)
        self.signatures.append(await signer(b"signed-headers:" + payload.body))
        return self.exchange_response(b"sxg1-b3\x00" + payload.body)

    def create_signed_exchange_with_text(self, payload, body_text):
        self.signed.append(payload)
        return self.exchange_response(b"sxg1-b3\x00" + body_text.encode())


class Origin:
    """httpx MockTransport handler serving canned responses by path."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def set(self, path, status=200, headers=None, body=b""):
        self.routes[path] = (status, headers or [], body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, headers, body = self.routes.get(request.url.path, (404, [("content-type", "text/plain")], b"not found"))
        if callable(body):
            body = body()
        return httpx.Response(status, headers=headers, content=body)


@pytest.fixture
def origin():
    o = Origin()
    o.set("/index.html", headers=[("content-type", "text/plain"), ("set-cookie", "a=b")], body=b"hello")
    return o


@pytest.fixture
def jwk():
    return json.dumps(gen_p256_jwk())


@pytest.fixture
def make_app(origin, jwk):
    """Build an isolated app; returns (app, engine_holder)."""

    def _make(engine_factory=None, **overrides):
        holder = {}

        def factory(settings):
            holder["engine"] = FakeEngine(settings)
            return holder["engine"]

        cfg = {"private_key_jwk": jwk, "origin_url": "http://origin.internal"}
        cfg.update(overrides)
        app = create_app(Settings(**cfg), engine_factory or factory, httpx.MockTransport(origin))
        return app, holder

    return _make
