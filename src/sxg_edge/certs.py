from __future__ import annotations

from urllib.parse import urlsplit

from starlette.responses import PlainTextResponse, Response

from .engine import CERT_CHAIN_CONTENT_TYPE, SigningEngine


def serve_certificate(engine: SigningEngine, url: str, cert_path: str = "/cert") -> Response:
    """Answer the certificate host: the CBOR chain at ``cert_path``, nothing else."""
    if urlsplit(url).path == cert_path:
        return Response(content=engine.certificate_chain(), status_code=200, media_type=CERT_CHAIN_CONTENT_TYPE)
    return PlainTextResponse("Invalid path")
