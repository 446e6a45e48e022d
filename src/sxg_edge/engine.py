"""Signing engine contract.

The engine owns the signed-exchange byte encoding, the CBOR certificate
chain and the header validation rules. Deployments plug a concrete engine
in through ``SXG_ENGINE=module:attribute``, where the attribute is a
callable taking :class:`~sxg_edge.settings.Settings` and returning a
:class:`SigningEngine`.
"""
from __future__ import annotations

import importlib
import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterable
from urllib.parse import urlsplit

from .errors import ConfigurationError, EngineFault
from .headers import build_origin_request_headers, validate_payload_headers
from .lazy import Once
from .models import EngineResponse, HeaderList, SignedExchangePayload, Signer
from .settings import Settings

SXG_CONTENT_TYPE = "application/signed-exchange;v=b3"
CERT_CHAIN_CONTENT_TYPE = "application/cert-chain+cbor"


class SigningEngine(ABC):
    def __init__(self, settings: Settings):
        self.settings = settings
        self._last_error = ""
        self._cert_chain: bytes | None = None

    async def init(self) -> None:
        """One-time setup; loads the certificate chain file when configured."""
        if self.settings.cert_chain_file is not None:
            self._cert_chain = self.settings.cert_chain_file.read_bytes()

    def fault(self, message: str) -> EngineFault:
        self._last_error = message
        return EngineFault(message, detail=message)

    def last_error_message(self) -> str:
        return self._last_error

    def should_respond_debug_info(self) -> bool:
        return self.settings.sxg_debug

    def create_request_headers(self, headers: Iterable[tuple[str, str]]) -> HeaderList:
        return build_origin_request_headers(headers, self.settings.forwarded_header_names())

    def validate_payload_headers(self, headers: Iterable[tuple[str, str]]) -> None:
        validate_payload_headers(headers, self.settings.payload_size_limit)

    def certificate_chain(self) -> bytes:
        if self._cert_chain is None:
            raise self.fault("No certificate chain is configured (CERT_CHAIN_FILE).")
        return self._cert_chain

    def serve_preset_content(self, url: str) -> EngineResponse | None:
        if urlsplit(url).path == self.settings.cert_path:
            return EngineResponse(
                status=200,
                headers=[("content-type", CERT_CHAIN_CONTENT_TYPE)],
                body=self.certificate_chain(),
            )
        return None

    def exchange_response(self, sxg: bytes) -> EngineResponse:
        return EngineResponse(
            status=200,
            headers=[("content-type", SXG_CONTENT_TYPE), ("x-content-type-options", "nosniff")],
            body=sxg,
        )

    @abstractmethod
    async def create_signed_exchange(self, payload: SignedExchangePayload, signer: Signer) -> EngineResponse:
        """Encode ``payload`` as a signed exchange, signing through ``signer``."""

    def create_signed_exchange_with_text(self, payload: SignedExchangePayload, body_text: str) -> EngineResponse:
        """Variant that signs internally and takes a decoded text body."""
        raise self.fault(f"{type(self).__name__} does not support internal signing")


EngineFactory = Callable[[Settings], SigningEngine]


def load_engine_factory(target: str) -> EngineFactory:
    if not target:
        raise ConfigurationError("SXG_ENGINE is not set.")
    module_name, _, attr = target.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"SXG_ENGINE module {module_name!r} cannot be imported: {e}") from e
    factory = getattr(module, attr or "engine_factory", None)
    if not callable(factory):
        raise ConfigurationError(f"SXG_ENGINE {target!r} does not name a callable")
    return factory


def engine_loader(settings: Settings, factory: EngineFactory | None = None) -> Once[SigningEngine]:
    """Process-wide engine singleton: created and initialized once, failures cached."""

    async def _init() -> SigningEngine:
        try:
            make = factory or load_engine_factory(settings.sxg_engine)
            engine = make(settings)
            await engine.init()
        except Exception:
            logging.exception("Signing engine initialization failed")
            raise
        logging.info("Signing engine %s initialized", type(engine).__name__)
        return engine

    return Once(_init)


__all__ = [
    "SigningEngine",
    "EngineFactory",
    "SXG_CONTENT_TYPE",
    "CERT_CHAIN_CONTENT_TYPE",
    "load_engine_factory",
    "engine_loader",
]
