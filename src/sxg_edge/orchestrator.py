from __future__ import annotations

import logging
import math
import time
from typing import Callable, Protocol

from .engine import SigningEngine
from .errors import ValidationError
from .headers import filter_payload_headers
from .models import EngineResponse, OriginResponse, SignedExchangePayload
from .payload import PAYLOAD_SIZE_LIMIT, read_into_buffer
from .signer import KeySigner

# Backdate signatures to tolerate propagation delay and clock skew
SIGNING_TIME_SKEW_SECONDS = 60 * 60 * 12


def signing_timestamp(now: float, skew: int = SIGNING_TIME_SKEW_SECONDS) -> int:
    return math.floor(now) - skew


class SigningStrategy(Protocol):
    async def build(self, engine: SigningEngine, payload: SignedExchangePayload) -> EngineResponse: ...


class CallbackSigning:
    """Binary body; the engine calls back into the key signer for each signature."""

    def __init__(self, key_signer: KeySigner):
        self.key_signer = key_signer

    async def build(self, engine: SigningEngine, payload: SignedExchangePayload) -> EngineResponse:
        return await engine.create_signed_exchange(payload, self.key_signer.sign)


class InternalSigning:
    """Text body; the engine holds the key and signs by itself.

    Bodies that are not valid UTF-8 are rejected rather than decoded lossily,
    since a replaced character would change the signed bytes.
    """

    async def build(self, engine: SigningEngine, payload: SignedExchangePayload) -> EngineResponse:
        try:
            text = payload.body.decode("utf-8")
        except UnicodeDecodeError:
            raise ValidationError("The payload body is not UTF-8 text and cannot be signed as text.") from None
        return engine.create_signed_exchange_with_text(payload, text)


class SigningOrchestrator:
    def __init__(
        self,
        strategy: SigningStrategy,
        payload_size_limit: int = PAYLOAD_SIZE_LIMIT,
        skew_seconds: int = SIGNING_TIME_SKEW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.strategy = strategy
        self.payload_size_limit = payload_size_limit
        self.skew_seconds = skew_seconds
        self.clock = clock

    async def sign(self, engine: SigningEngine, url: str, payload: OriginResponse) -> EngineResponse:
        """Turn a 200 origin response into a signed exchange.

        Steps run in order and none is retried: status check, header
        filtering and engine validation, bounded body capture, timestamp,
        and finally the engine encode. Any failure propagates to the caller.
        """
        if payload.status != 200:
            raise ValidationError(f"The resource status code is {payload.status}")
        headers = filter_payload_headers(payload.headers)
        engine.validate_payload_headers(headers)
        buffered = await read_into_buffer(payload.body, self.payload_size_limit)
        if buffered.overflow:
            raise ValidationError(f"The size of payload exceeds the limit {self.payload_size_limit}")
        exchange = SignedExchangePayload(
            url=url,
            status=payload.status,
            headers=headers,
            body=buffered.data,
            signing_timestamp=signing_timestamp(self.clock(), self.skew_seconds),
        )
        logging.debug("Signing %s (%d bytes, date=%d)", url, buffered.length, exchange.signing_timestamp)
        return await self.strategy.build(engine, exchange)


__all__ = [
    "SIGNING_TIME_SKEW_SECONDS",
    "signing_timestamp",
    "SigningStrategy",
    "CallbackSigning",
    "InternalSigning",
    "SigningOrchestrator",
]
