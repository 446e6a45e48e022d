import asyncio
import json

import pytest
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from sxg_edge import signer as signer_mod
from sxg_edge.errors import ConfigurationError
from sxg_edge.lazy import Once
from sxg_edge.signer import KeySigner, gen_p256_jwk, import_p256_jwk


def _verify(jwk: dict, message: bytes, raw_sig: bytes):
    pub = import_p256_jwk(json.dumps(jwk)).public_key()
    r = int.from_bytes(raw_sig[:32], "big")
    s = int.from_bytes(raw_sig[32:], "big")
    pub.verify(encode_dss_signature(r, s), message, ec.ECDSA(hashes.SHA256()))


def test_sign_produces_raw_p256_signature():
    jwk = gen_p256_jwk()
    ks = KeySigner(json.dumps(jwk))
    sig = asyncio.run(ks.sign(b"message"))
    assert len(sig) == 64
    _verify(jwk, b"message", sig)
    with pytest.raises(InvalidSignature):
        _verify(jwk, b"tampered", sig)


@pytest.mark.parametrize(
    "secret",
    [
        "not json",
        "[1, 2]",
        json.dumps({"kty": "RSA", "n": "AQAB"}),
        json.dumps({**gen_p256_jwk(), "crv": "P-384"}),
        json.dumps({**gen_p256_jwk(), "key_ops": ["verify"]}),
        json.dumps({k: v for k, v in gen_p256_jwk().items() if k != "d"}),
    ],
)
def test_malformed_secret_is_configuration_error(secret):
    with pytest.raises(ConfigurationError):
        asyncio.run(KeySigner(secret).sign(b"m"))


def test_mismatched_public_point_is_rejected():
    a, b = gen_p256_jwk(), gen_p256_jwk()
    with pytest.raises(ConfigurationError):
        import_p256_jwk(json.dumps({**a, "x": b["x"], "y": b["y"]}))


def test_concurrent_callers_share_missing_secret_failure():
    """Scenario F: callers racing the key import all see the same failure."""

    async def run():
        ks = KeySigner(None)
        return await asyncio.gather(ks.sign(b"a"), ks.sign(b"b"), return_exceptions=True)

    first, second = asyncio.run(run())
    assert isinstance(first, ConfigurationError)
    assert first is second
    assert "PRIVATE_KEY_JWK is not set" in str(first)


def test_key_is_imported_once(monkeypatch):
    calls = []
    real = signer_mod.import_p256_jwk

    def counting(raw):
        calls.append(raw)
        return real(raw)

    monkeypatch.setattr(signer_mod, "import_p256_jwk", counting)
    ks = KeySigner(json.dumps(gen_p256_jwk()))

    async def run():
        await asyncio.gather(*(ks.sign(bytes([i])) for i in range(5)))
        await ks.sign(b"later")

    asyncio.run(run())
    assert len(calls) == 1


def test_once_shares_in_flight_outcome_and_caches_failure():
    calls = []

    async def factory():
        calls.append(1)
        await asyncio.sleep(0)
        raise RuntimeError("boom")

    once = Once(factory)

    async def run():
        results = await asyncio.gather(once.get(), once.get(), once.get(), return_exceptions=True)
        later = None
        try:
            await once.get()
        except RuntimeError as e:
            later = e
        return results, later

    results, later = asyncio.run(run())
    assert len(calls) == 1
    assert all(r is results[0] for r in results)
    assert later is results[0]


def test_once_cancelled_waiter_does_not_cancel_initializer():
    async def run():
        gate = asyncio.Event()

        async def factory():
            await gate.wait()
            return "ready"

        once = Once(factory)
        waiter = asyncio.ensure_future(once.get())
        await asyncio.sleep(0)
        waiter.cancel()
        await asyncio.sleep(0)
        gate.set()
        return await once.get()

    assert asyncio.run(run()) == "ready"
