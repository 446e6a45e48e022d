from __future__ import annotations

import base64
import json
import logging
from typing import Any

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from .errors import ConfigurationError
from .lazy import Once

_P256_COORD_BYTES = 32


def _b64url_decode(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def import_p256_jwk(jwk_json: str) -> ec.EllipticCurvePrivateKey:
    """Load an EC P-256 private key from a JSON Web Key string.

    Raises ConfigurationError for anything other than a sign-capable
    P-256 private key.
    """
    try:
        jwk: dict[str, Any] = json.loads(jwk_json)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"PRIVATE_KEY_JWK is not valid JSON: {e}") from e
    if not isinstance(jwk, dict):
        raise ConfigurationError("PRIVATE_KEY_JWK must be a JSON object")
    if jwk.get("kty") != "EC" or jwk.get("crv") != "P-256":
        raise ConfigurationError("PRIVATE_KEY_JWK must be an EC key on curve P-256")
    key_ops = jwk.get("key_ops")
    if key_ops is not None and "sign" not in key_ops:
        raise ConfigurationError("PRIVATE_KEY_JWK key_ops does not allow sign")
    try:
        d, x, y = (int.from_bytes(_b64url_decode(jwk[k]), "big") for k in ("d", "x", "y"))
        public = ec.EllipticCurvePublicNumbers(x, y, ec.SECP256R1())
        return ec.EllipticCurvePrivateNumbers(d, public).private_key()
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(f"PRIVATE_KEY_JWK is malformed: {e}") from e


def gen_p256_jwk() -> dict[str, Any]:
    """Generate a fresh sign-only P-256 private JWK."""
    sk = ec.generate_private_key(ec.SECP256R1())
    numbers = sk.private_numbers()
    pub = numbers.public_numbers
    return {
        "kty": "EC",
        "crv": "P-256",
        "x": _b64url_encode(pub.x.to_bytes(_P256_COORD_BYTES, "big")),
        "y": _b64url_encode(pub.y.to_bytes(_P256_COORD_BYTES, "big")),
        "d": _b64url_encode(numbers.private_value.to_bytes(_P256_COORD_BYTES, "big")),
        "key_ops": ["sign"],
        "ext": False,
    }


class KeySigner:
    """Signs messages with the configured P-256 key.

    The key is imported once, on first use; the outcome (key or error) is
    shared by every caller for the lifetime of the signer.
    """

    def __init__(self, private_key_jwk: str | None):
        self._jwk = private_key_jwk
        self._key: Once[ec.EllipticCurvePrivateKey] = Once(self._import_key)

    async def _import_key(self) -> ec.EllipticCurvePrivateKey:
        if not self._jwk:
            raise ConfigurationError("The secret PRIVATE_KEY_JWK is not set.")
        try:
            return import_p256_jwk(self._jwk)
        except ConfigurationError:
            logging.exception("Failed to import signing key")
            raise

    async def sign(self, message: bytes) -> bytes:
        """Return the raw (r || s) ECDSA signature of SHA-256(message)."""
        key = await self._key.get()
        der = key.sign(message, ec.ECDSA(hashes.SHA256()))
        r, s = decode_dss_signature(der)
        return r.to_bytes(_P256_COORD_BYTES, "big") + s.to_bytes(_P256_COORD_BYTES, "big")


__all__ = ["KeySigner", "import_p256_jwk", "gen_p256_jwk"]
