"""sxg_edge package: serve origin responses as Signed HTTP Exchanges at the edge.

The SXG byte encoding and certificate CBOR belong to a pluggable signing
engine (see :mod:`sxg_edge.engine`); this package decides per request
whether to short-circuit, fetch-and-sign or fall back.
"""
from .engine import SigningEngine  # noqa: F401
from .errors import ConfigurationError, EngineFault, ValidationError  # noqa: F401
from .signer import KeySigner  # noqa: F401
