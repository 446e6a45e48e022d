from __future__ import annotations


class SXGEdgeError(Exception):
    """Base class for errors raised on purpose by the edge worker."""


class ConfigurationError(SXGEdgeError):
    """Missing or malformed secret / host configuration."""


class EngineFault(SXGEdgeError):
    """The signing engine aborted; ``detail`` carries its diagnostic text."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.detail = detail


class ValidationError(SXGEdgeError):
    """Expected rejection of a resource (bad status, oversized body, bad headers)."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


__all__ = ["SXGEdgeError", "ConfigurationError", "EngineFault", "ValidationError"]
