from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # JSON Web Key (EC P-256, sign-only); read lazily on first signature
    private_key_jwk: str | None = None
    # "single": one endpoint with preset short-circuit; "split": cert host + content host
    topology: Literal["single", "split"] = "single"
    worker_host: str | None = None
    content_host: str | None = None
    # Replaces scheme/authority of the request URL when fetching the origin
    origin_url: str | None = None
    cert_path: str = "/cert"
    cert_chain_file: Path | None = None
    payload_size_limit: int = 8_000_000
    signing_time_skew_seconds: int = 60 * 60 * 12
    # "module:attribute" of the signing engine factory
    sxg_engine: str = ""
    sxg_debug: bool = False
    forwarded_headers: str = "accept-language,cache-control,from,referer,user-agent"

    def forwarded_header_names(self) -> frozenset[str]:  # helper accessor
        return frozenset(h.strip().lower() for h in self.forwarded_headers.split(",") if h.strip())


settings = Settings()
