"""Header rules for signed exchanges.

Three fixed exclusion lists decide which origin response headers may be
signed:

  * uncached: connection-management headers
    (https://wicg.github.io/webpackage/draft-yasskin-httpbis-origin-signed-exchanges-impl.html#name-uncached-header-fields)
  * stateful: headers carrying session or authentication state
    (https://wicg.github.io/webpackage/draft-yasskin-http-origin-signed-responses.html#stateful-headers)
  * variant: content negotiation markers rejected by the Google SXG cache
    (https://github.com/google/webpackager/blob/master/docs/cache_requirements.md)

Names are compared lowercase; the original case of surviving headers is
preserved, as is their relative order.
"""
from __future__ import annotations

from typing import Iterable

from .errors import ValidationError
from .models import HeaderList

UNCACHED_HEADERS: frozenset[str] = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-connection",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)

STATEFUL_HEADERS: frozenset[str] = frozenset(
    {
        "authentication-control",
        "authentication-info",
        "clear-site-data",
        "optional-www-authenticate",
        "proxy-authenticate",
        "proxy-authentication-info",
        "public-key-pins",
        "sec-websocket-accept",
        "set-cookie",
        "set-cookie2",
        "setprofile",
        "strict-transport-security",
        "www-authenticate",
    }
)

VARIANT_HEADERS: frozenset[str] = frozenset({"variant-key-04", "variants-04"})

EXCLUDED_HEADERS: frozenset[str] = UNCACHED_HEADERS | STATEFUL_HEADERS | VARIANT_HEADERS

SXG_MEDIA_TYPE = "application/signed-exchange"
SXG_VERSION = "b3"

# The default user agent to send when issuing fetches. Should look like a mobile device.
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 6.0.1; Nexus 5X Build/MMB29P) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/41.0.2272.96 Mobile Safari/537.36"
)
VIA_TOKEN = "sxg-edge"

# Never forwarded on a plain passthrough; httpx derives them from the target URL and body
_PASSTHROUGH_DROPPED = frozenset({"host", "content-length"}) | UNCACHED_HEADERS


def filter_payload_headers(headers: Iterable[tuple[str, str]]) -> HeaderList:
    """Drop every header in the uncached, stateful or variant lists."""
    return [(k, v) for k, v in headers if k.lower() not in EXCLUDED_HEADERS]


def strip_connection_headers(headers: Iterable[tuple[str, str]]) -> HeaderList:
    return [(k, v) for k, v in headers if k.lower() not in UNCACHED_HEADERS]


def passthrough_request_headers(headers: Iterable[tuple[str, str]]) -> HeaderList:
    return [(k, v) for k, v in headers if k.lower() not in _PASSTHROUGH_DROPPED]


def get_header(headers: Iterable[tuple[str, str]], name: str) -> str | None:
    """Return all values of ``name`` joined with ", ", or None when absent."""
    name = name.lower()
    values = [v for k, v in headers if k.lower() == name]
    if not values:
        return None
    return ", ".join(values)


def _media_params(segments: list[str]) -> dict[str, str]:
    params: dict[str, str] = {}
    for seg in segments:
        if "=" not in seg:
            continue
        k, v = seg.split("=", 1)
        params[k.strip().lower()] = v.strip().strip('"')
    return params


def accepts_signed_exchange(accept: str | None) -> bool:
    """True if an Accept value lists ``application/signed-exchange;v=b3``.

    An entry with ``q=0`` (or an unparsable q) does not count.
    """
    if not accept:
        return False
    for item in accept.split(","):
        media, *rest = [s.strip() for s in item.split(";")]
        if media.lower() != SXG_MEDIA_TYPE:
            continue
        params = _media_params(rest)
        if params.get("v") != SXG_VERSION:
            continue
        q = params.get("q")
        if q is not None:
            try:
                if float(q) <= 0:
                    continue
            except ValueError:
                continue
        return True
    return False


def build_origin_request_headers(
    headers: Iterable[tuple[str, str]], forwarded_names: frozenset[str]
) -> HeaderList:
    """Sanitize client request headers for a sign-eligible origin fetch.

    Only ``forwarded_names`` pass through. ``Via`` is extended per
    RFC 7230 section 5.7.1, a mobile user agent is supplied when missing and
    the identity encoding is requested so the captured body is the payload
    itself.
    """
    headers = list(headers)
    accept = get_header(headers, "accept")
    if accept is None:
        raise ValidationError("The request does not have accept header")
    if not accepts_signed_exchange(accept):
        raise ValidationError(f'The request accept header "{accept}" does not accept {SXG_MEDIA_TYPE};v={SXG_VERSION}')
    upstream_via = get_header(headers, "via")
    via = f"{upstream_via}, {VIA_TOKEN}" if upstream_via else VIA_TOKEN
    out: HeaderList = [
        (k, v)
        for k, v in headers
        if k.lower() in forwarded_names and k.lower() not in {"via", "accept-encoding"}
    ]
    present = {k.lower() for k, _ in out}
    if "user-agent" not in present:
        out.append(("user-agent", DEFAULT_USER_AGENT))
    out.append(("via", via))
    out.append(("accept-encoding", "identity"))
    return out


def validate_payload_headers(
    headers: Iterable[tuple[str, str]],
    size_limit: int,
    reject_stateful_headers: bool = False,
) -> None:
    """Raise ValidationError if the headers cannot be served as an SXG payload."""
    headers = list(headers)
    for k, v in headers:
        name = k.lower()
        if reject_stateful_headers and name in STATEFUL_HEADERS:
            raise ValidationError(f'A stateful header "{name}" is found.')
        if name in VARIANT_HEADERS:
            raise ValidationError(f'A variant header "{name}" is found.')
        if name == "cache-control":
            # https://github.com/google/webpackager/blob/master/docs/cache_requirements.md#user-content-google-sxg-cache
            if "no-cache" in v or "private" in v:
                raise ValidationError(f'The cache-control header is "{v}".')
    size = get_header(headers, "content-length")
    if size is not None:
        try:
            length = int(size)
        except ValueError:
            raise ValidationError(f'The content-length header "{size}" is not a valid length.') from None
        if length < 0:
            raise ValidationError(f'The content-length header "{size}" is not a valid length.')
        if length > size_limit:
            raise ValidationError(
                f"The content-length header is {length}, which exceeds the limit {size_limit}."
            )
    # See step 8 of https://wicg.github.io/webpackage/draft-yasskin-httpbis-origin-signed-exchanges-impl.html#name-signature-validity
    if get_header(headers, "content-type") is None:
        raise ValidationError("The content-type header is missing.")


__all__ = [
    "UNCACHED_HEADERS",
    "STATEFUL_HEADERS",
    "VARIANT_HEADERS",
    "EXCLUDED_HEADERS",
    "SXG_MEDIA_TYPE",
    "filter_payload_headers",
    "strip_connection_headers",
    "passthrough_request_headers",
    "get_header",
    "accepts_signed_exchange",
    "build_origin_request_headers",
    "validate_payload_headers",
]
