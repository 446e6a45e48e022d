import pytest

from sxg_edge.errors import ValidationError
from sxg_edge.headers import (
    EXCLUDED_HEADERS,
    accepts_signed_exchange,
    build_origin_request_headers,
    filter_payload_headers,
    validate_payload_headers,
)


def test_filter_removes_all_three_lists_case_insensitively():
    headers = [
        ("Content-Type", "text/html"),
        ("Set-Cookie", "a=1"),
        ("SET-COOKIE", "b=2"),
        ("set-cookie", "c=3"),
        ("Connection", "keep-alive"),
        ("Transfer-Encoding", "chunked"),
        ("Strict-Transport-Security", "max-age=1"),
        ("Variants-04", "accept-language;en"),
        ("Variant-Key-04", "en"),
        ("Cache-Control", "max-age=60"),
    ]
    assert filter_payload_headers(headers) == [("Content-Type", "text/html"), ("Cache-Control", "max-age=60")]


def test_filter_is_idempotent_and_keeps_order():
    headers = [("x-b", "2"), ("set-cookie2", "z"), ("x-a", "1"), ("upgrade", "h2c"), ("x-c", "3")]
    once = filter_payload_headers(headers)
    assert once == [("x-b", "2"), ("x-a", "1"), ("x-c", "3")]
    assert filter_payload_headers(once) == once
    # input is not mutated
    assert len(headers) == 5


def test_exclusion_lists_are_lowercase():
    assert all(name == name.lower() for name in EXCLUDED_HEADERS)
    assert {"connection", "www-authenticate", "variants-04"} <= EXCLUDED_HEADERS


@pytest.mark.parametrize(
    "accept, expected",
    [
        ("application/signed-exchange;v=b3", True),
        ("text/html,application/signed-exchange;v=b3;q=0.9", True),
        ("Application/Signed-Exchange; v=\"b3\"", True),
        ("application/signed-exchange;v=b2", False),
        ("application/signed-exchange", False),
        ("application/signed-exchange;v=b3;q=0", False),
        ("text/html", False),
        (None, False),
    ],
)
def test_accepts_signed_exchange(accept, expected):
    assert accepts_signed_exchange(accept) is expected


def test_origin_request_headers_forward_only_allowed_names():
    headers = [
        ("accept", "application/signed-exchange;v=b3"),
        ("cookie", "session=1"),
        ("accept-language", "en"),
        ("accept-encoding", "gzip, br"),
        ("via", "1.1 cdn"),
    ]
    out = build_origin_request_headers(headers, frozenset({"accept-language"}))
    names = [k.lower() for k, _ in out]
    assert "cookie" not in names
    assert ("accept-language", "en") in out
    assert ("via", "1.1 cdn, sxg-edge") in out
    assert ("accept-encoding", "identity") in out
    assert "user-agent" in names


def test_origin_request_headers_require_sxg_accept():
    with pytest.raises(ValidationError):
        build_origin_request_headers([("user-agent", "x")], frozenset())
    with pytest.raises(ValidationError):
        build_origin_request_headers([("accept", "text/html")], frozenset())


def test_validate_payload_headers_rules():
    ok = [("content-type", "text/html"), ("content-length", "10"), ("cache-control", "max-age=3600")]
    validate_payload_headers(ok, 8_000_000)
    with pytest.raises(ValidationError, match="content-type header is missing"):
        validate_payload_headers([("content-length", "10")], 8_000_000)
    with pytest.raises(ValidationError, match="cache-control"):
        validate_payload_headers([("content-type", "text/html"), ("Cache-Control", "private")], 8_000_000)
    with pytest.raises(ValidationError, match="exceeds the limit"):
        validate_payload_headers([("content-type", "text/html"), ("content-length", "9000000")], 8_000_000)
    with pytest.raises(ValidationError, match="not a valid length"):
        validate_payload_headers([("content-type", "text/html"), ("content-length", "ten")], 8_000_000)
    with pytest.raises(ValidationError, match="variant"):
        validate_payload_headers([("content-type", "text/html"), ("variants-04", "x")], 8_000_000)
    with pytest.raises(ValidationError, match="stateful"):
        validate_payload_headers(
            [("content-type", "text/html"), ("set-cookie", "a=b")], 8_000_000, reject_stateful_headers=True
        )
