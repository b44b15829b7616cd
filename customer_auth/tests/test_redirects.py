"""Tests for redirect helpers (same-origin checks, login links, public origin)."""
import pytest
from fastapi import Request

from customer_auth.redirects import build_login_redirect_url, public_base_url, safe_redirect_target

BASE = "https://store.example"


def _request(headers: dict[str, str]) -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "scheme": "http",
            "server": ("internal", 8080),
            "path": "/api/customer-auth/callback",
            "query_string": b"",
            "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        }
    )


@pytest.mark.parametrize(
    "candidate, expected",
    [
        ("/account", "https://store.example/account"),
        ("/orders?page=2#top", "https://store.example/orders?page=2#top"),
        ("https://store.example/cart", "https://store.example/cart"),
        ("https://evil.example/account", None),
        ("//evil.example/account", None),
        ("http://store.example/account", None),
        ("", None),
        (None, None),
    ],
)
def test_safe_redirect_target(candidate, expected):
    assert safe_redirect_target(candidate, BASE) == expected


def test_build_login_redirect_url_encodes_destination():
    assert build_login_redirect_url("/account?tab=orders") == "/api/customer-auth/start?redirect=%2Faccount%3Ftab%3Dorders"


def test_public_base_url_from_host_header():
    assert public_base_url(_request({"host": "store.example"})) == "http://store.example"


def test_public_base_url_prefers_forwarded_headers():
    request = _request({"host": "internal:8080", "x-forwarded-proto": "https", "x-forwarded-host": "abc.ngrok.app"})
    assert public_base_url(request) == "https://abc.ngrok.app"
