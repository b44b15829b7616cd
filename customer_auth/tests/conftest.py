"""
Pytest fixtures for customer_auth: a fake identity provider served through
httpx.MockTransport, and a config pointing at it. No real network access.
"""
import json
from urllib.parse import parse_qsl

import httpx
import pytest
from jwt.utils import base64url_encode

from customer_auth.config import CustomerAuthConfig
from customer_auth.discovery import EndpointCache, EndpointResolver
from customer_auth.manager import CustomerSessionManager
from customer_auth.tokens import TokenClient

IDENTITY_DOMAIN = "shop.example.com"
DISCOVERY_URL = f"https://{IDENTITY_DOMAIN}/.well-known/openid-configuration"
AUTHORIZATION_ENDPOINT = "https://shopify.com/authentication/1/oauth/authorize"
TOKEN_ENDPOINT = "https://shopify.com/authentication/1/oauth/token"
END_SESSION_ENDPOINT = "https://shopify.com/authentication/1/logout"
ISSUER = "https://shopify.com/authentication/1"


class FakeProvider:
    """Discovery + token endpoint. Tests tweak the attributes, then inspect .token_requests."""

    def __init__(self):
        self.discovery_status = 200
        self.discovery_doc = {
            "issuer": ISSUER,
            "authorization_endpoint": AUTHORIZATION_ENDPOINT,
            "token_endpoint": TOKEN_ENDPOINT,
            "end_session_endpoint": END_SESSION_ENDPOINT,
        }
        self.discovery_error: Exception | None = None
        self.token_status = 200
        self.token_body: dict | str = {
            "access_token": "AT1",
            "refresh_token": "RT1",
            "token_type": "Bearer",
            "expires_in": 3600,
        }
        self.token_error: Exception | None = None
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) == DISCOVERY_URL:
            if self.discovery_error:
                raise self.discovery_error
            return httpx.Response(self.discovery_status, json=self.discovery_doc)
        if str(request.url) == TOKEN_ENDPOINT and request.method == "POST":
            if self.token_error:
                raise self.token_error
            if isinstance(self.token_body, str):
                return httpx.Response(self.token_status, text=self.token_body)
            return httpx.Response(self.token_status, json=self.token_body)
        return httpx.Response(404, text="not found")

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    @property
    def discovery_calls(self) -> int:
        return sum(1 for r in self.requests if str(r.url) == DISCOVERY_URL)

    @property
    def token_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) == TOKEN_ENDPOINT]

    def token_form(self, index: int = -1) -> dict:
        return dict(parse_qsl(self.token_requests[index].content.decode()))


def make_unsigned_jwt(payload: dict) -> str:
    header = base64url_encode(json.dumps({"alg": "RS256", "typ": "JWT"}).encode()).decode()
    body = base64url_encode(json.dumps(payload).encode()).decode()
    return f"{header}.{body}.c2lnbmF0dXJl"


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def make_id_token():
    return make_unsigned_jwt


@pytest.fixture
def config():
    return CustomerAuthConfig(
        client_id="client-123",
        client_secret="secret-xyz",
        redirect_uri="https://store.example/api/customer-auth/callback",
        identity_domain=IDENTITY_DOMAIN,
    )


@pytest.fixture
def public_config():
    """Public client: no secret, PKCE instead."""
    return CustomerAuthConfig(
        client_id="client-123",
        redirect_uri="https://store.example/api/customer-auth/callback",
        identity_domain=IDENTITY_DOMAIN,
    )


@pytest.fixture
def resolver(config, provider):
    return EndpointResolver(config, cache=EndpointCache(), http_client=provider.client())


@pytest.fixture
def token_client(config, resolver, provider):
    return TokenClient(config, resolver, http_client=provider.client())


@pytest.fixture
def manager(config, resolver, token_client):
    return CustomerSessionManager(config, resolver=resolver, token_client=token_client)
