"""
Token endpoint client: authorization_code exchange and refresh_token grant.
Form-encoded POST, JSON response; no automatic retry.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta

import httpx

from customer_auth.claims import IdTokenVerifier, decode_id_token_claims
from customer_auth.config import CustomerAuthConfig
from customer_auth.discovery import DiscoveredEndpoints, EndpointResolver
from customer_auth.errors import (
    ConfigurationError,
    NetworkError,
    RequestTimeoutError,
    TokenEndpointError,
    TokenExchangeError,
    TokenRefreshError,
)
from customer_auth.session import CustomerIdentity, CustomerSession, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExchangeResult:
    session: CustomerSession
    id_token: str | None = None


@dataclass(frozen=True)
class TokenResponse:
    access_token: str
    refresh_token: str
    expires_in: int
    id_token: str | None = None

    @classmethod
    def from_json(cls, data: object) -> "TokenResponse":
        """Raises ValueError unless both tokens and a positive expires_in are present."""
        if not isinstance(data, dict):
            raise ValueError("token response is not a JSON object")
        access_token = data.get("access_token")
        refresh_token = data.get("refresh_token")
        expires_in = data.get("expires_in")
        if not access_token or not isinstance(access_token, str):
            raise ValueError("token response missing access_token")
        if not refresh_token or not isinstance(refresh_token, str):
            raise ValueError("token response missing refresh_token")
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)) or expires_in <= 0:
            raise ValueError("token response missing expires_in")
        id_token = data.get("id_token")
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(expires_in),
            id_token=id_token if isinstance(id_token, str) and id_token else None,
        )


class TokenClient:
    def __init__(
        self,
        config: CustomerAuthConfig,
        resolver: EndpointResolver,
        http_client: httpx.Client | None = None,
    ):
        self.config = config
        self.resolver = resolver
        self._http = http_client
        self._verifiers: dict[tuple[str, str], IdTokenVerifier] = {}

    def exchange(self, code: str, code_verifier: str | None = None) -> ExchangeResult:
        """
        Exchange an authorization code for a session.
        code_verifier is sent only for PKCE (public client) flows.
        Raises TokenExchangeError on non-2xx or an incomplete token response.
        """
        client_id = self.config.require("client_id")
        redirect_uri = self.config.require("redirect_uri")
        if not self.config.client_secret and not code_verifier:
            raise ConfigurationError("client_secret is not configured and no code_verifier was supplied")
        data = {
            "grant_type": "authorization_code",
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "code": code,
        }
        if self.config.client_secret:
            data["client_secret"] = self.config.client_secret
        if code_verifier:
            data["code_verifier"] = code_verifier

        endpoints = self.resolver.discover()
        tokens = self._request(endpoints.token_endpoint, data, TokenExchangeError, "Token Exchange")
        claims = decode_id_token_claims(tokens.id_token, verifier=self._verifier(endpoints))
        if tokens.id_token and claims.sub is None:
            logger.warning("id_token had no usable sub claim; customer id left as placeholder")
        session = CustomerSession(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=utcnow() + timedelta(seconds=tokens.expires_in),
            customer=claims.to_identity(),
        )
        return ExchangeResult(session=session, id_token=tokens.id_token)

    def refresh(self, refresh_token: str, customer: CustomerIdentity) -> CustomerSession:
        """
        New token pair for refresh_token. The refresh response carries no identity,
        so customer is copied into the new session unchanged.
        Raises TokenRefreshError on non-2xx or an incomplete token response.
        """
        data = {
            "grant_type": "refresh_token",
            "client_id": self.config.require("client_id"),
            "refresh_token": refresh_token,
        }
        if self.config.client_secret:
            data["client_secret"] = self.config.client_secret

        endpoints = self.resolver.discover()
        tokens = self._request(endpoints.token_endpoint, data, TokenRefreshError, "Token Refresh")
        logger.info("Customer token refreshed for customer_id=%s", customer.id)
        return CustomerSession(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=utcnow() + timedelta(seconds=tokens.expires_in),
            customer=customer,
        )

    def _verifier(self, endpoints: DiscoveredEndpoints) -> IdTokenVerifier | None:
        if not self.config.verify_id_token:
            return None
        if not endpoints.jwks_uri:
            logger.warning("ID token verification enabled but provider publishes no jwks_uri")
            return None
        key = (endpoints.jwks_uri, endpoints.issuer)
        verifier = self._verifiers.get(key)
        if verifier is None:
            verifier = IdTokenVerifier(
                endpoints.jwks_uri,
                issuer=endpoints.issuer,
                audience=self.config.client_id,
                timeout=self.config.http_timeout,
            )
            self._verifiers[key] = verifier
        return verifier

    def _request(
        self,
        token_endpoint: str,
        data: dict,
        error_cls: type[TokenEndpointError],
        label: str,
    ) -> TokenResponse:
        headers = {"Accept": "application/json"}
        timeout = self.config.http_timeout
        try:
            if self._http is not None:
                r = self._http.post(token_endpoint, data=data, headers=headers, timeout=timeout)
            else:
                r = httpx.post(token_endpoint, data=data, headers=headers, timeout=timeout)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"{label} timed out after {timeout}s") from e
        except httpx.TransportError as e:
            raise NetworkError(f"{label} request failed: {e}") from e

        if not r.is_success:
            logger.error(
                "[%s] Failed: status=%s endpoint=%s body=%s",
                label,
                r.status_code,
                token_endpoint,
                r.text,
            )
            raise error_cls(f"{label} failed ({r.status_code}): {r.text}", r.status_code, r.text)

        try:
            return TokenResponse.from_json(r.json())
        except ValueError as e:
            logger.error("[%s] Unusable token response from %s: %s", label, token_endpoint, e)
            raise error_cls(f"{label} returned an unusable response: {e}", r.status_code, r.text) from e
