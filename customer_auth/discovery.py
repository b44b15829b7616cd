"""
OpenID Connect endpoint discovery for the customer account provider.
GET https://{identity_domain}/.well-known/openid-configuration; cached per resolver cache
for the process lifetime, static endpoints from config used when discovery fails.
"""
import logging
import threading
from dataclasses import dataclass

import httpx

from customer_auth.config import CustomerAuthConfig
from customer_auth.errors import DiscoveryError, RequestTimeoutError

logger = logging.getLogger(__name__)

WELL_KNOWN_PATH = "/.well-known/openid-configuration"
REQUIRED_FIELDS = ("authorization_endpoint", "token_endpoint", "end_session_endpoint")


@dataclass(frozen=True)
class DiscoveredEndpoints:
    authorization_endpoint: str
    token_endpoint: str
    end_session_endpoint: str
    issuer: str
    jwks_uri: str | None = None


class EndpointCache:
    """
    Holds the last successfully discovered endpoints.
    The whole object is swapped under a lock; there is no TTL.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._endpoints: DiscoveredEndpoints | None = None

    def get(self) -> DiscoveredEndpoints | None:
        with self._lock:
            return self._endpoints

    def set(self, endpoints: DiscoveredEndpoints) -> None:
        with self._lock:
            self._endpoints = endpoints

    def clear(self) -> None:
        with self._lock:
            self._endpoints = None


# Shared by resolvers that are not given their own cache
default_cache = EndpointCache()


def parse_discovery_document(data: object, default_issuer: str) -> DiscoveredEndpoints:
    """Validate a discovery document; ValueError if a required endpoint is missing."""
    if not isinstance(data, dict):
        raise ValueError("Discovery response is not a JSON object")
    missing = [f for f in REQUIRED_FIELDS if not isinstance(data.get(f), str) or not data.get(f)]
    if missing:
        raise ValueError(f"Discovery response missing required endpoints: {', '.join(missing)}")
    issuer = data.get("issuer")
    jwks_uri = data.get("jwks_uri")
    return DiscoveredEndpoints(
        authorization_endpoint=data["authorization_endpoint"],
        token_endpoint=data["token_endpoint"],
        end_session_endpoint=data["end_session_endpoint"],
        issuer=issuer if isinstance(issuer, str) and issuer else default_issuer,
        jwks_uri=jwks_uri if isinstance(jwks_uri, str) and jwks_uri else None,
    )


class EndpointResolver:
    def __init__(
        self,
        config: CustomerAuthConfig,
        cache: EndpointCache | None = None,
        http_client: httpx.Client | None = None,
    ):
        self.config = config
        self.cache = cache if cache is not None else default_cache
        self._http = http_client

    @property
    def discovery_url(self) -> str:
        domain = self.config.require("identity_domain")
        return f"https://{domain}{WELL_KNOWN_PATH}"

    def discover(self) -> DiscoveredEndpoints:
        """
        Return cached endpoints, or fetch the discovery document.
        Raises ConfigurationError without an identity domain. When discovery fails and
        no fallback endpoints are configured: RequestTimeoutError on timeout,
        DiscoveryError otherwise.
        """
        cached = self.cache.get()
        if cached is not None:
            return cached

        url = self.discovery_url
        try:
            endpoints = self._fetch(url)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("OAuth discovery failed for %s: %s", url, e)
            fallback = self._fallback()
            if fallback is None:
                if isinstance(e, httpx.TimeoutException):
                    raise RequestTimeoutError(f"OAuth discovery timed out: {e}") from e
                raise DiscoveryError(
                    "Failed to discover OAuth endpoints and no fallback URLs are configured"
                ) from e
            logger.warning("OAuth discovery: falling back to configured endpoints")
            return fallback

        # Concurrent first calls may both get here; any complete result is valid.
        self.cache.set(endpoints)
        logger.info("OAuth endpoints discovered from %s (issuer=%s)", url, endpoints.issuer)
        return endpoints

    def rediscover(self) -> DiscoveredEndpoints:
        """Drop the cached endpoints and discover again."""
        self.cache.clear()
        return self.discover()

    def _fetch(self, url: str) -> DiscoveredEndpoints:
        headers = {"Accept": "application/json"}
        timeout = self.config.http_timeout
        if self._http is not None:
            r = self._http.get(url, headers=headers, timeout=timeout)
        else:
            r = httpx.get(url, headers=headers, timeout=timeout)
        if not r.is_success:
            raise ValueError(f"Discovery endpoint returned {r.status_code}")
        return parse_discovery_document(r.json(), f"https://{self.config.identity_domain}")

    def _fallback(self) -> DiscoveredEndpoints | None:
        if not self.config.has_fallback_endpoints:
            return None
        return DiscoveredEndpoints(
            authorization_endpoint=self.config.fallback_authorization_endpoint,
            token_endpoint=self.config.fallback_token_endpoint,
            end_session_endpoint=self.config.fallback_end_session_endpoint,
            issuer=self.config.fallback_issuer,
        )
