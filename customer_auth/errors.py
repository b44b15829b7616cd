"""
Error taxonomy for the customer session manager.

ConfigurationError and DiscoveryError are fatal for the call that raised them.
RequestTimeoutError and NetworkError are retryable by the caller. Token endpoint
errors carry the HTTP status and raw body and usually mean the customer has to
log in again. ParseError never escapes the cookie codec or claim decoding.
"""


class CustomerAuthError(Exception):
    """Base class for all customer auth failures."""


class ConfigurationError(CustomerAuthError):
    """A required setting is missing."""


class DiscoveryError(CustomerAuthError):
    """Endpoint discovery failed and no static fallback is configured."""


class RequestTimeoutError(CustomerAuthError, TimeoutError):
    """A provider call exceeded its deadline."""


class NetworkError(CustomerAuthError):
    """Connection-level failure talking to the provider."""


class TokenEndpointError(CustomerAuthError):
    """Token endpoint answered with an error (or an unusable body)."""

    def __init__(self, message: str, status_code: int, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TokenExchangeError(TokenEndpointError):
    """authorization_code grant failed."""


class TokenRefreshError(TokenEndpointError):
    """refresh_token grant failed."""


class ParseError(CustomerAuthError):
    """Malformed cookie or claim payload."""
