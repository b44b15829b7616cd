"""
Customer account (OAuth2 / OIDC) client configuration.
Values come from the environment; no secrets in this file.
"""
import os
from dataclasses import dataclass

from customer_auth.errors import ConfigurationError


def _env(name: str) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or None


# Registered client at the identity provider
CLIENT_ID = _env("SHOPIFY_CUSTOMER_ACCOUNT_CLIENT_ID")
# Confidential clients only; public clients leave it unset and use PKCE
CLIENT_SECRET = _env("SHOPIFY_CUSTOMER_ACCOUNT_CLIENT_SECRET")
# Callback URL where the provider redirects after authorization
REDIRECT_URI = _env("SHOPIFY_CUSTOMER_ACCOUNT_REDIRECT_URI")

# Domain serving /.well-known/openid-configuration
IDENTITY_DOMAIN = _env("NEXT_PUBLIC_STORE_DOMAIN") or _env("SHOPIFY_STORE_DOMAIN")

# Static endpoints used only when discovery fails (all three must be set)
FALLBACK_AUTH_URL = _env("SHOPIFY_CUSTOMER_ACCOUNT_AUTH_URL")
FALLBACK_TOKEN_URL = _env("SHOPIFY_CUSTOMER_ACCOUNT_TOKEN_URL")
FALLBACK_LOGOUT_URL = _env("SHOPIFY_CUSTOMER_ACCOUNT_LOGOUT_URL")
FALLBACK_ISSUER = _env("SHOPIFY_CUSTOMER_ACCOUNT_ISSUER") or "https://shopify.com"

DEFAULT_SCOPE = os.environ.get("SHOPIFY_CUSTOMER_ACCOUNT_SCOPE", "openid email customer-account-api:full")

# Locale of the provider's login page
UI_LOCALES = os.environ.get("CUSTOMER_AUTH_UI_LOCALES", "vi")

# Timeout (seconds) for discovery and token endpoint calls
HTTP_TIMEOUT = float(os.environ.get("CUSTOMER_AUTH_HTTP_TIMEOUT", "20"))

# Verify ID token signature via the provider's JWKS (off: payload is decoded unverified)
VERIFY_ID_TOKEN = os.environ.get("CUSTOMER_AUTH_VERIFY_ID_TOKEN", "false").lower() in ("1", "true", "yes")

# Secure cookies in production
APP_ENV = os.environ.get("APP_ENV", "development")


@dataclass(frozen=True)
class CustomerAuthConfig:
    client_id: str | None = None
    client_secret: str | None = None
    redirect_uri: str | None = None
    identity_domain: str | None = None
    fallback_authorization_endpoint: str | None = None
    fallback_token_endpoint: str | None = None
    fallback_end_session_endpoint: str | None = None
    fallback_issuer: str = "https://shopify.com"
    scope: str = "openid email customer-account-api:full"
    ui_locales: str | None = "vi"
    http_timeout: float = 20.0
    verify_id_token: bool = False
    production: bool = False

    @classmethod
    def from_env(cls) -> "CustomerAuthConfig":
        """Snapshot of the module-level settings above."""
        return cls(
            client_id=CLIENT_ID,
            client_secret=CLIENT_SECRET,
            redirect_uri=REDIRECT_URI,
            identity_domain=IDENTITY_DOMAIN,
            fallback_authorization_endpoint=FALLBACK_AUTH_URL,
            fallback_token_endpoint=FALLBACK_TOKEN_URL,
            fallback_end_session_endpoint=FALLBACK_LOGOUT_URL,
            fallback_issuer=FALLBACK_ISSUER,
            scope=DEFAULT_SCOPE,
            ui_locales=UI_LOCALES or None,
            http_timeout=HTTP_TIMEOUT,
            verify_id_token=VERIFY_ID_TOKEN,
            production=APP_ENV == "production",
        )

    @property
    def is_confidential(self) -> bool:
        """Confidential clients authenticate with client_secret instead of PKCE."""
        return bool(self.client_secret)

    @property
    def has_fallback_endpoints(self) -> bool:
        return bool(
            self.fallback_authorization_endpoint
            and self.fallback_token_endpoint
            and self.fallback_end_session_endpoint
        )

    def require(self, name: str) -> str:
        """Return a required setting or raise ConfigurationError."""
        value = getattr(self, name)
        if not value:
            raise ConfigurationError(f"{name} is not configured")
        return value
