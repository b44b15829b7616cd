"""
Customer session manager: the narrow interface the storefront uses.

  current session or None  -> current_session(cookies)
  login URL                -> start_login(...)
  exchange code            -> complete_login(code, code_verifier)
  refresh session          -> refresh(session)
  clear session            -> clear()

Driven by the request lifecycle, not a timer:
ANONYMOUS -> AUTHORIZING -> AUTHORIZED -> ACTIVE -> EXPIRING -> REFRESHED (-> ACTIVE)
| LOGGED_OUT | REFRESH_FAILED (back to ANONYMOUS).

There is no lock per browser session. Two concurrent requests may both refresh
the same session; if the provider rotates refresh tokens, the losing request is
left holding a superseded token and the customer has to log in again.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Mapping

from customer_auth import cookies as codec
from customer_auth.config import CustomerAuthConfig
from customer_auth.discovery import EndpointResolver
from customer_auth.errors import TokenRefreshError
from customer_auth.pkce import PkcePair, build_authorize_url, build_logout_url, generate_pkce, generate_state
from customer_auth.session import CustomerSession, is_expired
from customer_auth.tokens import ExchangeResult, TokenClient

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    ANONYMOUS = "anonymous"
    AUTHORIZING = "authorizing"
    AUTHORIZED = "authorized"
    ACTIVE = "active"
    EXPIRING = "expiring"
    REFRESHED = "refreshed"
    LOGGED_OUT = "logged_out"
    REFRESH_FAILED = "refresh_failed"


@dataclass(frozen=True)
class LoginRequest:
    url: str
    state: str
    pkce: PkcePair | None = None


@dataclass(frozen=True)
class SessionRead:
    """Outcome of reading the session for one request. cookies is what to write back, if anything."""

    state: SessionState
    session: CustomerSession | None = None
    cookies: codec.SessionCookieSet | None = None

    @property
    def authenticated(self) -> bool:
        return self.session is not None


class CustomerSessionManager:
    def __init__(
        self,
        config: CustomerAuthConfig,
        resolver: EndpointResolver | None = None,
        token_client: TokenClient | None = None,
    ):
        self.config = config
        self.resolver = resolver or EndpointResolver(config)
        self.token_client = token_client or TokenClient(config, self.resolver)

    def start_login(
        self,
        login_hint: str | None = None,
        prompt: str | None = "login",
        state: str | None = None,
    ) -> LoginRequest:
        """Authorization URL for a new login. PKCE only for public clients (no client_secret)."""
        state = state or generate_state()
        pkce = None if self.config.is_confidential else generate_pkce()
        endpoints = self.resolver.discover()
        url = build_authorize_url(
            authorization_endpoint=endpoints.authorization_endpoint,
            client_id=self.config.require("client_id"),
            redirect_uri=self.config.require("redirect_uri"),
            scope=self.config.scope,
            state=state,
            code_challenge=pkce.challenge if pkce else None,
            login_hint=login_hint,
            prompt=prompt,
            ui_locales=self.config.ui_locales,
        )
        return LoginRequest(url=url, state=state, pkce=pkce)

    def complete_login(self, code: str, code_verifier: str | None = None) -> ExchangeResult:
        return self.token_client.exchange(code, code_verifier=code_verifier)

    def refresh(self, session: CustomerSession) -> CustomerSession:
        return self.token_client.refresh(session.refresh_token, session.customer)

    def encode(self, session: CustomerSession, id_token: str | None = None) -> codec.SessionCookieSet:
        """Split cookies for a new or refreshed session; any legacy cookie is deleted."""
        secure = self.config.production
        return codec.retire_legacy(codec.encode(session, id_token, secure=secure), secure=secure)

    def clear(self) -> codec.SessionCookieSet:
        return codec.encode_empty(secure=self.config.production)

    def current_session(self, cookies: Mapping[str, str]) -> SessionRead:
        """
        Read the session from request cookies, refreshing it when it is about to expire.
        A rejected refresh clears the cookies and leaves the customer anonymous;
        RequestTimeoutError and NetworkError propagate so the caller can offer a retry.
        """
        session = codec.decode(cookies)
        if session is None:
            return SessionRead(SessionState.ANONYMOUS)
        if not is_expired(session):
            return SessionRead(SessionState.ACTIVE, session)

        logger.info("Customer session expiring at %s; refreshing", session.expires_at.isoformat())
        try:
            refreshed = self.refresh(session)
        except TokenRefreshError as e:
            logger.warning("Customer session refresh rejected (status=%s); clearing session", e.status_code)
            return SessionRead(SessionState.REFRESH_FAILED, cookies=self.clear())
        id_token = codec.read_id_token(cookies)
        return SessionRead(SessionState.REFRESHED, refreshed, cookies=self.encode(refreshed, id_token))

    def logout_url(self, post_logout_redirect_uri: str, id_token: str | None = None) -> str:
        endpoints = self.resolver.discover()
        return build_logout_url(
            end_session_endpoint=endpoints.end_session_endpoint,
            post_logout_redirect_uri=post_logout_redirect_uri,
            id_token_hint=id_token,
        )
