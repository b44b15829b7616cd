"""
Cookie codec for customer sessions.

Two encodings are read for backward compatibility:
  LEGACY - one cookie holding {"session": {...}} as JSON
  SPLIT  - access / refresh / meta (expiresAt + customer) / id_token cookies,
           since one ~4KB cookie cannot reliably carry a session plus an ID token
New sessions are written split. Cookie names must not change between deploys.
"""
import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Mapping

from customer_auth.errors import ParseError
from customer_auth.session import CustomerIdentity, CustomerSession, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

CUSTOMER_SESSION_COOKIE = "onlyperf_customer_session"
CUSTOMER_SESSION_ACCESS_COOKIE = "onlyperf_customer_access"
CUSTOMER_SESSION_REFRESH_COOKIE = "onlyperf_customer_refresh"
CUSTOMER_SESSION_META_COOKIE = "onlyperf_customer_meta"
CUSTOMER_ID_TOKEN_COOKIE = "onlyperf_customer_id_token"

# Login flow cookies (short-lived, single use)
OAUTH_STATE_COOKIE = "onlyperf_customer_oauth_state"
OAUTH_PKCE_COOKIE = "onlyperf_customer_pkce"
OAUTH_REDIRECT_COOKIE_PREFIX = "oauth_redirect_"

ALL_SESSION_COOKIES = (
    CUSTOMER_SESSION_COOKIE,
    CUSTOMER_SESSION_ACCESS_COOKIE,
    CUSTOMER_SESSION_REFRESH_COOKIE,
    CUSTOMER_SESSION_META_COOKIE,
    CUSTOMER_ID_TOKEN_COOKIE,
)

SESSION_MAX_AGE = 60 * 60 * 24 * 7
FLOW_MAX_AGE = 300


class CookieEncoding(enum.Enum):
    LEGACY = "legacy"
    SPLIT = "split"
    EMPTY = "empty"


@dataclass(frozen=True)
class CookieOptions:
    httponly: bool = True
    secure: bool = False
    samesite: str = "lax"
    path: str = "/"
    max_age: int = SESSION_MAX_AGE

    def as_kwargs(self) -> dict:
        """Keyword arguments for Response.set_cookie."""
        return {
            "httponly": self.httponly,
            "secure": self.secure,
            "samesite": self.samesite,
            "path": self.path,
            "max_age": self.max_age,
        }


@dataclass(frozen=True)
class CookieRecord:
    name: str
    value: str
    options: CookieOptions = field(default_factory=CookieOptions)


@dataclass(frozen=True)
class SessionCookieSet:
    encoding: CookieEncoding
    records: list[CookieRecord]

    def as_mapping(self) -> dict[str, str]:
        """Cookie jar view (name -> value), as a browser would send them back."""
        return {r.name: r.value for r in self.records if r.value}

    def names(self) -> list[str]:
        return [r.name for r in self.records]


def _dumps(value: dict) -> str:
    return json.dumps(value, separators=(",", ":"))


def encode_legacy(session: CustomerSession, *, secure: bool = False) -> SessionCookieSet:
    options = CookieOptions(secure=secure)
    record = CookieRecord(CUSTOMER_SESSION_COOKIE, _dumps({"session": session.to_dict()}), options)
    return SessionCookieSet(CookieEncoding.LEGACY, [record])


def encode_split(session: CustomerSession, id_token: str | None = None, *, secure: bool = False) -> SessionCookieSet:
    options = CookieOptions(secure=secure)
    meta = {"expiresAt": format_timestamp(session.expires_at), "customer": session.customer.to_dict()}
    records = [
        CookieRecord(CUSTOMER_SESSION_ACCESS_COOKIE, session.access_token, options),
        CookieRecord(CUSTOMER_SESSION_REFRESH_COOKIE, session.refresh_token, options),
        CookieRecord(CUSTOMER_SESSION_META_COOKIE, _dumps(meta), options),
    ]
    if id_token:
        records.append(CookieRecord(CUSTOMER_ID_TOKEN_COOKIE, id_token, options))
    return SessionCookieSet(CookieEncoding.SPLIT, records)


def encode(
    session: CustomerSession,
    id_token: str | None = None,
    *,
    encoding: CookieEncoding = CookieEncoding.SPLIT,
    secure: bool = False,
) -> SessionCookieSet:
    """Serialize a session. Legacy cookies cannot carry the ID token."""
    if encoding is CookieEncoding.LEGACY:
        return encode_legacy(session, secure=secure)
    if encoding is CookieEncoding.SPLIT:
        return encode_split(session, id_token, secure=secure)
    raise ValueError(f"Cannot encode a session as {encoding.value}")


def encode_empty(*, secure: bool = False) -> SessionCookieSet:
    """Clear every session cookie, legacy and split."""
    options = CookieOptions(secure=secure, max_age=0)
    return SessionCookieSet(CookieEncoding.EMPTY, [CookieRecord(name, "", options) for name in ALL_SESSION_COOKIES])


def _decode_legacy(cookies: Mapping[str, str]) -> CustomerSession | None:
    raw = cookies.get(CUSTOMER_SESSION_COOKIE)
    if not raw:
        return None
    parsed = json.loads(raw)
    if not isinstance(parsed, dict) or parsed.get("session") is None:
        return None
    return CustomerSession.from_dict(parsed["session"])


def _decode_split(cookies: Mapping[str, str]) -> CustomerSession | None:
    access = cookies.get(CUSTOMER_SESSION_ACCESS_COOKIE)
    refresh = cookies.get(CUSTOMER_SESSION_REFRESH_COOKIE)
    meta_raw = cookies.get(CUSTOMER_SESSION_META_COOKIE)
    if not access or not refresh or not meta_raw:
        return None
    meta = json.loads(meta_raw)
    if not isinstance(meta, dict):
        raise ParseError("meta cookie is not an object")
    return CustomerSession(
        access_token=access,
        refresh_token=refresh,
        expires_at=parse_timestamp(meta.get("expiresAt")),
        customer=CustomerIdentity.from_dict(meta.get("customer")),
    )


# Tried in order; the first encoding that yields a session wins
_DECODERS = (
    (CookieEncoding.LEGACY, _decode_legacy),
    (CookieEncoding.SPLIT, _decode_split),
)


def decode(cookies: Mapping[str, str] | SessionCookieSet) -> CustomerSession | None:
    """Session from request cookies, or None. Never raises on bad cookie contents."""
    if isinstance(cookies, SessionCookieSet):
        cookies = cookies.as_mapping()
    for encoding, decoder in _DECODERS:
        try:
            session = decoder(cookies)
        except (ParseError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            logger.error("Unable to parse %s customer session cookie: %s", encoding.value, e)
            continue
        if session is not None:
            return session
    return None


def read_id_token(cookies: Mapping[str, str] | SessionCookieSet) -> str | None:
    if isinstance(cookies, SessionCookieSet):
        cookies = cookies.as_mapping()
    return cookies.get(CUSTOMER_ID_TOKEN_COOKIE) or None


def apply_cookies(response, cookie_set: SessionCookieSet) -> None:
    """Write every record onto a Starlette/FastAPI response."""
    for record in cookie_set.records:
        response.set_cookie(record.name, record.value, **record.options.as_kwargs())


def retire_legacy(cookie_set: SessionCookieSet, *, secure: bool = False) -> SessionCookieSet:
    """
    Append a deletion of the legacy cookie to a split cookie set. decode() reads the
    legacy cookie first, so it has to go once a split session is written.
    """
    expired = CookieRecord(CUSTOMER_SESSION_COOKIE, "", CookieOptions(secure=secure, max_age=0))
    return SessionCookieSet(cookie_set.encoding, [*cookie_set.records, expired])
