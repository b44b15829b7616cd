"""
Customer session model and expiry policy.
Both tokens are always replaced together; identity only changes on a new login.
"""
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any

from customer_auth.errors import ParseError

# Sessions closer than this to expiry are treated as expired so that an
# in-flight provider call never runs with a token that dies mid-request.
EXPIRY_BUFFER = timedelta(minutes=5)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with a trailing Z (the cookie wire format)."""
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_timestamp(raw: Any) -> datetime:
    if not isinstance(raw, str) or not raw:
        raise ParseError("expiresAt must be a non-empty string")
    text = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
    try:
        value = datetime.fromisoformat(text)
    except ValueError as e:
        raise ParseError(f"invalid expiresAt: {raw!r}") from e
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _optional_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ParseError(f"customer.{key} must be a string or null")
    return value


@dataclass(frozen=True)
class CustomerIdentity:
    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "CustomerIdentity":
        if not isinstance(data, dict):
            raise ParseError("customer must be an object")
        customer_id = data.get("id")
        email = data.get("email")
        if not isinstance(customer_id, str) or not isinstance(email, str):
            raise ParseError("customer.id and customer.email must be strings")
        return cls(
            id=customer_id,
            email=email,
            first_name=_optional_str(data, "firstName"),
            last_name=_optional_str(data, "lastName"),
        )


@dataclass(frozen=True)
class CustomerSession:
    access_token: str
    refresh_token: str
    expires_at: datetime
    customer: CustomerIdentity

    def with_tokens(self, access_token: str, refresh_token: str, expires_at: datetime) -> "CustomerSession":
        """New token pair and expiry; identity is kept as is."""
        return replace(self, access_token=access_token, refresh_token=refresh_token, expires_at=expires_at)

    def to_dict(self) -> dict:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresAt": format_timestamp(self.expires_at),
            "customer": self.customer.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "CustomerSession":
        if not isinstance(data, dict):
            raise ParseError("session must be an object")
        access_token = data.get("accessToken")
        refresh_token = data.get("refreshToken")
        if not access_token or not isinstance(access_token, str):
            raise ParseError("accessToken missing")
        if not refresh_token or not isinstance(refresh_token, str):
            raise ParseError("refreshToken missing")
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=parse_timestamp(data.get("expiresAt")),
            customer=CustomerIdentity.from_dict(data.get("customer")),
        )


def is_expired(session: CustomerSession, *, now: datetime | None = None) -> bool:
    """
    True if the session has expired or expires within EXPIRY_BUFFER.
    Callers refresh proactively when this returns True instead of waiting for a 401.
    """
    now = now or utcnow()
    return session.expires_at - now < EXPIRY_BUFFER
