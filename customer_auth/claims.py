"""
Identity claims from the ID token returned by the token endpoint.

By default the payload segment is decoded without signature verification: the
token comes straight from the token endpoint over TLS. IdTokenVerifier adds
JWKS signature, issuer and audience checks when CUSTOMER_AUTH_VERIFY_ID_TOKEN is set.
Decoding never raises; unusable claims fall back to placeholders.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any

import jwt
from jwt import PyJWKClient

from customer_auth.errors import ParseError
from customer_auth.session import CustomerIdentity

logger = logging.getLogger(__name__)

UNKNOWN_CUSTOMER_ID = "unknown"


@dataclass(frozen=True)
class IdTokenClaims:
    sub: str | None = None
    email: str | None = None
    given_name: str | None = None
    family_name: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "IdTokenClaims":
        sub = payload.get("sub")
        # bool is an int subclass; a boolean subject is not an id
        if isinstance(sub, bool) or not isinstance(sub, (str, int)):
            if "sub" in payload:
                logger.warning("id_token sub claim has unexpected type %s", type(sub).__name__)
            sub = None
        return cls(
            sub=str(sub) if sub is not None else None,
            email=_str_claim(payload, "email"),
            given_name=_str_claim(payload, "given_name"),
            family_name=_str_claim(payload, "family_name"),
        )

    def to_identity(self) -> CustomerIdentity:
        return CustomerIdentity(
            id=self.sub or UNKNOWN_CUSTOMER_ID,
            email=self.email or "",
            first_name=self.given_name,
            last_name=self.family_name,
        )


def _str_claim(payload: dict, name: str) -> str | None:
    value = payload.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        logger.warning("id_token %s claim has unexpected type %s", name, type(value).__name__)
        return None
    return value


def decode_unverified_payload(id_token: str) -> dict[str, Any]:
    """base64url-decode and JSON-parse the second JWT segment. Raises ParseError."""
    parts = id_token.split(".")
    if len(parts) < 2 or not parts[1]:
        raise ParseError("id_token is not a JWT")
    try:
        raw = jwt.utils.base64url_decode(parts[1])
        payload = json.loads(raw)
    except (ValueError, TypeError) as e:
        raise ParseError(f"id_token payload is not base64url JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ParseError("id_token payload is not a JSON object")
    return payload


class IdTokenVerifier:
    """Signature + iss + aud verification against the provider JWKS."""

    algorithms = ["RS256", "ES256"]

    def __init__(
        self,
        jwks_uri: str,
        *,
        issuer: str,
        audience: str,
        timeout: float = 20,
        jwks_client: PyJWKClient | None = None,
    ):
        self.issuer = issuer
        self.audience = audience
        # The JWK set is cached for 5 minutes per verifier instance; keep the verifier around.
        self._jwks_client = jwks_client or PyJWKClient(uri=jwks_uri, cache_jwk_set=True, lifespan=300, timeout=timeout)

    def verify(self, id_token: str) -> dict[str, Any]:
        signing_key = self._jwks_client.get_signing_key_from_jwt(id_token)
        return jwt.decode(
            id_token,
            signing_key.key,
            algorithms=self.algorithms,
            audience=self.audience,
            issuer=self.issuer,
        )


def decode_id_token_claims(id_token: str | None, verifier: IdTokenVerifier | None = None) -> IdTokenClaims:
    """Typed claims from an ID token; empty claims on any failure (logged, never raised)."""
    if not id_token:
        return IdTokenClaims()
    try:
        if verifier is not None:
            payload = verifier.verify(id_token)
        else:
            payload = decode_unverified_payload(id_token)
    except jwt.PyJWTError as e:
        logger.warning("id_token verification failed: %s", e)
        return IdTokenClaims()
    except ParseError as e:
        logger.warning("Unable to decode id_token claims: %s", e)
        return IdTokenClaims()
    return IdTokenClaims.from_payload(payload)
