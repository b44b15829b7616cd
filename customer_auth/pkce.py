"""
PKCE (RFC 7636) and redirect URL helpers for customer login and logout.
S256 only; state comes from the secrets module.
"""
import hashlib
import secrets
from base64 import urlsafe_b64encode
from dataclasses import dataclass
from urllib.parse import urlencode

PROMPT_VALUES = ("login", "consent", "select_account", "none")


@dataclass(frozen=True)
class PkcePair:
    verifier: str
    challenge: str


def generate_state() -> str:
    """Opaque single-use value for CSRF protection; returned in callback."""
    return secrets.token_urlsafe(32)


def code_challenge_for(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_pkce() -> PkcePair:
    """
    Generate code_verifier and code_challenge (S256). Public clients only;
    confidential clients authenticate the exchange with client_secret instead.
    """
    # 32 bytes -> 43 chars base64url (RFC 7636 recommendation)
    verifier = secrets.token_urlsafe(32)
    return PkcePair(verifier=verifier, challenge=code_challenge_for(verifier))


def _join(endpoint: str, params: dict) -> str:
    return f"{endpoint}{'&' if '?' in endpoint else '?'}{urlencode(params)}"


def build_authorize_url(
    *,
    authorization_endpoint: str,
    client_id: str,
    redirect_uri: str,
    scope: str,
    state: str,
    code_challenge: str | None = None,
    login_hint: str | None = None,
    prompt: str | None = None,
    ui_locales: str | None = None,
) -> str:
    """Build the provider authorization URL; PKCE params only when a challenge is given."""
    if not state:
        raise ValueError("state is required")
    if prompt is not None and prompt not in PROMPT_VALUES:
        raise ValueError(f"Unsupported prompt: {prompt}")
    params = {
        "client_id": client_id,
        "scope": scope,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "state": state,
    }
    if code_challenge:
        params["code_challenge"] = code_challenge
        params["code_challenge_method"] = "S256"
    if login_hint:
        params["login_hint"] = login_hint
    if prompt:
        params["prompt"] = prompt
    if ui_locales:
        params["ui_locales"] = ui_locales
    return _join(authorization_endpoint, params)


def build_logout_url(
    *,
    end_session_endpoint: str,
    post_logout_redirect_uri: str,
    id_token_hint: str | None = None,
) -> str:
    """RP-initiated logout URL. The provider expects id_token_hint when we have one."""
    params = {"post_logout_redirect_uri": post_logout_redirect_uri}
    if id_token_hint:
        params["id_token_hint"] = id_token_hint
    return _join(end_session_endpoint, params)
