"""Tests for state/PKCE generation and the authorization and logout URL builders."""
import re
from urllib.parse import parse_qs, urlsplit

import pytest

from customer_auth.pkce import build_authorize_url, build_logout_url, code_challenge_for, generate_pkce, generate_state


def _query(url: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


def _authorize_url(**overrides):
    kwargs = {
        "authorization_endpoint": "https://as.example/oauth/authorize",
        "client_id": "client1",
        "redirect_uri": "https://client.example/cb",
        "scope": "openid email customer-account-api:full",
        "state": "mystate",
    }
    kwargs.update(overrides)
    return build_authorize_url(**kwargs)


def test_generate_state_length():
    s = generate_state()
    assert len(s) >= 32
    assert re.match(r"^[A-Za-z0-9_-]+$", s)


def test_generate_state_is_unique():
    assert generate_state() != generate_state()


def test_generate_pkce_returns_verifier_and_challenge():
    pair = generate_pkce()
    assert 43 <= len(pair.verifier) <= 128
    assert re.match(r"^[A-Za-z0-9_-]+$", pair.verifier)
    assert re.match(r"^[A-Za-z0-9_-]+$", pair.challenge)
    assert len(pair.challenge) == 43  # base64url(SHA256 digest) no padding
    assert pair.challenge == code_challenge_for(pair.verifier)


def test_code_challenge_rfc7636_vector():
    # RFC 7636 appendix B
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
    assert code_challenge_for(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


def test_build_authorize_url_includes_required_params():
    url = _authorize_url()
    assert url.startswith("https://as.example/oauth/authorize?")
    params = _query(url)
    assert params["response_type"] == "code"
    assert params["client_id"] == "client1"
    assert params["redirect_uri"] == "https://client.example/cb"
    assert params["scope"] == "openid email customer-account-api:full"
    assert params["state"] == "mystate"


def test_build_authorize_url_without_challenge_has_no_pkce_params():
    params = _query(_authorize_url(code_challenge=None))
    assert "code_challenge" not in params
    assert "code_challenge_method" not in params


def test_build_authorize_url_with_challenge_uses_s256():
    params = _query(_authorize_url(code_challenge="xyz"))
    assert params["code_challenge"] == "xyz"
    assert params["code_challenge_method"] == "S256"


def test_build_authorize_url_optional_params():
    params = _query(_authorize_url(login_hint="a@b.com", prompt="login", ui_locales="vi"))
    assert params["login_hint"] == "a@b.com"
    assert params["prompt"] == "login"
    assert params["ui_locales"] == "vi"


def test_build_authorize_url_omits_unset_optional_params():
    params = _query(_authorize_url())
    assert "login_hint" not in params
    assert "prompt" not in params
    assert "ui_locales" not in params


def test_build_authorize_url_requires_state():
    with pytest.raises(ValueError):
        _authorize_url(state="")


def test_build_authorize_url_rejects_unknown_prompt():
    with pytest.raises(ValueError):
        _authorize_url(prompt="always")


def test_build_authorize_url_appends_to_existing_query():
    url = _authorize_url(authorization_endpoint="https://as.example/authorize?locale=en")
    assert url.startswith("https://as.example/authorize?locale=en&")
    assert _query(url)["state"] == "mystate"


def test_build_logout_url_with_id_token_hint():
    url = build_logout_url(
        end_session_endpoint="https://as.example/logout",
        post_logout_redirect_uri="https://store.example/api/customer-auth/logout/callback",
        id_token_hint="id.token.value",
    )
    params = _query(url)
    assert url.startswith("https://as.example/logout?")
    assert params["post_logout_redirect_uri"] == "https://store.example/api/customer-auth/logout/callback"
    assert params["id_token_hint"] == "id.token.value"


def test_build_logout_url_without_id_token_hint():
    url = build_logout_url(end_session_endpoint="https://as.example/logout", post_logout_redirect_uri="https://s/")
    assert "id_token_hint" not in _query(url)
