"""
Customer account auth routes for the storefront.
Start login, handle the provider callback, log out, and expose the current session
to client-side code (customer identity only; tokens never leave httpOnly cookies).
"""
import html
import logging
import secrets

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from customer_auth import cookies as codec
from customer_auth.config import CustomerAuthConfig
from customer_auth.errors import CustomerAuthError, NetworkError, RequestTimeoutError
from customer_auth.manager import CustomerSessionManager
from customer_auth.redirects import build_login_redirect_url, public_base_url, safe_redirect_target

logger = logging.getLogger(__name__)

app = FastAPI(title="Customer Auth", version="0.1.0")

SESSION_CACHE_CONTROL = "private, max-age=5, stale-while-revalidate=10"

_manager: CustomerSessionManager | None = None


def get_manager() -> CustomerSessionManager:
    """Process-wide manager built from the environment on first use."""
    global _manager
    if _manager is None:
        _manager = CustomerSessionManager(CustomerAuthConfig.from_env())
    return _manager


def _error_page(title: str, message: str, status_code: int) -> HTMLResponse:
    return HTMLResponse(
        f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{html.escape(title)}</title></head>
<body>
  <h1>{html.escape(title)}</h1>
  <p>{html.escape(message)}</p>
  <p><a href="/">Home</a></p>
</body>
</html>""",
        status_code=status_code,
    )


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "customer_auth"}


@app.get("/api/customer-auth/start")
def start_login(
    redirect: str | None = None,
    email: str | None = None,
    manager: CustomerSessionManager = Depends(get_manager),
):
    """
    Generate state (and PKCE for public clients); keep them in short-lived cookies;
    redirect to the provider's authorization endpoint.
    """
    try:
        login = manager.start_login(login_hint=email, prompt="login")
    except CustomerAuthError as e:
        logger.exception("Failed to build customer login URL")
        return _error_page("Login unavailable", str(e), status_code=502)

    response = RedirectResponse(url=login.url, status_code=302)
    flow = codec.CookieOptions(secure=manager.config.production, max_age=codec.FLOW_MAX_AGE)
    response.set_cookie(codec.OAUTH_STATE_COOKIE, login.state, **flow.as_kwargs())
    if redirect:
        response.set_cookie(f"{codec.OAUTH_REDIRECT_COOKIE_PREFIX}{login.state}", redirect, **flow.as_kwargs())
    if login.pkce:
        response.set_cookie(codec.OAUTH_PKCE_COOKIE, login.pkce.verifier, **flow.as_kwargs())
    return response


@app.get("/api/customer-auth/callback")
def callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    manager: CustomerSessionManager = Depends(get_manager),
):
    """
    Handle the provider redirect. The state cookie is single use: it is deleted whatever
    the outcome. Any failure clears the session cookies.
    """
    base_url = public_base_url(request)
    expected_state = request.cookies.get(codec.OAUTH_STATE_COOKIE)
    code_verifier = request.cookies.get(codec.OAUTH_PKCE_COOKIE)

    redirect_url = f"{base_url}/account"
    redirect_cookie = f"{codec.OAUTH_REDIRECT_COOKIE_PREFIX}{state}" if state else None
    if redirect_cookie:
        redirect_url = safe_redirect_target(request.cookies.get(redirect_cookie), base_url) or redirect_url

    response = RedirectResponse(url=redirect_url, status_code=302)
    response.delete_cookie(codec.OAUTH_STATE_COOKIE, path="/")
    response.delete_cookie(codec.OAUTH_PKCE_COOKIE, path="/")
    if redirect_cookie:
        response.delete_cookie(redirect_cookie, path="/")

    if error:
        logger.warning("Customer login returned error=%s", error)
        codec.apply_cookies(response, manager.clear())
        return response

    state_ok = bool(state and expected_state) and secrets.compare_digest(state.encode(), expected_state.encode())
    if not code or not state_ok:
        logger.warning("Customer login callback rejected: missing code or state mismatch")
        codec.apply_cookies(response, manager.clear())
        return response

    try:
        result = manager.complete_login(code, code_verifier=code_verifier)
    except CustomerAuthError:
        logger.exception("Customer account callback failed")
        codec.apply_cookies(response, manager.clear())
        return response

    codec.apply_cookies(response, manager.encode(result.session, result.id_token))
    return response


@app.get("/api/customer-auth/logout")
def logout(request: Request, manager: CustomerSessionManager = Depends(get_manager)):
    """
    Redirect to the provider's end-session endpoint. Cookies are kept until the
    provider sends the browser back to the logout callback.
    """
    base_url = public_base_url(request)
    callback_url = f"{base_url}/api/customer-auth/logout/callback"
    id_token = codec.read_id_token(request.cookies)
    if not id_token:
        logger.warning("No id_token cookie found; provider logout may not complete")
    try:
        url = manager.logout_url(callback_url, id_token)
    except CustomerAuthError:
        logger.exception("Failed to build logout URL")
        return RedirectResponse(url=callback_url, status_code=302)
    return RedirectResponse(url=url, status_code=302)


@app.get("/api/customer-auth/logout/callback")
def logout_callback(request: Request):
    """Called by the provider after logout: clear every session cookie and go home."""
    base_url = public_base_url(request)
    response = RedirectResponse(url=f"{base_url}/", status_code=302)
    codec.apply_cookies(response, codec.encode_empty(secure=base_url.startswith("https://")))
    return response


@app.get("/api/auth/session")
def session_info(request: Request, manager: CustomerSessionManager = Depends(get_manager)):
    """Current customer for client-side hydration. Refreshes a stale session and persists it."""
    try:
        read = manager.current_session(request.cookies)
    except (RequestTimeoutError, NetworkError) as e:
        logger.warning("Session refresh could not reach the provider: %s", e)
        return JSONResponse(
            {"authenticated": False, "session": None, "error": "Identity provider unavailable", "retryable": True},
            status_code=503,
            headers={"Cache-Control": "no-store"},
        )
    except CustomerAuthError:
        logger.exception("Error reading customer session")
        return JSONResponse(
            {"authenticated": False, "session": None, "error": "Failed to read session"},
            status_code=500,
            headers={"Cache-Control": "no-store"},
        )

    if read.session is None:
        body = {"authenticated": False, "session": None}
    else:
        session = read.session.to_dict()
        body = {
            "authenticated": True,
            "session": {"expiresAt": session["expiresAt"], "customer": session["customer"]},
        }
    response = JSONResponse(body, headers={"Cache-Control": SESSION_CACHE_CONTROL})
    if read.cookies:
        codec.apply_cookies(response, read.cookies)
    return response


@app.get("/account", response_class=HTMLResponse)
def account(request: Request, manager: CustomerSessionManager = Depends(get_manager)):
    """Protected page: anonymous customers are sent to login and brought back here."""
    try:
        read = manager.current_session(request.cookies)
    except (RequestTimeoutError, NetworkError):
        return _error_page("Account", "The login service is unreachable. Please try again.", status_code=503)
    except CustomerAuthError:
        logger.exception("Error reading customer session for account page")
        return _error_page("Account", "Could not load your account. Please try again later.", status_code=502)
    if read.session is None:
        response = RedirectResponse(url=build_login_redirect_url("/account"), status_code=302)
    else:
        customer = read.session.customer
        name = " ".join(p for p in (customer.first_name, customer.last_name) if p) or customer.email
        response = HTMLResponse(
            f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Account</title></head>
<body>
  <h1>Account</h1>
  <p>Signed in as {html.escape(name)}</p>
  <p><a href="/api/customer-auth/logout">Log out</a></p>
</body>
</html>"""
        )
    if read.cookies:
        codec.apply_cookies(response, read.cookies)
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "customer_auth.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
