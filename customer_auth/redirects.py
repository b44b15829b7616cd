"""
Redirect helpers: public origin behind proxies, same-origin redirect targets, login links.
"""
import logging
from urllib.parse import quote, urljoin, urlsplit

from fastapi import Request

logger = logging.getLogger(__name__)

LOGIN_START_PATH = "/api/customer-auth/start"


def public_base_url(request: Request) -> str:
    """Scheme://host as the browser sees it (honours X-Forwarded-Proto/Host from ngrok and proxies)."""
    proto = request.headers.get("x-forwarded-proto") or request.url.scheme
    host = request.headers.get("x-forwarded-host") or request.url.netloc
    return f"{proto}://{host}"


def safe_redirect_target(candidate: str | None, base_url: str) -> str | None:
    """Absolute URL for candidate if it resolves to the same origin as base_url, else None."""
    if not candidate:
        return None
    try:
        resolved = urljoin(f"{base_url}/", candidate)
        target = urlsplit(resolved)
        base = urlsplit(base_url)
    except ValueError:
        logger.warning("Invalid redirect target %r", candidate)
        return None
    if (target.scheme, target.netloc) != (base.scheme, base.netloc):
        logger.warning("Rejected cross-origin redirect target %r", candidate)
        return None
    return resolved


def build_login_redirect_url(destination: str) -> str:
    """Login link that brings the customer back to destination afterwards."""
    return f"{LOGIN_START_PATH}?redirect={quote(destination, safe='')}"
