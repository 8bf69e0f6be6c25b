"""
Coh Music Site - Admin Session Auth

Single admin account using signed cookies.  The email and password are
read from environment variables (ADMIN_EMAIL / ADMIN_PASSWORD).

The public site is open to everyone.  A session is needed for:
    - every ``/admin`` page (redirected to ``/login``)
    - every non-GET ``/api/*`` request (401), except the public
      newsletter signup ``POST /api/newsletter``
    - reading the subscriber list and its CSV export
"""

import hashlib
import hmac
import html
import json
import time
from typing import Any

from fastapi import Request, Response
from fastapi.responses import HTMLResponse

from coh_music.config import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    ADMIN_ROLE,
    SECRET_KEY,
    SESSION_COOKIE_NAME,
    SESSION_MAX_AGE,
    SITE_NAME,
)

# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def _sign(payload: str) -> str:
    """Create an HMAC-SHA256 signature for a payload string."""
    return hmac.new(
        SECRET_KEY.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def _create_session_cookie(email: str) -> str:
    """Create a signed session cookie value."""
    data = json.dumps(
        {
            "user": email,
            "role": ADMIN_ROLE,
            "ts": int(time.time()),
        }
    )
    sig = _sign(data)
    return f"{data}|{sig}"


def _parse_session_cookie(cookie_value: str) -> dict[str, Any] | None:
    """Parse and verify a session cookie.  Returns the session dict or None."""
    if not cookie_value or "|" not in cookie_value:
        return None

    data_part, sig_part = cookie_value.rsplit("|", 1)
    try:
        if not hmac.compare_digest(sig_part, _sign(data_part)):
            return None
        session = json.loads(data_part)
    except (TypeError, ValueError):
        return None
    if not isinstance(session, dict):
        return None

    # Check expiry
    created = session.get("ts", 0)
    if not isinstance(created, (int, float)) or time.time() - created > SESSION_MAX_AGE:
        return None

    if session.get("role") != ADMIN_ROLE:
        return None

    return session


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_current_user(request: Request) -> str | None:
    """Return the logged-in admin email, or None if not authenticated."""
    cookie = request.cookies.get(SESSION_COOKIE_NAME, "")
    session = _parse_session_cookie(cookie)
    if session:
        return session.get("user")
    return None


def is_authenticated(request: Request) -> bool:
    """Check whether the current request has a valid admin session."""
    return get_current_user(request) is not None


def set_session_cookie(response: Response, email: str) -> None:
    """Set the signed session cookie on a response."""
    value = _create_session_cookie(email)
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=value,
        max_age=SESSION_MAX_AGE,
        httponly=True,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    """Remove the session cookie."""
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
    )


# ---------------------------------------------------------------------------
# Auth check
# ---------------------------------------------------------------------------

# Writes anyone may make
PUBLIC_WRITES = {
    ("POST", "/api/newsletter"),
}

# Reads that expose private data
PRIVATE_READS = {
    "/api/newsletter",
    "/api/newsletter/csv",
}


def _normalize_path(path: str) -> str:
    if len(path) > 1 and path.endswith("/"):
        return path.rstrip("/")
    return path


def is_protected(method: str, path: str) -> bool:
    """Return True if *method* + *path* needs an admin session."""
    path = _normalize_path(path)
    method = method.upper()

    if path == "/admin" or path.startswith("/admin/"):
        return True

    if not path.startswith("/api/"):
        return False

    if method in ("GET", "HEAD", "OPTIONS"):
        return path in PRIVATE_READS

    return (method, path) not in PUBLIC_WRITES


def auth_required(request: Request) -> bool:
    """
    Return True if this request requires auth and the user is NOT logged in.

    If ADMIN_PASSWORD is empty, auth is disabled entirely (always returns False).
    """
    if not ADMIN_PASSWORD:
        # Auth disabled, no password configured
        return False

    if not is_protected(request.method, request.url.path):
        return False

    return not is_authenticated(request)


def verify_credentials(email: str, password: str) -> bool:
    """Verify login credentials against the configured values."""
    if not ADMIN_PASSWORD:
        return False

    user_ok = hmac.compare_digest(email.strip().lower(), ADMIN_EMAIL.lower())
    pass_ok = hmac.compare_digest(password, ADMIN_PASSWORD)
    return user_ok and pass_ok


# ---------------------------------------------------------------------------
# Login page HTML
# ---------------------------------------------------------------------------

LOGIN_PAGE_HTML = """\
<!doctype html>
<html lang="en">
<head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>Admin Login · %(site_name)s</title>
    <link rel="stylesheet" href="/static/css/site.css" />
</head>
<body class="login-body">
    <div class="login-card">
        <div class="login-header">
            <span class="eyebrow">Admin</span>
            <h1>%(site_name)s</h1>
            <p>Sign in to manage site content</p>
        </div>

        %(error_html)s

        <form method="POST" action="/login">
            <input type="hidden" name="next" value="%(next_url)s" />
            <div class="form-group">
                <label for="email">Email</label>
                <input
                    type="email"
                    id="email"
                    name="email"
                    placeholder="admin@example.com"
                    autocomplete="username"
                    value="%(prefill_email)s"
                    required
                    autofocus
                />
            </div>

            <div class="form-group">
                <label for="password">Password</label>
                <input
                    type="password"
                    id="password"
                    name="password"
                    autocomplete="current-password"
                    required
                />
            </div>

            <button type="submit" class="button primary">Sign In</button>
        </form>
    </div>
</body>
</html>
"""


def safe_next_url(value: str | None) -> str:
    """Only allow redirects back into the site."""
    if value and value.startswith("/") and not value.startswith("//"):
        return value
    return "/admin"


def render_login_page(
    error: str = "", prefill_email: str = "", next_url: str = "/admin"
) -> HTMLResponse:
    """Render the login page with an optional error message."""
    error_html = ""
    if error:
        error_html = f'<div class="error-msg">{html.escape(error)}</div>'

    page = LOGIN_PAGE_HTML % {
        "site_name": html.escape(SITE_NAME),
        "error_html": error_html,
        "prefill_email": html.escape(prefill_email, quote=True),
        "next_url": html.escape(safe_next_url(next_url), quote=True),
    }
    return HTMLResponse(content=page, status_code=401 if error else 200)
