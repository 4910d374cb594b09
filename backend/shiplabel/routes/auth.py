"""
ShipLabel Backend - Login, Dashboard and Logout Routes
========================================================

What:  The session-gated HTML surface around the label generator.
How:   Small inline HTML pages; credentials checked by AuthService; the
       session marker lives in Starlette's signed session cookie.

Route Inventory:
    GET  /           login page (redirects to /dashboard when logged in)
    POST /login      check credentials, set session marker
    GET  /dashboard  label form (requires login)
    POST /logout     clear session
"""

import html
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from shiplabel.dependencies import (
    SESSION_LOGGED_IN,
    SESSION_USER_ID,
    get_auth_service,
    is_logged_in,
    require_session,
)
from shiplabel.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])

LOGIN_FAILED = "Invalid username or password"

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
</head>
<body>
{body}
</body>
</html>
"""

_LOGIN_BODY = """<h1>Delivery Label Generator</h1>
{error}<form method="post" action="/login">
  <label>Username <input type="text" name="username" required></label>
  <label>Password <input type="password" name="password" required></label>
  <button type="submit">Log in</button>
</form>"""

_DASHBOARD_BODY = """<h1>Create Delivery Label</h1>
<form method="post" action="/generate-label">
  <fieldset>
    <legend>Sender</legend>
    <label>Name <input type="text" name="senderName" required></label>
    <label>Address <textarea name="senderAddress"></textarea></label>
  </fieldset>
  <fieldset>
    <legend>Receiver</legend>
    <label>Name <input type="text" name="receiverName" required></label>
    <label>Address <textarea name="receiverAddress"></textarea></label>
  </fieldset>
  <button type="submit">Generate Label</button>
</form>
<form method="post" action="/logout">
  <button type="submit">Log out</button>
</form>"""


def render_login(error: Optional[str] = None) -> str:
    error_html = f'<p class="error">{html.escape(error)}</p>\n' if error else ""
    return _PAGE.format(title="Login", body=_LOGIN_BODY.format(error=error_html))


def render_dashboard() -> str:
    return _PAGE.format(title="Dashboard", body=_DASHBOARD_BODY)


@router.get("/", response_class=HTMLResponse, summary="Login page")
async def login_page(request: Request):
    if is_logged_in(request):
        return RedirectResponse("/dashboard", status_code=303)
    return HTMLResponse(render_login())


@router.post("/login", response_class=HTMLResponse, summary="Log in")
async def login(
    request: Request,
    username: str = Form(default=""),
    password: str = Form(default=""),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Check credentials and start a session.

    Success: session marker set, 303 to /dashboard.
    Failure: login page with an error message, HTTP 401.
    """
    user = await auth.authenticate(username, password)
    if user is None:
        return HTMLResponse(render_login(LOGIN_FAILED), status_code=401)

    request.session[SESSION_LOGGED_IN] = True
    request.session[SESSION_USER_ID] = user.id
    logger.info("User %s logged in", user.username)
    return RedirectResponse("/dashboard", status_code=303)


@router.get("/dashboard", response_class=HTMLResponse, summary="Label form")
async def dashboard(_user_id: Optional[int] = Depends(require_session)):
    return HTMLResponse(render_dashboard())


@router.post("/logout", summary="Log out")
async def logout(request: Request):
    request.session.clear()
    return RedirectResponse("/", status_code=303)
