"""
Web client: sign-in / sign-up pages and the signed-in home page.

The session is the identity provider's token, kept in an httpOnly cookie and
verified on every request with the same verifier the API gate uses.
"""

import html
import logging
from typing import Optional

from fastapi import FastAPI, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from auth import AuthContext, verify_token
from config.settings import Settings, load_settings
from utils.logging_utils import configure_logging, log_auth_event
from utils.security_utils import WEB_CSP, SecurityHeadersMiddleware

logger = logging.getLogger(__name__)

AUTH_COOKIE = "auth_token"
SIGN_IN_PATH = "/sign-in"
SIGN_UP_PATH = "/sign-up"
HOME_PATH = "/"
CATCH_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

PAGE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{title}</title>
<style>body{{font-family:system-ui,sans-serif;max-width:28rem;margin:4rem auto;padding:0 1rem}}
.error{{color:#b91c1c}}</style>
</head>
<body>
{body}
</body>
</html>
"""


def render_page(title: str, body: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(PAGE.format(title=html.escape(title), body=body), status_code=status_code)


def _identity_mount(settings: Settings, component: str) -> str:
    # The identity provider's widget mounts here when its script is served
    return (
        f'<div id="{component}" data-publishable-key="{html.escape(settings.clerk_publishable_key)}"></div>'
    )


def sign_in_page(settings: Settings, error: Optional[str] = None, status_code: int = 200) -> HTMLResponse:
    error_html = f'<p class="error" role="alert">{html.escape(error)}</p>' if error else ""
    body = f"""<h1>Sign in</h1>
{error_html}
{_identity_mount(settings, "sign-in")}
<form method="post" action="{SIGN_IN_PATH}">
<label for="token">Session token</label>
<input id="token" name="token" type="password" autocomplete="off" required>
<button type="submit">Sign in</button>
</form>
<p>Don't have an account? <a href="{SIGN_UP_PATH}">Sign up</a></p>"""
    return render_page("Sign in", body, status_code=status_code)


def sign_up_page(settings: Settings) -> HTMLResponse:
    body = f"""<h1>Create your account</h1>
{_identity_mount(settings, "sign-up")}
<p>Already have an account? <a href="{SIGN_IN_PATH}">Sign in</a></p>"""
    return render_page("Create your account", body)


def home_page(auth: AuthContext) -> HTMLResponse:
    body = f"""<h1>Welcome</h1>
<p>Signed in as <strong>{html.escape(auth.user_id)}</strong>.</p>
<form method="post" action="/sign-out"><button type="submit">Sign out</button></form>"""
    return render_page("Home", body)


def get_session(request: Request) -> Optional[AuthContext]:
    token = request.cookies.get(AUTH_COOKIE)
    if not token:
        return None
    return verify_token(token, request.app.state.settings)


def create_web_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings)

    app = FastAPI(title="Template Web", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.settings = settings
    app.add_middleware(
        SecurityHeadersMiddleware,
        content_security_policy=WEB_CSP,
        enforce_https=settings.is_production,
    )

    @app.get(SIGN_IN_PATH, response_class=HTMLResponse)
    async def sign_in():
        return sign_in_page(settings)

    @app.post(SIGN_IN_PATH)
    async def submit_sign_in(token: str = Form(...)):
        auth = verify_token(token.strip(), settings)
        if auth is None:
            log_auth_event("sign_in", None, False)
            return sign_in_page(settings, error="Invalid or expired token", status_code=401)

        log_auth_event("sign_in", auth.user_id, True, session_id=auth.session_id)
        response = RedirectResponse(HOME_PATH, status_code=303)
        response.set_cookie(
            key=AUTH_COOKIE,
            value=token.strip(),
            httponly=True,
            secure=settings.is_production,
            samesite="lax",
            max_age=int(settings.access_token_ttl.total_seconds()),
        )
        return response

    @app.get(SIGN_UP_PATH, response_class=HTMLResponse)
    async def sign_up():
        return sign_up_page(settings)

    @app.post("/sign-out")
    async def sign_out():
        response = RedirectResponse(SIGN_IN_PATH, status_code=303)
        response.delete_cookie(AUTH_COOKIE)
        return response

    @app.get(HOME_PATH)
    async def home(request: Request):
        auth = get_session(request)
        if auth is None:
            return RedirectResponse(SIGN_IN_PATH, status_code=302)
        return home_page(auth)

    # Catch all - redirect to home
    @app.api_route("/{path:path}", methods=CATCH_ALL_METHODS)
    async def catch_all(path: str):
        return RedirectResponse(HOME_PATH, status_code=302)

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_web_app(), host="0.0.0.0", port=5173)
