"""
Security headers applied to every response
"""
from starlette.middleware.base import BaseHTTPMiddleware

# JSON-only API: nothing should ever be rendered or framed
API_CSP = "default-src 'none'; frame-ancestors 'none'; base-uri 'none'; form-action 'none'"

# Server-rendered pages: own origin only, inline styles for the page chrome
WEB_CSP = (
    "default-src 'self'; "
    "style-src 'self' 'unsafe-inline'; "
    "img-src 'self' data:; "
    "object-src 'none'; "
    "frame-ancestors 'none'; "
    "base-uri 'self'; "
    "form-action 'self';"
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses: CSP, HSTS, X-Frame-Options, X-Content-Type-Options"""

    def __init__(self, app, content_security_policy: str = API_CSP, enforce_https: bool = False):
        super().__init__(app)
        self.content_security_policy = content_security_policy
        self.enforce_https = enforce_https

    async def dispatch(self, request, call_next):
        response = await call_next(request)

        response.headers["Content-Security-Policy"] = self.content_security_policy

        # Only set where HTTPS is guaranteed (production)
        if self.enforce_https:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cross-Origin-Opener-Policy"] = "same-origin"

        return response
