"""
Security headers middleware.

The API answers with JSON or with document downloads, never with HTML, so
the content policy denies everything. Downloads additionally run sandboxed
and stay same-origin; uploaded files are untrusted content. Meeting item
data is not cacheable.

HSTS is sent when ``SECURITY_HSTS_SECONDS`` is positive (off in development).

Usage:
    from app.middleware.security_headers import init_security_headers
    init_security_headers(app)
"""

API_CSP = "default-src 'none'; frame-ancestors 'none'"
DOWNLOAD_CSP = "default-src 'none'; sandbox"


def _is_download(response):
    return response.headers.get("Content-Disposition", "").startswith("attachment")


def init_security_headers(app):
    """Register the after_request hook that sets response security headers."""
    hsts_seconds = int(app.config.get("SECURITY_HSTS_SECONDS") or 0)

    @app.after_request
    def _add_security_headers(response):
        headers = response.headers
        if _is_download(response):
            headers["Content-Security-Policy"] = DOWNLOAD_CSP
            headers["Cross-Origin-Resource-Policy"] = "same-origin"
        else:
            headers.setdefault("Content-Security-Policy", API_CSP)

        headers["Cache-Control"] = "no-store"
        headers.setdefault("X-Content-Type-Options", "nosniff")
        headers.setdefault("X-Frame-Options", "DENY")
        headers.setdefault("Referrer-Policy", "no-referrer")
        if hsts_seconds > 0:
            headers.setdefault(
                "Strict-Transport-Security", f"max-age={hsts_seconds}; includeSubDomains"
            )
        headers.pop("Server", None)
        return response
