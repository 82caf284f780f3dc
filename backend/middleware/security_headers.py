"""
Security headers middleware

The API serves JSON only (email snapshots included), so responses forbid
framing, sniffing and any active content.
"""

from flask import request


def set_security_headers(response):
    """Apply security headers to all responses.

    Implements:
    - Content Security Policy denying all active content
    - HTTP Strict Transport Security (HSTS) on secure requests
    - X-Frame-Options, X-Content-Type-Options, Referrer-Policy
    - Cache-Control: no-store (responses may contain email bodies)

    Args:
        response: Flask response object

    Returns:
        Modified response with security headers
    """
    response.headers["Content-Security-Policy"] = (
        "default-src 'none'; frame-ancestors 'none'; base-uri 'none'"
    )

    if request.is_secure:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "no-referrer"
    response.headers["Cache-Control"] = "no-store"

    return response


def init_app(app):
    """Register security headers middleware with Flask app.

    Args:
        app: Flask application instance
    """

    @app.after_request
    def apply_security_headers(response):
        return set_security_headers(response)
