"""Middleware package for response hardening."""

from middleware.security_headers import init_app, set_security_headers

__all__ = ["init_app", "set_security_headers"]
