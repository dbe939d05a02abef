"""HTTP API."""

from pantry_auth.api.routes import auth_error_handler, router

__all__ = ["auth_error_handler", "router"]
