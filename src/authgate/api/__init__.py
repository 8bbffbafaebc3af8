# HTTP surface for the authorization engine.
# Created: 2026-10-19

from authgate.api.oauth2 import get_oauth_server, reset_oauth_server, router, set_oauth_server

__all__ = ["router", "get_oauth_server", "set_oauth_server", "reset_oauth_server"]
