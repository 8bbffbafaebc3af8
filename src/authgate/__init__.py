"""authgate - OAuth2 authorization server protocol engine.

Validates authorization and token requests, dispatches them through the
grant-type flows, builds redirect URIs and token responses, and maps failures
onto the OAuth2 error vocabulary. Storage and generation of codes and tokens
belong to a pluggable token manager (see ``authgate.protocol``).
"""

from authgate.config import Config, Settings, get_settings
from authgate.errors import ErrorKind, ErrorResponse, NoAppPermissionError, OAuth2Error
from authgate.handlers import Handlers, client_basic_handler, client_form_handler
from authgate.models import AuthorizeRequest, GrantType, ResponseType, TokenGenerateRequest
from authgate.server import AuthorizationServer

__all__ = [
    "AuthorizationServer",
    "AuthorizeRequest",
    "Config",
    "ErrorKind",
    "ErrorResponse",
    "GrantType",
    "Handlers",
    "NoAppPermissionError",
    "OAuth2Error",
    "ResponseType",
    "Settings",
    "TokenGenerateRequest",
    "client_basic_handler",
    "client_form_handler",
    "get_settings",
]
