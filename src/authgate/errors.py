# OAuth2 error kinds, exceptions and the static description/status tables.
# Created: 2026-10-19
#
# Protocol errors follow RFC 6749 section 4.1.2.1 / 5.2. Manager-level kinds
# (invalid code, expired refresh token, ...) are raised by token managers and
# translated by the engine; they are absent from the public tables.

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType


class ErrorKind(str, Enum):
    """Machine-readable error identifiers (the ``error`` response field)."""

    INVALID_REQUEST = "invalid_request"
    UNAUTHORIZED_CLIENT = "unauthorized_client"
    ACCESS_DENIED = "access_denied"
    UNSUPPORTED_RESPONSE_TYPE = "unsupported_response_type"
    INVALID_SCOPE = "invalid_scope"
    SERVER_ERROR = "server_error"
    TEMPORARILY_UNAVAILABLE = "temporarily_unavailable"
    INVALID_CLIENT = "invalid_client"
    INVALID_GRANT = "invalid_grant"
    UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"

    # Token manager kinds
    INVALID_REDIRECT_URI = "invalid_redirect_uri"
    INVALID_AUTHORIZE_CODE = "invalid_authorize_code"
    INVALID_ACCESS_TOKEN = "invalid_access_token"
    EXPIRED_ACCESS_TOKEN = "expired_access_token"
    INVALID_REFRESH_TOKEN = "invalid_refresh_token"
    EXPIRED_REFRESH_TOKEN = "expired_refresh_token"

    def __str__(self) -> str:
        return self.value


DESCRIPTIONS = MappingProxyType(
    {
        ErrorKind.INVALID_REQUEST: (
            "The request is missing a required parameter, includes an invalid parameter value, "
            "includes a parameter more than once, or is otherwise malformed"
        ),
        ErrorKind.UNAUTHORIZED_CLIENT: (
            "The client is not authorized to request an authorization code using this method"
        ),
        ErrorKind.ACCESS_DENIED: "The resource owner or authorization server denied the request",
        ErrorKind.UNSUPPORTED_RESPONSE_TYPE: (
            "The authorization server does not support obtaining an authorization code using this method"
        ),
        ErrorKind.INVALID_SCOPE: "The requested scope is invalid, unknown, or malformed",
        ErrorKind.SERVER_ERROR: (
            "The authorization server encountered an unexpected condition that prevented it "
            "from fulfilling the request"
        ),
        ErrorKind.TEMPORARILY_UNAVAILABLE: (
            "The authorization server is currently unable to handle the request due to a "
            "temporary overloading or maintenance of the server"
        ),
        ErrorKind.INVALID_CLIENT: "Client authentication failed",
        ErrorKind.INVALID_GRANT: (
            "The provided authorization grant (e.g., authorization code, resource owner credentials) "
            "or refresh token is invalid, expired, revoked, does not match the redirection URI used "
            "in the authorization request, or was issued to another client"
        ),
        ErrorKind.UNSUPPORTED_GRANT_TYPE: (
            "The authorization grant type is not supported by the authorization server"
        ),
    }
)

STATUS_CODES = MappingProxyType(
    {
        ErrorKind.INVALID_REQUEST: 400,
        ErrorKind.UNAUTHORIZED_CLIENT: 401,
        ErrorKind.ACCESS_DENIED: 403,
        ErrorKind.UNSUPPORTED_RESPONSE_TYPE: 401,
        ErrorKind.INVALID_SCOPE: 400,
        ErrorKind.SERVER_ERROR: 500,
        ErrorKind.TEMPORARILY_UNAVAILABLE: 503,
        ErrorKind.INVALID_CLIENT: 401,
        ErrorKind.INVALID_GRANT: 401,
        ErrorKind.UNSUPPORTED_GRANT_TYPE: 401,
    }
)


class OAuth2Error(Exception):
    """Base class for every OAuth2 error the engine raises or translates.

    ``kind`` identifies the error for table lookup; ``context`` is free-form
    detail for logs and never reaches the client.
    """

    kind: ErrorKind = ErrorKind.SERVER_ERROR

    def __init__(self, context: str = ""):
        self.context = context
        super().__init__(context or self.kind.value)

    def __repr__(self) -> str:
        if self.context:
            return f"{self.__class__.__name__}({self.context!r})"
        return f"{self.__class__.__name__}()"


class InvalidRequestError(OAuth2Error):
    kind = ErrorKind.INVALID_REQUEST


class UnauthorizedClientError(OAuth2Error):
    kind = ErrorKind.UNAUTHORIZED_CLIENT


class AccessDeniedError(OAuth2Error):
    kind = ErrorKind.ACCESS_DENIED


class UnsupportedResponseTypeError(OAuth2Error):
    kind = ErrorKind.UNSUPPORTED_RESPONSE_TYPE


class InvalidScopeError(OAuth2Error):
    kind = ErrorKind.INVALID_SCOPE


class ServerError(OAuth2Error):
    kind = ErrorKind.SERVER_ERROR


class TemporarilyUnavailableError(OAuth2Error):
    kind = ErrorKind.TEMPORARILY_UNAVAILABLE


class InvalidClientError(OAuth2Error):
    kind = ErrorKind.INVALID_CLIENT


class InvalidGrantError(OAuth2Error):
    kind = ErrorKind.INVALID_GRANT


class UnsupportedGrantTypeError(OAuth2Error):
    kind = ErrorKind.UNSUPPORTED_GRANT_TYPE


class InvalidRedirectURIError(OAuth2Error):
    kind = ErrorKind.INVALID_REDIRECT_URI


class InvalidAuthorizeCodeError(OAuth2Error):
    kind = ErrorKind.INVALID_AUTHORIZE_CODE


class InvalidAccessTokenError(OAuth2Error):
    kind = ErrorKind.INVALID_ACCESS_TOKEN


class ExpiredAccessTokenError(OAuth2Error):
    kind = ErrorKind.EXPIRED_ACCESS_TOKEN


class InvalidRefreshTokenError(OAuth2Error):
    kind = ErrorKind.INVALID_REFRESH_TOKEN


class ExpiredRefreshTokenError(OAuth2Error):
    kind = ErrorKind.EXPIRED_REFRESH_TOKEN


class NoAppPermissionError(Exception):
    """The user is authenticated but has no permission to use the client app.

    This sits outside the OAuth2 error model: the authorize flow answers it
    with a redirect to an application page instead of the client's
    redirect URI, and the token flow hands it back to the caller untouched.
    """

    def __init__(self, message: str = "no permission to the app", redirect_path: str | None = None):
        self.message = message
        self.redirect_path = redirect_path
        super().__init__(message)


def root_error(exc: BaseException) -> OAuth2Error | None:
    """Return the first ``OAuth2Error`` along *exc* and its ``__cause__`` chain."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, OAuth2Error):
            return current
        seen.add(id(current))
        current = current.__cause__
    return None


@dataclass
class ErrorResponse:
    """Mutable error response handed to the response-error hook."""

    error: ErrorKind | str | None = None
    error_code: int = 0
    description: str = ""
    uri: str = ""
    status_code: int = 0
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_kind(cls, kind: ErrorKind) -> ErrorResponse:
        return cls(
            error=kind,
            description=DESCRIPTIONS.get(kind, ""),
            status_code=STATUS_CODES.get(kind, 0),
        )
