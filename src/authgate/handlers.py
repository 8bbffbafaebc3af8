# Pluggable handler registry for the authorization engine.
# Created: 2026-10-19
#
# Every hook is optional (None disables the feature) except client_info,
# user_authorization and password_authorization, which default to
# Basic-auth parsing and deny-everything respectively.

from __future__ import annotations

import base64
import binascii
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from starlette.requests import Request
from starlette.responses import Response

from authgate.errors import AccessDeniedError, ErrorResponse, InvalidClientError
from authgate.models import GrantType
from authgate.protocol import TokenInfoProtocol
from authgate.request import form_values

ClientInfoHandler = Callable[[Request], Awaitable[tuple[str, str]]]
ClientAuthorizedHandler = Callable[[str, GrantType], Awaitable[bool]]
ClientScopeHandler = Callable[[str, str], Awaitable[bool]]
UserAuthorizationHandler = Callable[[Request], Awaitable["str | Response"]]
PasswordAuthorizationHandler = Callable[[str, str], Awaitable[str]]
CheckUserPermHandler = Callable[[str, str], Awaitable[None]]
RefreshingScopeHandler = Callable[[str, str], Awaitable[bool]]
AccessTokenExpHandler = Callable[[Request], Awaitable["timedelta | None"]]
AuthorizeScopeHandler = Callable[[Request], Awaitable[str]]
ExtensionFieldsHandler = Callable[[TokenInfoProtocol], dict[str, Any]]
ResponseErrorHandler = Callable[[ErrorResponse], None]
InternalErrorHandler = Callable[[BaseException], "ErrorResponse | None"]


async def client_basic_handler(request: Request) -> tuple[str, str]:
    """Read client credentials from an HTTP Basic ``Authorization`` header."""
    auth = request.headers.get("Authorization", "")
    scheme, _, encoded = auth.partition(" ")
    if scheme.lower() != "basic" or not encoded:
        raise InvalidClientError("missing basic credentials")
    try:
        raw = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise InvalidClientError("malformed basic credentials") from exc
    client_id, sep, client_secret = raw.partition(":")
    if not sep:
        raise InvalidClientError("malformed basic credentials")
    return client_id, client_secret


async def client_form_handler(request: Request) -> tuple[str, str]:
    """Read ``client_id`` / ``client_secret`` from the request form."""
    values = await form_values(request)
    client_id = values.get("client_id", "")
    if not client_id:
        raise InvalidClientError("missing client_id")
    return client_id, values.get("client_secret", "")


async def deny_user_authorization(request: Request) -> str:
    raise AccessDeniedError("no user authorization handler configured")


async def deny_password_authorization(username: str, password: str) -> str:
    raise AccessDeniedError("no password authorization handler configured")


@dataclass(frozen=True)
class Handlers:
    """Capability functions supplied by the embedding application.

    Hook contracts:

    - ``client_info(request) -> (client_id, client_secret)``
    - ``client_authorized(client_id, grant_type) -> bool``
    - ``client_scope(client_id, scope) -> bool``
    - ``user_authorization(request) -> user_id | Response``; returning a
      ``Response`` (a login page, a redirect) stops the authorize flow and
      that response is sent as-is
    - ``password_authorization(username, password) -> user_id``; an empty
      user id means the credentials were rejected
    - ``check_user_permission(user_id, client_id)``; raise
      ``NoAppPermissionError`` to refuse
    - ``refreshing_scope(new_scope, old_scope) -> bool``
    - ``access_token_exp(request) -> timedelta | None``
    - ``authorize_scope(request) -> scope``; empty keeps the requested scope
    - ``extension_fields(token_info) -> dict`` (sync)
    - ``response_error(error_response)``; mutate in place (sync)
    - ``internal_error(exc) -> ErrorResponse | None`` (sync)
    """

    client_info: ClientInfoHandler = client_basic_handler
    user_authorization: UserAuthorizationHandler = deny_user_authorization
    password_authorization: PasswordAuthorizationHandler = deny_password_authorization
    client_authorized: ClientAuthorizedHandler | None = None
    client_scope: ClientScopeHandler | None = None
    check_user_permission: CheckUserPermHandler | None = None
    refreshing_scope: RefreshingScopeHandler | None = None
    access_token_exp: AccessTokenExpHandler | None = None
    authorize_scope: AuthorizeScopeHandler | None = None
    extension_fields: ExtensionFieldsHandler | None = None
    response_error: ResponseErrorHandler | None = None
    internal_error: InternalErrorHandler | None = None
