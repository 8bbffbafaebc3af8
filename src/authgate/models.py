# Request-scoped data models for the authorization engine.
# Created: 2026-10-19

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from starlette.requests import Request


class ResponseType(str, Enum):
    """Authorization endpoint response types."""

    CODE = "code"
    TOKEN = "token"

    def __str__(self) -> str:
        return self.value


class GrantType(str, Enum):
    """Token endpoint grant types."""

    AUTHORIZATION_CODE = "authorization_code"
    PASSWORD = "password"
    CLIENT_CREDENTIALS = "client_credentials"
    REFRESHING = "refresh_token"
    IMPLICIT = "__implicit"  # never sent on the wire; used for client authorization checks

    def __str__(self) -> str:
        return self.value


@dataclass
class AuthorizeRequest:
    """A validated authorization request.

    ``user_id``, ``scope`` and ``access_token_exp`` are filled in by the
    user, scope and expiry handlers after validation.
    """

    redirect_uri: str
    response_type: ResponseType
    client_id: str
    state: str = ""
    scope: str = ""
    user_id: str = ""
    access_token_exp: timedelta | None = None
    request: Request | None = None


@dataclass
class TokenGenerateRequest:
    """Everything the token manager needs to mint, exchange or refresh a token."""

    client_id: str = ""
    client_secret: str = ""
    user_id: str = ""
    redirect_uri: str = ""
    code: str = ""
    refresh: str = ""
    scope: str = ""
    access_token_exp: timedelta | None = None
    request: Request | None = None
