# OAuth2 router - authorize, token, tokeninfo.
# Created: 2026-10-19

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from authgate.api.schemas import ErrorBody, TokenInfoResponse, TokenResponse
from authgate.errors import (
    ExpiredAccessTokenError,
    InvalidAccessTokenError,
    NoAppPermissionError,
    OAuth2Error,
)
from authgate.server import AuthorizationServer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["OAuth2"])

_ERROR_RESPONSES = {
    400: {"model": ErrorBody},
    401: {"model": ErrorBody},
    403: {"model": ErrorBody},
    500: {"model": ErrorBody},
}


@router.api_route("/oauth/authorize", methods=["GET", "POST"], responses=_ERROR_RESPONSES)
async def authorize(request: Request) -> Response:
    """Authorization endpoint (RFC 6749 section 3.1)."""
    server = get_oauth_server()
    try:
        return await server.handle_authorize_request(request)
    except OAuth2Error as exc:
        # Raised before a redirect target was established
        logger.info("Rejected authorization request: %r", exc)
        return server.token_error(exc)


@router.api_route(
    "/oauth/token",
    methods=["GET", "POST"],
    responses={200: {"model": TokenResponse}, **_ERROR_RESPONSES},
)
async def token(request: Request) -> Response:
    """Token endpoint (RFC 6749 section 3.2)."""
    server = get_oauth_server()
    try:
        _, response = await server.handle_token_request(request)
    except NoAppPermissionError as exc:
        return JSONResponse(status_code=403, content={"detail": exc.message})
    return response


@router.get("/oauth/tokeninfo", response_model=TokenInfoResponse)
async def tokeninfo(request: Request):
    """Describe the bearer token presented with the request."""
    server = get_oauth_server()
    try:
        ti = await server.validate_bearer_token(request)
    except (InvalidAccessTokenError, ExpiredAccessTokenError) as exc:
        return JSONResponse(
            status_code=401,
            content={"error": "invalid_token", "error_description": str(exc)},
            headers={"WWW-Authenticate": 'Bearer error="invalid_token"'},
        )
    return TokenInfoResponse(
        client_id=ti.get_client_id(),
        user_id=ti.get_user_id(),
        scope=ti.get_scope(),
        expires_in=ti.get_access_expires_in() // timedelta(seconds=1),
    )


# Singleton
_server: AuthorizationServer | None = None


def get_oauth_server() -> AuthorizationServer:
    global _server
    if _server is None:
        from authgate.config import get_settings
        from authgate.manager import MemoryTokenManager

        settings = get_settings()
        _server = AuthorizationServer(
            MemoryTokenManager.from_settings(settings),
            config=settings.to_config(),
        )
    return _server


def set_oauth_server(server: AuthorizationServer) -> None:
    global _server
    _server = server


def reset_oauth_server() -> None:
    global _server
    _server = None
