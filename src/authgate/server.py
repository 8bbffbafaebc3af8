# OAuth2 authorization server engine.
# Created: 2026-10-19
#
# Validates authorize/token requests, dispatches grants to the token manager,
# and renders redirects, token bodies and OAuth2 error bodies.
# Bearer token handling follows RFC 6750.

from __future__ import annotations

import logging
import re
from datetime import timedelta
from typing import Any
from urllib.parse import (
    SplitResult,
    parse_qsl,
    quote,
    quote_plus,
    unquote_plus,
    urlsplit,
    urlunsplit,
)

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from authgate.config import Config
from authgate.errors import (
    DESCRIPTIONS,
    AccessDeniedError,
    ErrorKind,
    ErrorResponse,
    ExpiredRefreshTokenError,
    InvalidAccessTokenError,
    InvalidAuthorizeCodeError,
    InvalidGrantError,
    InvalidRedirectURIError,
    InvalidRefreshTokenError,
    InvalidRequestError,
    InvalidScopeError,
    NoAppPermissionError,
    UnauthorizedClientError,
    UnsupportedGrantTypeError,
    UnsupportedResponseTypeError,
    root_error,
)
from authgate.handlers import Handlers
from authgate.models import AuthorizeRequest, GrantType, ResponseType, TokenGenerateRequest
from authgate.protocol import TokenInfoProtocol, TokenManagerProtocol
from authgate.request import form_values

logger = logging.getLogger(__name__)

_BEARER_PREFIX = "Bearer "
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
# Characters left unescaped in a fragment besides the unreserved set
_FRAGMENT_SAFE = "$&+,/:;=?@!()*"

TOKEN_HEADERS = {
    "Content-Type": "application/json;charset=UTF-8",
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
}


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _encode_query(params: dict[str, list[str]]) -> str:
    """Encode params sorted by key, ``+`` for spaces."""
    pairs = []
    for key in sorted(params):
        for value in params[key]:
            pairs.append(f"{quote_plus(key)}={quote_plus(value)}")
    return "&".join(pairs)


def _parse_redirect_uri(raw: str) -> SplitResult:
    if _CONTROL_CHARS.search(raw):
        raise InvalidRedirectURIError(f"control character in redirect uri {raw!r}")
    if raw.startswith(":"):
        raise InvalidRedirectURIError("missing protocol scheme")
    try:
        parts = urlsplit(raw)
    except ValueError as exc:
        raise InvalidRedirectURIError(f"cannot parse redirect uri {raw!r}") from exc
    if _BAD_ESCAPE.search(parts.netloc + parts.path + parts.query):
        raise InvalidRedirectURIError(f"invalid escape in redirect uri {raw!r}")
    return parts


class AuthorizationServer:
    """OAuth2 protocol engine.

    Holds only read-only state (config, handlers, manager) and is safe to
    share between concurrent requests.
    """

    def __init__(
        self,
        manager: TokenManagerProtocol,
        config: Config | None = None,
        handlers: Handlers | None = None,
    ):
        self.manager = manager
        self.config = config or Config()
        self.handlers = handlers or Handlers()

    @classmethod
    def default(cls, manager: TokenManagerProtocol) -> AuthorizationServer:
        """Server with default config, Basic client auth and deny-all user auth."""
        return cls(manager)

    # ------------------------------------------------------------------
    # Response rendering
    # ------------------------------------------------------------------

    def redirect(self, req: AuthorizeRequest, data: dict[str, Any]) -> Response:
        try:
            uri = self.get_redirect_uri(req, data)
        except InvalidRedirectURIError as exc:
            raise InvalidRequestError(f"malformed redirect_uri {req.redirect_uri!r}") from exc
        logger.info(
            "Redirecting %s response for client %s to %s", req.response_type, req.client_id, req.redirect_uri
        )
        return Response(status_code=302, headers={"Location": uri})

    def redirect_error(self, req: AuthorizeRequest | None, exc: Exception) -> Response:
        """Redirect an authorization failure back to the client.

        With no validated request there is no trustworthy redirect target,
        so the error is raised to the caller instead.
        """
        if req is None:
            raise exc
        data, _, _ = self.get_error_data(exc)
        return self.redirect(req, data)

    def no_permission_redirect(self, exc: NoAppPermissionError) -> Response:
        path = exc.redirect_path or self.config.no_permission_redirect_path
        return Response(status_code=302, headers={"Location": f"{path}?{quote(exc.message)}"})

    def token(
        self,
        data: dict[str, Any],
        headers: dict[str, str] | None = None,
        status_code: int = 200,
    ) -> JSONResponse:
        merged = dict(TOKEN_HEADERS)
        if headers:
            merged.update(headers)
        return JSONResponse(content=data, status_code=status_code or 200, headers=merged)

    def token_error(self, exc: BaseException) -> JSONResponse:
        data, status_code, headers = self.get_error_data(exc)
        return self.token(data, headers, status_code)

    # ------------------------------------------------------------------
    # Redirect URI builder
    # ------------------------------------------------------------------

    def get_redirect_uri(self, req: AuthorizeRequest, data: dict[str, Any]) -> str:
        """Encode *data* (and ``state``) into the client's redirect URI.

        The code flow puts parameters in the query string, the implicit flow
        in the fragment. A redirect URI that already contains ``#`` starts
        from an empty parameter set; in the code flow the encoded query is then
        appended verbatim after the raw string.
        """
        raw = req.redirect_uri
        parts = _parse_redirect_uri(raw)
        has_fragment = "#" in raw

        params: dict[str, list[str]] = {}
        if not has_fragment:
            for key, value in parse_qsl(parts.query, keep_blank_values=True):
                params.setdefault(key, []).append(value)

        if req.state:
            params["state"] = [req.state]
        for key, value in data.items():
            params[key] = [_stringify(value)]

        encoded = _encode_query(params)
        if req.response_type == ResponseType.CODE:
            if has_fragment:
                return f"{raw}?{encoded}"
            return urlunsplit((parts.scheme, parts.netloc, parts.path, encoded, parts.fragment))

        fragment = quote(unquote_plus(encoded), safe=_FRAGMENT_SAFE)
        return urlunsplit((parts.scheme, parts.netloc, parts.path, "", fragment))

    # ------------------------------------------------------------------
    # Authorization endpoint
    # ------------------------------------------------------------------

    def check_response_type(self, response_type: ResponseType) -> bool:
        return response_type in self.config.allowed_response_types

    async def validate_authorize_request(self, request: Request) -> AuthorizeRequest:
        values = await form_values(request)
        client_id = values.get("client_id", "")
        if request.method not in ("GET", "POST"):
            raise InvalidRequestError(f"invalid request method {request.method}")
        if not client_id:
            raise InvalidRequestError("missing client_id")

        raw_type = values.get("response_type", "")
        try:
            response_type = ResponseType(raw_type)
        except ValueError as exc:
            raise UnsupportedResponseTypeError(f"response type {raw_type!r}") from exc
        if not self.check_response_type(response_type):
            raise UnauthorizedClientError(f"response type {response_type} not allowed")

        return AuthorizeRequest(
            redirect_uri=values.get("redirect_uri", ""),
            response_type=response_type,
            client_id=client_id,
            state=values.get("state", ""),
            scope=values.get("scope", ""),
            request=request,
        )

    async def get_authorize_token(self, req: AuthorizeRequest) -> TokenInfoProtocol:
        """Check client grant/scope permissions, then mint a code or implicit token."""
        if (fn := self.handlers.client_authorized) is not None:
            grant_type = GrantType.AUTHORIZATION_CODE
            if req.response_type == ResponseType.TOKEN:
                grant_type = GrantType.IMPLICIT
            try:
                allowed = await fn(req.client_id, grant_type)
            except Exception as exc:
                raise UnauthorizedClientError(f"client authorization check for {req.client_id}") from exc
            if not allowed:
                raise UnauthorizedClientError(f"client {req.client_id} may not use {grant_type}")

        if (fn := self.handlers.client_scope) is not None:
            if not await fn(req.client_id, req.scope):
                raise InvalidScopeError(f"scope {req.scope!r} refused for client {req.client_id}")

        tgr = TokenGenerateRequest(
            client_id=req.client_id,
            user_id=req.user_id,
            redirect_uri=req.redirect_uri,
            scope=req.scope,
            access_token_exp=req.access_token_exp,
            request=req.request,
        )
        return await self.manager.generate_auth_token(req.response_type, tgr)

    def get_authorize_data(self, response_type: ResponseType, ti: TokenInfoProtocol) -> dict[str, Any]:
        if response_type == ResponseType.CODE:
            return {"code": ti.get_code()}
        return self.get_token_data(ti)

    async def handle_authorize_request(self, request: Request) -> Response:
        """Run the full authorization flow and return the response to send.

        Validation errors are raised (there is no redirect target yet), as is
        ``InvalidRequestError`` for a malformed or refused redirect URI;
        later failures become error redirects to the client.
        """
        req = await self.validate_authorize_request(request)

        try:
            result = await self.handlers.user_authorization(request)
        except NoAppPermissionError as exc:
            return self.no_permission_redirect(exc)
        except Exception as exc:
            return self.redirect_error(req, exc)
        if isinstance(result, Response):
            return result
        if not result:
            return self.redirect_error(req, AccessDeniedError("empty user id"))
        req.user_id = result

        if (fn := self.handlers.authorize_scope) is not None:
            scope = await fn(request)
            if scope:
                req.scope = scope

        if (fn := self.handlers.access_token_exp) is not None:
            req.access_token_exp = await fn(request)

        try:
            ti = await self.get_authorize_token(req)
        except InvalidRedirectURIError as exc:
            # Never redirect to a URI the manager refused
            raise InvalidRequestError(
                f"redirect_uri {req.redirect_uri!r} refused for client {req.client_id}"
            ) from exc
        except Exception as exc:
            return self.redirect_error(req, exc)

        if not req.redirect_uri:
            client = await self.manager.get_client(req.client_id)
            req.redirect_uri = client.get_domain()
            logger.info("No redirect_uri for client %s, using default %s", req.client_id, req.redirect_uri)

        return self.redirect(req, self.get_authorize_data(req.response_type, ti))

    # ------------------------------------------------------------------
    # Token endpoint
    # ------------------------------------------------------------------

    def check_grant_type(self, grant_type: GrantType | str) -> bool:
        return grant_type in self.config.allowed_grant_types

    async def validate_token_request(
        self, request: Request
    ) -> tuple[GrantType | str, TokenGenerateRequest]:
        """Parse a token request into a grant type and generate request.

        Unknown grant type strings are returned as-is and rejected by
        ``get_access_token``.
        """
        method = request.method
        if not (method == "POST" or (self.config.allow_get_access_request and method == "GET")):
            raise InvalidRequestError(f"invalid request method {method}")

        values = await form_values(request)
        raw_grant = values.get("grant_type", "")
        if not raw_grant:
            raise UnsupportedGrantTypeError("no grant type")
        try:
            grant_type: GrantType | str = GrantType(raw_grant)
        except ValueError:
            grant_type = raw_grant

        client_id, client_secret = await self.handlers.client_info(request)
        tgr = TokenGenerateRequest(client_id=client_id, client_secret=client_secret, request=request)

        if grant_type == GrantType.AUTHORIZATION_CODE:
            tgr.redirect_uri = values.get("redirect_uri", "")
            tgr.code = values.get("code", "")
            if not tgr.redirect_uri or not tgr.code:
                raise InvalidRequestError("missing redirect_uri or code")
        elif grant_type == GrantType.PASSWORD:
            tgr.scope = values.get("scope", "")
            username, password = values.get("username", ""), values.get("password", "")
            if not username or not password:
                raise InvalidRequestError("missing username or password")
            user_id = await self.handlers.password_authorization(username, password)
            if not user_id:
                raise InvalidGrantError("password authorization rejected")
            if (fn := self.handlers.check_user_permission) is not None:
                await fn(user_id, values.get("client_id") or client_id)
            tgr.user_id = user_id
        elif grant_type == GrantType.CLIENT_CREDENTIALS:
            tgr.scope = values.get("scope", "")
        elif grant_type == GrantType.REFRESHING:
            tgr.refresh = values.get("refresh_token", "")
            tgr.scope = values.get("scope", "")
            if not tgr.refresh:
                raise InvalidRequestError("missing refresh_token")

        return grant_type, tgr

    async def _check_client_scope(self, tgr: TokenGenerateRequest) -> None:
        if (fn := self.handlers.client_scope) is not None:
            if not await fn(tgr.client_id, tgr.scope):
                raise InvalidScopeError(f"scope {tgr.scope!r} refused for client {tgr.client_id}")

    async def get_access_token(
        self, grant_type: GrantType | str, tgr: TokenGenerateRequest
    ) -> TokenInfoProtocol:
        """Authorize the grant for this client and delegate to the token manager.

        Invalid or expired codes and refresh tokens all surface as
        ``InvalidGrantError`` so clients cannot tell them apart.
        """
        if not self.check_grant_type(grant_type):
            raise UnauthorizedClientError(f"grant type {grant_type} not allowed")

        if (fn := self.handlers.client_authorized) is not None:
            if not await fn(tgr.client_id, grant_type):
                raise UnauthorizedClientError(f"client {tgr.client_id} may not use {grant_type}")

        if grant_type == GrantType.AUTHORIZATION_CODE:
            try:
                return await self.manager.generate_access_token(grant_type, tgr)
            except InvalidAuthorizeCodeError as exc:
                raise InvalidGrantError("authorization code exchange") from exc

        if grant_type in (GrantType.PASSWORD, GrantType.CLIENT_CREDENTIALS):
            await self._check_client_scope(tgr)
            return await self.manager.generate_access_token(grant_type, tgr)

        if grant_type == GrantType.REFRESHING:
            if tgr.scope and (fn := self.handlers.refreshing_scope) is not None:
                try:
                    rti = await self.manager.load_refresh_token(tgr.refresh)
                except (InvalidRefreshTokenError, ExpiredRefreshTokenError) as exc:
                    raise InvalidGrantError("load refresh token") from exc
                if not await fn(tgr.scope, rti.get_scope()):
                    raise InvalidScopeError(f"scope {tgr.scope!r} exceeds {rti.get_scope()!r}")
            try:
                return await self.manager.refresh_access_token(tgr)
            except (InvalidRefreshTokenError, ExpiredRefreshTokenError) as exc:
                raise InvalidGrantError("refresh access token") from exc

        raise UnsupportedGrantTypeError(f"grant type {grant_type}")

    def get_token_data(self, ti: TokenInfoProtocol) -> dict[str, Any]:
        data: dict[str, Any] = {
            "access_token": ti.get_access(),
            "token_type": self.config.token_type,
            "expires_in": int(ti.get_access_expires_in() // timedelta(seconds=1)),
        }
        if scope := ti.get_scope():
            data["scope"] = scope
        if refresh := ti.get_refresh():
            data["refresh_token"] = refresh

        if (fn := self.handlers.extension_fields) is not None:
            for key, value in (fn(ti) or {}).items():
                data.setdefault(key, value)
        return data

    async def handle_token_request(self, request: Request) -> tuple[str, Response]:
        """Run the full token flow.

        Returns ``(access_token, response)``; the token is empty when the
        response is an error body. ``NoAppPermissionError`` is raised.
        """
        try:
            grant_type, tgr = await self.validate_token_request(request)
        except NoAppPermissionError:
            raise
        except Exception as exc:
            logger.info("Token request validation failed: %r", exc)
            return "", self.token_error(exc)

        try:
            ti = await self.get_access_token(grant_type, tgr)
        except Exception as exc:
            logger.info("Token grant %s failed for client %s: %r", grant_type, tgr.client_id, exc)
            return "", self.token_error(exc)

        return ti.get_access(), self.token(self.get_token_data(ti))

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    def get_error_data(self, exc: BaseException) -> tuple[dict[str, Any], int, dict[str, str]]:
        """Map any exception to ``(body, status_code, headers)``."""
        root = root_error(exc)
        if root is not None and root.kind in DESCRIPTIONS:
            re_ = ErrorResponse.from_kind(root.kind)
        else:
            re_ = None
            if (fn := self.handlers.internal_error) is not None:
                re_ = fn(exc)
            if re_ is None or re_.error is None:
                logger.warning("Unmapped error answered as server_error: %r", exc)
                re_ = ErrorResponse.from_kind(ErrorKind.SERVER_ERROR)

        if (fn := self.handlers.response_error) is not None:
            fn(re_)

        data: dict[str, Any] = {}
        if re_.error is not None:
            data["error"] = str(re_.error)
        if re_.error_code:
            data["error_code"] = re_.error_code
        if re_.description:
            data["error_description"] = re_.description
        if re_.uri:
            data["error_uri"] = re_.uri

        status_code = re_.status_code if re_.status_code > 0 else 500
        return data, status_code, dict(re_.headers)

    # ------------------------------------------------------------------
    # Bearer tokens (RFC 6750)
    # ------------------------------------------------------------------

    async def bearer_auth(self, request: Request) -> tuple[str, bool]:
        """Extract a bearer token from the Authorization header or ``access_token`` form field."""
        auth = request.headers.get("Authorization", "")
        if auth.startswith(_BEARER_PREFIX):
            token = auth[len(_BEARER_PREFIX):]
        else:
            token = (await form_values(request)).get("access_token", "")
        return token, token != ""

    async def validate_bearer_token(self, request: Request) -> TokenInfoProtocol:
        token, ok = await self.bearer_auth(request)
        if not ok:
            raise InvalidAccessTokenError("no bearer token")
        return await self.manager.load_access_token(token)
