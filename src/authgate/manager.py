# In-memory token manager for development and tests.
# Created: 2026-10-19
#
# Implements TokenManagerProtocol with process-local dicts: nothing is
# persisted and every restart forgets all codes and tokens. Real
# deployments plug in their own manager.

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from urllib.parse import urlsplit

from authgate.config import Settings
from authgate.errors import (
    ExpiredAccessTokenError,
    ExpiredRefreshTokenError,
    InvalidAccessTokenError,
    InvalidAuthorizeCodeError,
    InvalidClientError,
    InvalidRedirectURIError,
    InvalidRefreshTokenError,
    UnsupportedGrantTypeError,
)
from authgate.models import GrantType, ResponseType, TokenGenerateRequest

logger = logging.getLogger(__name__)

# Token lifetimes
CODE_TTL = timedelta(minutes=10)
ACCESS_TOKEN_TTL = timedelta(hours=2)
REFRESH_TOKEN_TTL = timedelta(hours=72)


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class OAuthClient:
    """Registered OAuth2 client."""

    client_id: str
    client_secret: str = ""
    domain: str = ""
    user_id: str = ""

    def get_id(self) -> str:
        return self.client_id

    def get_secret(self) -> str:
        return self.client_secret

    def get_domain(self) -> str:
        return self.domain

    def get_user_id(self) -> str:
        return self.user_id


@dataclass
class OAuthToken:
    """An authorization code and/or access + refresh token pair."""

    client_id: str
    user_id: str = ""
    redirect_uri: str = ""
    scope: str = ""
    code: str = ""
    code_created_at: datetime | None = None
    code_expires_in: timedelta = timedelta(0)
    access: str = ""
    access_created_at: datetime | None = None
    access_expires_in: timedelta = timedelta(0)
    refresh: str = ""
    refresh_created_at: datetime | None = None
    refresh_expires_in: timedelta = timedelta(0)
    clock: Callable[[], datetime] = field(default=_now, repr=False, compare=False)

    def get_client_id(self) -> str:
        return self.client_id

    def get_user_id(self) -> str:
        return self.user_id

    def get_code(self) -> str:
        return self.code

    def get_access(self) -> str:
        return self.access

    def get_access_expires_in(self) -> timedelta:
        """Remaining access token lifetime, never negative."""
        if self.access_created_at is None:
            return self.access_expires_in
        remaining = self.access_created_at + self.access_expires_in - self.clock()
        return max(remaining, timedelta(0))

    def get_refresh(self) -> str:
        return self.refresh

    def get_scope(self) -> str:
        return self.scope

    def code_expired(self, now: datetime) -> bool:
        return self.code_created_at is None or now > self.code_created_at + self.code_expires_in

    def access_expired(self, now: datetime) -> bool:
        return self.access_created_at is None or now > self.access_created_at + self.access_expires_in

    def refresh_expired(self, now: datetime) -> bool:
        return self.refresh_created_at is None or now > self.refresh_created_at + self.refresh_expires_in


def _redirect_allowed(domain: str, redirect_uri: str) -> bool:
    """A redirect URI is allowed when its host is the client domain's host or a subdomain of it."""
    base = urlsplit(domain).hostname or ""
    target = urlsplit(redirect_uri).hostname or ""
    if not base or not target:
        return False
    return target == base or target.endswith("." + base)


class MemoryTokenManager:
    """In-memory ``TokenManagerProtocol`` implementation.

    Codes are single-use. Refreshing rotates both tokens and revokes the
    previous pair. Client secrets are only checked when the client has one.
    """

    def __init__(
        self,
        code_ttl: timedelta = CODE_TTL,
        access_ttl: timedelta = ACCESS_TOKEN_TTL,
        refresh_ttl: timedelta = REFRESH_TOKEN_TTL,
        clock: Callable[[], datetime] | None = None,
    ):
        self.code_ttl = code_ttl
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock or _now
        self._clients: dict[str, OAuthClient] = {}
        self._codes: dict[str, OAuthToken] = {}
        self._tokens: dict[str, OAuthToken] = {}  # keyed by access token
        self._refresh_index: dict[str, str] = {}  # refresh token -> access token

    @classmethod
    def from_settings(cls, settings: Settings) -> MemoryTokenManager:
        manager = cls(
            code_ttl=settings.code_ttl,
            access_ttl=settings.access_token_ttl,
            refresh_ttl=settings.refresh_token_ttl,
        )
        if settings.default_client_id:
            manager.register_client(
                OAuthClient(
                    client_id=settings.default_client_id,
                    client_secret=settings.default_client_secret,
                    domain=settings.default_client_domain,
                )
            )
        return manager

    # -- clients -------------------------------------------------------

    def register_client(self, client: OAuthClient) -> None:
        self._clients[client.client_id] = client
        logger.debug("Registered OAuth client %s", client.client_id)

    async def get_client(self, client_id: str) -> OAuthClient:
        client = self._clients.get(client_id)
        if client is None:
            raise InvalidClientError(f"unknown client {client_id}")
        return client

    async def _authenticate_client(self, tgr: TokenGenerateRequest) -> OAuthClient:
        client = await self.get_client(tgr.client_id)
        if client.client_secret and not secrets.compare_digest(
            client.client_secret.encode(), tgr.client_secret.encode()
        ):
            raise InvalidClientError(f"bad secret for client {tgr.client_id}")
        return client

    # -- issuing ---------------------------------------------------------

    def _issue(self, tgr: TokenGenerateRequest, scope: str, user_id: str, with_refresh: bool) -> OAuthToken:
        now = self._clock()
        token = OAuthToken(
            client_id=tgr.client_id,
            user_id=user_id,
            redirect_uri=tgr.redirect_uri,
            scope=scope,
            access=secrets.token_urlsafe(32),
            access_created_at=now,
            access_expires_in=tgr.access_token_exp or self.access_ttl,
            clock=self._clock,
        )
        if with_refresh:
            token.refresh = secrets.token_urlsafe(32)
            token.refresh_created_at = now
            token.refresh_expires_in = self.refresh_ttl
            self._refresh_index[token.refresh] = token.access
        self._tokens[token.access] = token
        return token

    async def generate_auth_token(
        self, response_type: ResponseType, tgr: TokenGenerateRequest
    ) -> OAuthToken:
        client = await self.get_client(tgr.client_id)
        if tgr.redirect_uri and client.domain and not _redirect_allowed(client.domain, tgr.redirect_uri):
            raise InvalidRedirectURIError(f"{tgr.redirect_uri} is outside {client.domain}")

        if response_type == ResponseType.CODE:
            token = OAuthToken(
                client_id=tgr.client_id,
                user_id=tgr.user_id,
                redirect_uri=tgr.redirect_uri or client.domain,
                scope=tgr.scope,
                code=secrets.token_urlsafe(32),
                code_created_at=self._clock(),
                code_expires_in=self.code_ttl,
                access_expires_in=tgr.access_token_exp or self.access_ttl,
                clock=self._clock,
            )
            self._codes[token.code] = token
            return token

        # Implicit grant: no refresh token (RFC 6749 section 4.2.2)
        return self._issue(tgr, tgr.scope, tgr.user_id, with_refresh=False)

    async def generate_access_token(
        self, grant_type: GrantType, tgr: TokenGenerateRequest
    ) -> OAuthToken:
        await self._authenticate_client(tgr)

        if grant_type == GrantType.AUTHORIZATION_CODE:
            code = self._codes.pop(tgr.code, None)
            if code is None or code.code_expired(self._clock()):
                raise InvalidAuthorizeCodeError("unknown or expired code")
            if code.client_id != tgr.client_id or code.redirect_uri != tgr.redirect_uri:
                raise InvalidAuthorizeCodeError("code issued to another client or redirect uri")
            exchange = replace(tgr, access_token_exp=code.access_expires_in, redirect_uri=code.redirect_uri)
            return self._issue(exchange, code.scope, code.user_id, with_refresh=True)

        if grant_type == GrantType.PASSWORD:
            return self._issue(tgr, tgr.scope, tgr.user_id, with_refresh=True)

        if grant_type == GrantType.CLIENT_CREDENTIALS:
            return self._issue(tgr, tgr.scope, "", with_refresh=False)

        raise UnsupportedGrantTypeError(f"grant type {grant_type}")

    async def refresh_access_token(self, tgr: TokenGenerateRequest) -> OAuthToken:
        await self._authenticate_client(tgr)
        old = await self.load_refresh_token(tgr.refresh)
        if old.client_id != tgr.client_id:
            raise InvalidRefreshTokenError("refresh token issued to another client")

        self.revoke(old.access)
        refreshed = replace(tgr, access_token_exp=None, redirect_uri=old.redirect_uri)
        return self._issue(refreshed, tgr.scope or old.scope, old.user_id, with_refresh=True)

    # -- lookups ---------------------------------------------------------

    async def load_access_token(self, access: str) -> OAuthToken:
        token = self._tokens.get(access)
        if token is None:
            raise InvalidAccessTokenError("unknown access token")
        if token.access_expired(self._clock()):
            raise ExpiredAccessTokenError("access token expired")
        return token

    async def load_refresh_token(self, refresh: str) -> OAuthToken:
        access = self._refresh_index.get(refresh)
        token = self._tokens.get(access) if access else None
        if token is None:
            raise InvalidRefreshTokenError("unknown refresh token")
        if token.refresh_expired(self._clock()):
            raise ExpiredRefreshTokenError("refresh token expired")
        return token

    # -- housekeeping ----------------------------------------------------

    def revoke(self, access: str) -> bool:
        token = self._tokens.pop(access, None)
        if token is None:
            return False
        if token.refresh:
            self._refresh_index.pop(token.refresh, None)
        return True

    def cleanup_expired(self) -> int:
        """Drop expired codes and token pairs whose refresh (or access) lifetime is over."""
        now = self._clock()
        expired_codes = [k for k, v in self._codes.items() if v.code_expired(now)]
        for k in expired_codes:
            del self._codes[k]

        expired_tokens = [
            k
            for k, v in self._tokens.items()
            if (v.refresh_expired(now) if v.refresh else v.access_expired(now))
        ]
        for k in expired_tokens:
            self.revoke(k)

        if expired_codes or expired_tokens:
            logger.debug("Removed %d codes and %d tokens", len(expired_codes), len(expired_tokens))
        return len(expired_codes) + len(expired_tokens)
