# Collaborator protocols - the storage/generation side the engine delegates to.
# Created: 2026-10-19
#
# The engine never stores or mints anything itself. Implement these to plug in
# a real token store (SQL, Redis, JWT signer, ...).

from __future__ import annotations

from datetime import timedelta
from typing import Protocol, runtime_checkable

from authgate.models import GrantType, ResponseType, TokenGenerateRequest


@runtime_checkable
class TokenInfoProtocol(Protocol):
    """Read-only view of an issued code or token pair."""

    def get_client_id(self) -> str: ...

    def get_user_id(self) -> str: ...

    def get_code(self) -> str: ...

    def get_access(self) -> str: ...

    def get_access_expires_in(self) -> timedelta: ...

    def get_refresh(self) -> str: ...

    def get_scope(self) -> str: ...


@runtime_checkable
class ClientInfoProtocol(Protocol):
    """A registered client as seen by the engine."""

    def get_id(self) -> str: ...

    def get_secret(self) -> str: ...

    def get_domain(self) -> str:
        """Default redirect target used when a request carries no redirect_uri."""
        ...

    def get_user_id(self) -> str: ...


class TokenManagerProtocol(Protocol):
    """Protocol for token managers.

    Managers raise the manager-level ``OAuth2Error`` subclasses
    (``InvalidAuthorizeCodeError``, ``InvalidRefreshTokenError``,
    ``ExpiredRefreshTokenError``, ``InvalidAccessTokenError``, ...) and the
    engine decides what the client gets to see.
    """

    async def get_client(self, client_id: str) -> ClientInfoProtocol:
        """Look up a registered client."""
        ...

    async def generate_auth_token(
        self, response_type: ResponseType, tgr: TokenGenerateRequest
    ) -> TokenInfoProtocol:
        """Issue an authorization code (code flow) or access token (implicit flow)."""
        ...

    async def generate_access_token(
        self, grant_type: GrantType, tgr: TokenGenerateRequest
    ) -> TokenInfoProtocol:
        """Issue an access token for a token-endpoint grant."""
        ...

    async def refresh_access_token(self, tgr: TokenGenerateRequest) -> TokenInfoProtocol:
        """Exchange ``tgr.refresh`` for a new access token."""
        ...

    async def load_access_token(self, access: str) -> TokenInfoProtocol:
        """Resolve an access token to its metadata."""
        ...

    async def load_refresh_token(self, refresh: str) -> TokenInfoProtocol:
        """Resolve a refresh token to its metadata."""
        ...
