# OAuth2 endpoint schemas.
# Created: 2026-10-19

from __future__ import annotations

from pydantic import BaseModel, Field


class TokenResponse(BaseModel):
    """OAuth2 token response (RFC 6749 section 5.1)."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    scope: str | None = None
    refresh_token: str | None = None


class ErrorBody(BaseModel):
    """OAuth2 error response (RFC 6749 section 5.2)."""

    error: str
    error_code: int | None = None
    error_description: str | None = None
    error_uri: str | None = None


class TokenInfoResponse(BaseModel):
    """Metadata for a validated bearer token."""

    client_id: str
    user_id: str = ""
    scope: str = ""
    expires_in: int = Field(..., description="Remaining access token lifetime in seconds")
