# Engine configuration and process settings.
# Created: 2026-10-19
#
# ``Config`` is what the engine reads: frozen, built once at startup.
# ``Settings`` loads process-level values from AUTHGATE_* environment
# variables (or a .env file) and produces a ``Config``.

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from authgate.models import GrantType, ResponseType

DEFAULT_RESPONSE_TYPES = (ResponseType.CODE, ResponseType.TOKEN)
DEFAULT_GRANT_TYPES = (
    GrantType.AUTHORIZATION_CODE,
    GrantType.PASSWORD,
    GrantType.CLIENT_CREDENTIALS,
    GrantType.REFRESHING,
)


@dataclass(frozen=True)
class Config:
    """Authorization engine configuration."""

    token_type: str = "Bearer"
    allowed_response_types: tuple[ResponseType, ...] = DEFAULT_RESPONSE_TYPES
    allowed_grant_types: tuple[GrantType, ...] = DEFAULT_GRANT_TYPES
    # Accept GET on the token endpoint (RFC 6749 requires POST)
    allow_get_access_request: bool = False
    # Where users land when they have no permission to the client app
    no_permission_redirect_path: str = "/ui/403"

    def __post_init__(self) -> None:
        # Accept any iterable of enum members or wire strings
        object.__setattr__(
            self,
            "allowed_response_types",
            tuple(ResponseType(rt) for rt in self.allowed_response_types),
        )
        object.__setattr__(
            self,
            "allowed_grant_types",
            tuple(GrantType(gt) for gt in self.allowed_grant_types),
        )


class Settings(BaseSettings):
    """Process settings loaded from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="AUTHGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Engine
    token_type: str = Field(default="Bearer", description="token_type reported in token responses")
    allowed_response_types: list[ResponseType] = Field(
        default_factory=lambda: list(DEFAULT_RESPONSE_TYPES)
    )
    allowed_grant_types: list[GrantType] = Field(default_factory=lambda: list(DEFAULT_GRANT_TYPES))
    allow_get_access_request: bool = False
    no_permission_redirect_path: str = "/ui/403"

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 9096
    log_level: str = "INFO"

    # Reference in-memory token manager
    code_ttl_seconds: int = Field(default=600, gt=0)
    access_token_ttl_seconds: int = Field(default=7200, gt=0)
    refresh_token_ttl_seconds: int = Field(default=3 * 24 * 3600, gt=0)
    default_client_id: str = ""
    default_client_secret: str = ""
    default_client_domain: str = ""

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def load(cls) -> Settings:
        """Return the cached process settings."""
        return get_settings()

    def to_config(self) -> Config:
        return Config(
            token_type=self.token_type,
            allowed_response_types=tuple(self.allowed_response_types),
            allowed_grant_types=tuple(self.allowed_grant_types),
            allow_get_access_request=self.allow_get_access_request,
            no_permission_redirect_path=self.no_permission_redirect_path,
        )

    @property
    def code_ttl(self) -> timedelta:
        return timedelta(seconds=self.code_ttl_seconds)

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(seconds=self.access_token_ttl_seconds)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(seconds=self.refresh_token_ttl_seconds)


@lru_cache
def get_settings() -> Settings:
    return Settings()
