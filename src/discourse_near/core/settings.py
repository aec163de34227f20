"""Application settings and configuration.

This module defines all configuration options for the discourse-near service.
Settings are loaded from environment variables with sensible defaults.
"""

import json
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Accepts a JSON array or a comma-separated string from the environment.
StrList = Annotated[list[str], NoDecode]


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Discourse NEAR Link", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Discourse forum
    discourse_base_url: str = Field(alias="DISCOURSE_BASE_URL")
    discourse_api_key: str = Field(min_length=1, alias="DISCOURSE_API_KEY")
    discourse_api_username: str = Field(default="system", alias="DISCOURSE_API_USERNAME")
    discourse_http_timeout_seconds: float = Field(
        default=10.0,
        alias="DISCOURSE_HTTP_TIMEOUT_SECONDS",
    )
    discourse_scopes: StrList = Field(
        default=["read", "write"],
        alias="DISCOURSE_SCOPES",
    )

    # User API key handshake
    application_name: str = Field(default="NEAR Account Link", alias="APPLICATION_NAME")
    client_id: str = Field(default="discourse-near-plugin", alias="CLIENT_ID")
    nonce_ttl_seconds: int = Field(default=600, ge=1, alias="NONCE_TTL_SECONDS")
    nonce_sweep_interval_seconds: float = Field(
        default=300.0,
        alias="NONCE_SWEEP_INTERVAL_SECONDS",
    )

    # NEAR signed-message verification
    near_recipient: str = Field(default="social.near", alias="NEAR_RECIPIENT")
    near_link_max_age_seconds: int = Field(default=600, alias="NEAR_LINK_MAX_AGE_SECONDS")
    near_post_max_age_seconds: int = Field(default=300, alias="NEAR_POST_MAX_AGE_SECONDS")
    near_rpc_url: str = Field(default="https://rpc.mainnet.near.org", alias="NEAR_RPC_URL")
    near_rpc_timeout_seconds: float = Field(default=10.0, alias="NEAR_RPC_TIMEOUT_SECONDS")
    near_verify_access_key: bool = Field(default=True, alias="NEAR_VERIFY_ACCESS_KEY")

    # Linkage persistence
    linkage_backend: Literal["memory", "database"] = Field(
        default="memory",
        alias="LINKAGE_BACKEND",
    )
    database_url: str = Field(default="sqlite:///./discourse_near.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # CORS configuration for web frontend access
    cors_origins: StrList = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: StrList = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: StrList = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator(
        "discourse_scopes",
        "cors_origins",
        "cors_allow_methods",
        "cors_allow_headers",
        mode="before",
    )
    @classmethod
    def split_list(cls, value: Any) -> Any:
        """Parse ``a,b`` or ``["a", "b"]`` into a list of strings."""
        if not isinstance(value, str):
            return value
        text = value.strip()
        if text.startswith("["):
            return json.loads(text)
        return [item.strip() for item in text.split(",") if item.strip()]

    @property
    def discourse_url(self) -> str:
        """Return the Discourse base URL without a trailing slash."""
        return self.discourse_base_url.rstrip("/")


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore[call-arg]
    return _settings
