from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Centralized application configuration.

    Environment variables override defaults. This module must be imported only by API startup or
    top-level services. Upstream client and tool adapters read it through get_settings() at call
    time so tests can swap values with get_settings.cache_clear().
    """

    # General
    environment: Literal["dev", "prod"] = Field(default="dev", description="Runtime environment")
    allowed_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="CORS allowed origins; restrict in production",
    )

    # HTTP server
    host: str = Field(default="0.0.0.0", description="Bind address for the HTTP server")
    port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        validation_alias=AliasChoices("PORT", "APP_PORT"),
        description="Listening port (env: PORT)",
    )
    mcp_path: str = Field(default="/mcp", description="Route serving the MCP endpoint")
    server_name: str = Field(
        default="mcp-streamable-http", description="Server identity announced to MCP clients"
    )

    # Upstream d.velop tenant
    upstream_base_url: AnyHttpUrl = Field(
        default="https://m365-dev.d-velop.cloud",
        validate_default=True,
        description="Base origin for prompt, identity and task services",
    )
    link_prefix: str | None = Field(
        default=None,
        description="Prefix prepended to citation links; defaults to upstream_base_url",
    )
    assistant_id: str = Field(
        default="54110538-f15b-4ea2-a88d-264ebe19f790",
        description="Assistant identifier used for ask-assistant prompts",
    )
    poll_interval_seconds: float = Field(
        default=5.0, ge=0.0, description="Delay before each prompt status read"
    )
    poll_max_attempts: int | None = Field(
        default=None,
        ge=1,
        description="Maximum prompt status reads; unset polls until completion",
    )
    upstream_timeout_seconds: float | None = Field(
        default=None,
        gt=0.0,
        description="Timeout for upstream HTTP calls; unset disables the timeout",
    )

    # Observability
    logging_config_path: Path | None = Field(
        default=Path("src/config/logging.yaml"),
        description="Path to logging configuration YAML",
    )
    enable_tracing: bool = Field(default=False, description="Enable OpenTelemetry tracing")
    enable_metrics: bool = Field(default=True, description="Expose Prometheus metrics")

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("allowed_origins")
    @classmethod
    def sanitize_allowed_origins(cls, v: list[str]) -> list[str]:
        return [origin.strip() for origin in v if origin and origin.strip()]

    @field_validator("mcp_path")
    @classmethod
    def normalize_mcp_path(cls, v: str) -> str:
        path = "/" + v.strip().strip("/")
        if path == "/":
            raise ValueError("mcp_path must not be the root path")
        return path

    @field_validator("link_prefix", "assistant_id")
    @classmethod
    def strip_optional_text(cls, v: str | None) -> str | None:
        if v is None:
            return v
        trimmed = v.strip()
        return trimmed or None

    @property
    def is_prod(self) -> bool:
        return self.environment == "prod"

    @property
    def cors_origins(self) -> list[str]:
        if self.is_prod and self.allowed_origins == ["*"]:
            # Safety: default deny-all in prod if not configured
            return []
        return self.allowed_origins

    @property
    def upstream_origin(self) -> str:
        """Base URL without a trailing slash, suitable for joining absolute API paths."""
        return str(self.upstream_base_url).rstrip("/")

    @property
    def citation_link_prefix(self) -> str:
        return (self.link_prefix or self.upstream_origin).rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """
    Cached settings accessor for application modules.
    """
    return AppSettings()
