"""
Configuration management for the Merchant Onboarding Server.

Uses pydantic-settings for environment variable loading and validation.
"""

from typing import List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Configuration
    server_host: str = Field(default="0.0.0.0", description="Server host address")
    server_port: int = Field(default=3849, description="Server port")
    env: str = Field(default="development", description="Environment (development/production)")
    debug: bool = Field(default=True, description="Debug mode")

    # Order Router (downstream merchant registry)
    order_router_url: str = Field(
        default="http://localhost:3848",
        description="Base URL of the order router that owns the merchant registry"
    )
    api_token: str = Field(
        default="",
        description="Shared bearer token for admin endpoints and the order router"
    )
    downstream_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for calls to the order router"
    )

    # Invite Storage
    invites_file: str = Field(
        default="invites.json",
        description="Path of the invite snapshot file"
    )

    # Onboarding Page
    static_dir: str = Field(
        default="static",
        description="Directory holding the onboarding page assets"
    )
    public_base_url: str = Field(
        default="http://localhost:3849",
        description="Public URL of the onboarding page, used to build invite links"
    )

    # Identity Validation
    strict_identifier_checksum: bool = Field(
        default=False,
        description="Reject npub identifiers whose Bech32 checksum does not verify"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="json",
        description="Log format (json or text)"
    )

    # CORS Configuration
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    @field_validator("server_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate server port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("Server port must be between 1 and 65535")
        return v

    @field_validator("env")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is development or production."""
        if v not in ["development", "production"]:
            raise ValueError("Environment must be 'development' or 'production'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator("downstream_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate downstream timeout is positive."""
        if v <= 0:
            raise ValueError("Downstream timeout must be greater than 0")
        return v

    @field_validator("order_router_url", "public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string into list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env == "production"

    def validate_required_production_settings(self) -> None:
        """
        Validate that required settings are configured for production.

        Raises ValueError if critical settings are missing in production.
        """
        if not self.is_production:
            return

        errors = []

        if not self.api_token:
            errors.append("API_TOKEN is required in production")

        if not self.order_router_url:
            errors.append("ORDER_ROUTER_URL is required in production")

        if self.debug:
            errors.append("DEBUG should be False in production")

        if errors:
            raise ValueError(
                "Production configuration errors:\n" + "\n".join(f"  - {err}" for err in errors)
            )

    def model_post_init(self, __context) -> None:
        """Validate configuration after initialization."""
        if self.is_production:
            self.validate_required_production_settings()


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """
    Get the global settings instance.

    This function can be used as a FastAPI dependency.
    """
    return settings


__all__ = ["Settings", "settings", "get_settings"]
