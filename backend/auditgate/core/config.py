"""
Core configuration settings for the application.
"""
import json
from functools import lru_cache
from typing import List, Optional, Union
from pydantic import Field, ConfigDict, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase Configuration
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_service_role_key: str = Field(..., description="Supabase service role key")
    supabase_jwt_secret: str = Field(..., description="Supabase project JWT secret used to verify access tokens")

    # JWT Configuration
    jwt_algorithm: str = Field(default="HS256", description="JWT algorithm")
    jwt_audience: str = Field(default="authenticated", description="Expected audience of Supabase access tokens")

    # Stripe Configuration
    stripe_webhook_secret: Optional[str] = Field(default=None, description="Stripe webhook signing secret")

    # Admin operations (reset-all-to-free, manual plan assignment, sweeps)
    admin_api_key: Optional[str] = Field(default=None, description="Shared secret for admin routes - admin routes are disabled when unset")

    # Record store behaviour
    store_timeout_seconds: int = Field(default=10, description="PostgREST request timeout")
    billing_period_days: int = Field(default=30, description="Default paid period length when the payment event carries none")

    # FastAPI Configuration
    api_v1_str: str = Field(default="/api/v1", description="API v1 prefix")
    project_name: str = Field(default="auditgate", description="Project name")
    environment: str = Field(default="dev", description="Environment (dev, staging, production)")
    debug: bool = Field(default=False, description="Debug mode - set True only for local development")

    # CORS Configuration
    allowed_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    @field_validator('allowed_origins', mode='before')
    @classmethod
    def parse_allowed_origins(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse ALLOWED_ORIGINS from string (JSON) or list."""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except (json.JSONDecodeError, ValueError):
                # If not JSON, split by comma as fallback
                return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    @property
    def is_production_environment(self) -> bool:
        """Check if running in production environment."""
        return self.environment in ["production", "prod"]

    @property
    def admin_enabled(self) -> bool:
        return bool(self.admin_api_key)

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process. Pass explicit Settings to create_application() in tests."""
    return Settings()
