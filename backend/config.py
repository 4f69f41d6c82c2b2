"""
Identity Reconciliation - Configuration Management

Centralized configuration for environment variables, CORS, and deployment settings.
This module ensures:
- No hardcoded secrets
- No missing required variables
- Environment-specific settings (dev/staging/prod)
- Bounded remediation batches
"""

from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses pydantic-settings for validation and type coercion.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ==================== ENVIRONMENT ====================
    ENVIRONMENT: str = Field(
        default="development",
        description="Runtime environment: development, staging, production"
    )
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (auto-enabled in development)"
    )

    # ==================== DATABASE ====================
    DATABASE_URL: str = Field(
        default="",
        description="Async SQLAlchemy URL of the person/time-entry store (required)"
    )
    POSTGRES_HOST: str = Field(default="")
    POSTGRES_PORT: int = Field(default=5432)
    POSTGRES_DB: str = Field(default="identity")
    POSTGRES_USER: str = Field(default="")
    POSTGRES_PASSWORD: str = Field(default="")
    DATABASE_ECHO: bool = Field(default=False)

    # ==================== SESSION TOKENS ====================
    AUTH_TOKEN_SECRET: str = Field(
        default="",
        description="Key used to verify session tokens issued by the identity provider"
    )
    AUTH_TOKEN_ALGORITHM: str = Field(
        default="HS256",
        description="Session token signing algorithm"
    )
    AUTH_TOKEN_AUDIENCE: str = Field(
        default="",
        description="Expected token audience (skipped when empty)"
    )

    # ==================== IDENTITY PROVIDER ====================
    AUTH_PROVIDER_BASE_URL: str = Field(
        default="https://identitytoolkit.googleapis.com",
        description="Base URL of the identity provider account API"
    )
    AUTH_PROVIDER_PROJECT_ID: str = Field(
        default="",
        description="Provider project holding the user accounts"
    )
    AUTH_PROVIDER_TOKEN: str = Field(
        default="",
        description="Bearer token for provider account lookups"
    )
    AUTH_PROVIDER_TIMEOUT_SECONDS: float = Field(default=10.0)
    AUTH_LABEL_DOMAIN: str = Field(
        default="deer-lab.local",
        description="Domain of the provider email label derived from the employee code"
    )

    # ==================== REMEDIATION ====================
    REMEDIATION_PAGE_SIZE: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Records read per page by bulk tools"
    )
    REMEDIATION_WRITE_GROUP_SIZE: int = Field(
        default=400,
        ge=1,
        le=500,
        description="Writes per atomic group; must stay under the store's batch limit"
    )
    REMEDIATION_MAX_SAMPLE: int = Field(
        default=100,
        ge=1,
        description="Upper bound for orphan time-entry samples"
    )
    REMEDIATION_DEFAULT_SAMPLE: int = Field(default=50, ge=1)
    PURCHASE_ORDER_SCAN_LIMIT: int = Field(default=100, ge=1, le=100)

    # ==================== CORS ====================
    CORS_ORIGINS: str = Field(
        default="",
        description="Comma-separated list of allowed origins"
    )

    # ==================== OBSERVABILITY ====================
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR"
    )

    # ==================== API ====================
    API_TITLE: str = Field(
        default="Identity Reconciliation API",
        description="API title for OpenAPI docs"
    )
    API_VERSION: str = Field(
        default="1.0.0",
        description="API version"
    )

    # ==================== COMPUTED PROPERTIES ====================

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Parse CORS_ORIGINS into a list.

        Development also allows the local front-end dev servers.
        """
        if self.CORS_ORIGINS and self.CORS_ORIGINS != "*":
            origins = [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]
        else:
            origins = []

        dev_origins = [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]

        all_origins = set(origins)
        if not self.is_production:
            all_origins.update(dev_origins)

        return sorted(all_origins)

    @property
    def debug_enabled(self) -> bool:
        """Enable debug in development or when explicitly set"""
        return self.DEBUG or self.is_development

    def validate_production_config(self) -> List[str]:
        """
        Validate configuration for production deployment.
        Returns list of validation errors.
        """
        errors = []

        if not self.DATABASE_URL and not self.POSTGRES_HOST:
            errors.append("DATABASE_URL is required")

        if not self.AUTH_TOKEN_SECRET:
            errors.append("AUTH_TOKEN_SECRET is required")

        if self.REMEDIATION_WRITE_GROUP_SIZE >= 500:
            errors.append("REMEDIATION_WRITE_GROUP_SIZE must stay below the 500-write batch limit")

        if self.is_production:
            if self.CORS_ORIGINS == "*":
                errors.append("CORS_ORIGINS cannot be '*' in production")

            if "localhost" in self.DATABASE_URL.lower():
                errors.append("DATABASE_URL cannot point to localhost in production")

            if self.DEBUG:
                errors.append("DEBUG should be False in production")

            if not self.AUTH_PROVIDER_PROJECT_ID:
                errors.append("AUTH_PROVIDER_PROJECT_ID is required in production")

        return errors

    def get_database_url(self) -> str:
        """Get the appropriate database URL"""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        if self.POSTGRES_HOST and self.POSTGRES_USER and self.POSTGRES_PASSWORD:
            return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

        raise ValueError("No database configuration found. Set DATABASE_URL or POSTGRES_* variables.")


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Settings are loaded once and cached for the application lifetime.
    """
    settings = Settings()

    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.debug_enabled}")

    if settings.is_production:
        errors = settings.validate_production_config()
        if errors:
            for error in errors:
                logger.error(f"Configuration error: {error}")
            raise ValueError(f"Production configuration invalid: {', '.join(errors)}")

    return settings


# ==================== CORS CONFIGURATION ====================

def get_cors_config() -> dict:
    """
    Get CORS middleware configuration.

    Returns configuration dict for CORSMiddleware.
    """
    settings = get_settings()

    return {
        "allow_origins": settings.cors_origins_list,
        "allow_credentials": True,
        "allow_methods": ["GET", "POST", "OPTIONS"],
        "allow_headers": [
            "Authorization",
            "Content-Type",
            "Accept",
            "Origin",
            "X-Requested-With",
            "X-Request-ID",
        ],
        "expose_headers": ["X-Request-ID"],
        "max_age": 600,  # Cache preflight for 10 minutes
    }


# ==================== ENVIRONMENT VALIDATION ====================

def validate_environment() -> dict:
    """
    Validate all required environment variables.

    Returns a status dict with validation results.
    """
    settings = get_settings()

    status = {
        "valid": True,
        "environment": settings.ENVIRONMENT,
        "errors": [],
        "warnings": [],
        "variables": {}
    }

    required_vars = [
        ("DATABASE_URL", settings.DATABASE_URL or settings.POSTGRES_HOST),
        ("AUTH_TOKEN_SECRET", settings.AUTH_TOKEN_SECRET),
    ]

    for name, value in required_vars:
        if not value:
            status["errors"].append(f"{name} is not set")
            status["valid"] = False
        else:
            status["variables"][name] = "set"

    optional_vars = [
        ("SENTRY_DSN", settings.SENTRY_DSN, "Error tracking disabled"),
        ("AUTH_PROVIDER_PROJECT_ID", settings.AUTH_PROVIDER_PROJECT_ID, "Provider account checks disabled"),
        ("AUTH_PROVIDER_TOKEN", settings.AUTH_PROVIDER_TOKEN, "Provider lookups are unauthenticated"),
    ]

    for name, value, warning in optional_vars:
        if not value:
            status["warnings"].append(warning)
            status["variables"][name] = "not set"
        else:
            status["variables"][name] = "set"

    errors = settings.validate_production_config()
    for error in errors:
        if error not in status["errors"] and not error.endswith("is required"):
            status["errors"].append(error)
            status["valid"] = False

    return status
