"""
Application Configuration
Uses Pydantic Settings for environment-based configuration
"""

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "Back-office API"
    VERSION: str = "1.0.0"
    API_VERSION: str = "1.0"
    ENVIRONMENT: str = Field(default="development", pattern="^(development|staging|production)$")
    DEBUG: bool = Field(default=False)

    # CORS
    # Allow str because it can be a comma-separated string in .env
    CORS_ORIGINS: str | list[str] = Field(
        default=["http://localhost:5173", "http://localhost:8000"]
    )

    # JWT
    JWT_SECRET: str = Field(min_length=32)
    JWT_ISSUER: str = Field(min_length=1)
    JWT_AUDIENCE: str = Field(min_length=1)
    JWT_EXPIRY_MINUTES: int = Field(default=60, gt=0)
    JWT_REFRESH_TOKEN_EXPIRY_DAYS: int = Field(default=7, gt=0)
    JWT_REFRESH_TOKEN_EXPIRY_REMEMBER_ME_DAYS: int = Field(default=30, gt=0)
    JWT_MAX_TOKENS_SYSTEM_USER: int = Field(default=1, gt=0)
    JWT_MAX_TOKENS_CUSTOMER: int = Field(default=5, gt=0)
    JWT_MAX_TOKEN_AGE_DAYS: int = Field(default=90, gt=0)

    # Authorization data cache
    AUTH_CACHE_USER_EXPIRY_MINUTES: int = Field(default=60, gt=0)
    AUTH_CACHE_USER_SLIDING_MINUTES: int = Field(default=30, gt=0)
    AUTH_CACHE_ROLE_CLAIMS_EXPIRY_MINUTES: int = Field(default=120, gt=0)

    # Cache backend
    CACHE_TYPE: str = Field(default="memory", pattern="^(memory|redis)$")
    REDIS_URL: str | None = Field(default=None)
    CACHE_DEFAULT_EXPIRY_MINUTES: int = Field(default=30, gt=0)

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./backoffice.db"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_ECHO: bool = False

    # Sign-in lockout
    LOCKOUT_MAX_FAILED_ATTEMPTS: int = 5
    LOCKOUT_MINUTES: int = 15
    REQUIRE_CONFIRMED_EMAIL: bool = True

    # Background worker (arq)
    ARQ_REDIS_URL: str = Field(default="redis://localhost:6379/1")
    ARQ_MAX_TRIES: int = 3
    ARQ_KEEP_RESULT: int = 3600  # 1 hour
    JOB_TIMEOUT_SECONDS: int = 300

    # Email notifications
    SMTP_ENABLE: bool = False
    SMTP_PROVIDER: str = Field(default="smtp", pattern="^(smtp|papercut)$")
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_TLS: bool = False
    SMTP_STARTTLS: bool = True
    SMTP_FROM_EMAIL: str = "noreply@example.com"
    SMTP_FROM_NAME: str = "Back-office"
    SMTP_MAX_ATTACHMENT_SIZE: int = 25  # MB

    # SMS notifications (Sinch)
    SMS_ENABLE: bool = False
    SMS_DEFAULT_SENDER_NUMBER: str | None = None
    SMS_SINCH_PROJECT_ID: str | None = None
    SMS_SINCH_KEY_ID: str | None = None
    SMS_SINCH_KEY_SECRET: str | None = None
    SMS_SINCH_SENDER: str | None = None
    SMS_SINCH_REGION: str = "us"
    SMS_TIMEOUT_SECONDS: float = 10.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("JWT_ISSUER", "JWT_AUDIENCE")
    @classmethod
    def reject_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @model_validator(mode="after")
    def validate_cache_options(self) -> "Settings":
        """Sliding windows may never outlive the absolute expiry."""
        if self.AUTH_CACHE_USER_SLIDING_MINUTES > self.AUTH_CACHE_USER_EXPIRY_MINUTES:
            raise ValueError(
                "AUTH_CACHE_USER_SLIDING_MINUTES must not exceed AUTH_CACHE_USER_EXPIRY_MINUTES"
            )
        if self.CACHE_TYPE == "redis" and not self.REDIS_URL:
            raise ValueError("REDIS_URL is required when CACHE_TYPE is 'redis'")
        return self


# Create global settings instance

load_dotenv()
settings = Settings()  # type: ignore[call-arg]


class CustomClaim:
    """Claim types carried by access tokens and role claims"""

    ROLE = "role"
    PERMISSION = "permission"
    POLICY = "policy"
    SCOPE_DOMAIN = "scope_domain"
    ISSUER = "issuer"


class CacheKeys:
    """Cache key templates"""

    USER_AUTHORIZATION = "UserAuth_{user_id}"
    ALL_ROLE_CLAIMS = "AllRoleClaims"


class PaginationDefaults:
    """Paging constants for list endpoints"""

    PAGE_NUMBER = 1
    PAGE_SIZE = 10
    MAX_PAGE_SIZE = 100


class TokenRevocationReason:
    """Reasons recorded on revoked refresh tokens"""

    ROTATED = "Rotated"
    LOGOUT = "User logout"
    LOGOUT_ALL = "All tokens revoked"
    MANUAL = "Manual revocation"
