"""Application configuration with validation."""

from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid for the environment."""
    pass


_DEFAULT_JWT_SECRET = "dev-insecure-key-change-me"


class Settings(BaseSettings):
    """
    Application settings with validation.

    Uses Pydantic for configuration validation. Each environment variable maps to the
    field of the same name, lower-cased.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    cors_allowed_origins: str = Field(
        default="http://localhost:5173",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./configapi.db",
        description="Async SQLAlchemy URL of the configurations database"
    )
    # Empty = same database as DATABASE_URL (single-database deployments, tests).
    directory_database_url: str = Field(
        default="",
        description="Async SQLAlchemy URL of the MojoPortal user directory (read-only)"
    )
    # Connection pool tuning (ignored for SQLite).
    db_pool_size: int = Field(
        default=10,
        description="Maximum persistent connections per database"
    )
    db_max_overflow: int = Field(
        default=0,
        description="Extra connections allowed beyond the pool size"
    )
    db_pool_timeout: int = Field(
        default=30,
        description="Seconds to wait for a free connection before failing with 503"
    )
    db_pool_recycle: int = Field(
        default=300,
        description="Seconds before an idle connection is evicted and reopened"
    )
    init_schema: bool = Field(
        default=False,
        description="Create configuration tables on startup (development only)"
    )

    # Authentication
    # JWT_SECRET_KEY signs both the session and the MFA token.
    # MOJO_JWT_SECRET verifies tokens minted by MojoPortal; falls back to JWT_SECRET_KEY.
    jwt_secret_key: str = Field(
        default=_DEFAULT_JWT_SECRET,
        description="Signing secret for session and MFA tokens (override in production)"
    )
    mojo_jwt_secret: str = Field(
        default="",
        description="Secret used to verify MojoPortal tokens"
    )
    jwt_issuer: str = Field(default="config-api")
    session_ttl_hours: float = Field(
        default=4,
        description="Lifetime of the session token and authToken cookie"
    )
    mfa_ttl_hours: float = Field(
        default=4,
        description="Lifetime of the MFA token (must not exceed the session lifetime)"
    )

    # MFA
    mfa_window: int = Field(
        default=2,
        description="Accepted TOTP time-steps either side of the current one"
    )
    mfa_issuer: str = Field(
        default="Config Manager",
        description="Issuer label shown in authenticator apps"
    )
    mfa_service_url: str = Field(
        default="http://localhost:7071",
        description="Base URL of the MFA secret service"
    )
    mfa_service_code: str = Field(
        default="",
        description="Function key passed as ?code= to the MFA secret service"
    )
    mfa_service_timeout: float = Field(
        default=10,
        description="Timeout in seconds for MFA secret service calls"
    )

    # Maintenance
    # READ_ONLY_MODE: writes are echoed instead of applied.
    # ADMIN_READ_ONLY: also block section spec updates (they bypass read-only otherwise).
    read_only_mode: bool = Field(default=False)
    admin_read_only: bool = Field(default=False)

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    def get_cors_origins(self) -> List[str]:
        """
        Get CORS origins as a list.

        Parses comma-separated string and validates no wildcards.
        """
        origins = [origin.strip() for origin in self.cors_allowed_origins.split(',') if origin.strip()]

        # SECURITY: credentials are sent with every request, wildcards are unusable.
        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )

        return origins

    @property
    def effective_directory_url(self) -> str:
        return self.directory_database_url or self.database_url

    @property
    def effective_mojo_secret(self) -> str:
        return self.mojo_jwt_secret or self.jwt_secret_key

    @property
    def cookie_secure(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('mfa_window')
    @classmethod
    def validate_mfa_window(cls, v: int) -> int:
        if v < 0:
            raise ValueError("MFA_WINDOW cannot be negative")
        return v

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        In production, fails startup if security-critical settings use insecure defaults.
        In development, returns silently and main.py logs warnings.

        Raises:
            ConfigurationError: If production config is insecure.
        """
        errors: list[str] = []

        if self.jwt_secret_key == _DEFAULT_JWT_SECRET:
            errors.append(
                "JWT_SECRET_KEY is using the default insecure value. "
                "Generate a secure key: openssl rand -hex 32"
            )

        if self.mfa_ttl_hours > self.session_ttl_hours:
            errors.append(
                "MFA_TTL_HOURS exceeds SESSION_TTL_HOURS. "
                "The MFA token must not outlive the session it is bound to."
            )

        if not self.mfa_service_code:
            errors.append("MFA_SERVICE_CODE is empty.")

        origins = self.get_cors_origins()
        localhost_origins = [o for o in origins if "localhost" in o or "127.0.0.1" in o]
        if localhost_origins:
            errors.append(
                f"CORS allows localhost origins: {localhost_origins}. "
                "Remove localhost origins for production."
            )

        if errors:
            if self.environment == Environment.PRODUCTION:
                raise ConfigurationError(
                    "Production configuration is insecure:\n  - " + "\n  - ".join(errors)
                )
            return

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
