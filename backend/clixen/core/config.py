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


# Marker for the default signing key; production refuses to start with it.
_INSECURE_JWT_SECRET = "dev-insecure-key-change-me"


class Settings(BaseSettings):
    """
    Application settings with validation.

    Every value can be overridden with an environment variable of the same
    name (case-insensitive) or from a ``.env`` file.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    cors_allowed_origins: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./clixen.db",
        description="Database connection URL (Supabase Postgres in production)"
    )
    db_pool_size: int = Field(default=5, description="Number of persistent database connections")
    db_max_overflow: int = Field(default=10, description="Extra connections allowed during bursts")
    db_pool_timeout: int = Field(default=30, description="Seconds to wait for a pooled connection")
    db_pool_recycle: int = Field(default=1800, description="Seconds before a connection is recycled")

    # Supabase
    supabase_url: str = Field(
        default="",
        description="Supabase project URL, e.g. https://<ref>.supabase.co"
    )
    supabase_anon_key: str = Field(default="", description="Supabase anon (public) key")
    supabase_service_role_key: str = Field(
        default="",
        description="Supabase service role key (admin API access)"
    )
    # Supabase signs access tokens with HS256 using the project JWT secret.
    # When set, tokens are verified locally; otherwise via GET /auth/v1/user.
    supabase_jwt_secret: str = Field(
        default="",
        description="Supabase project JWT secret for local token verification"
    )
    supabase_webhook_secret: str = Field(
        default="",
        description="HMAC secret for the auth signup database webhook"
    )

    # n8n
    # The API URL includes the /api/v1 suffix; webhook and editor URLs are
    # derived from it by stripping that suffix.
    n8n_api_url: str = Field(
        default="http://localhost:5678/api/v1",
        description="n8n REST API base URL"
    )
    n8n_api_key: str = Field(default="", description="n8n API key (X-N8N-API-KEY)")
    n8n_timeout: int = Field(default=30, description="Seconds before an n8n request times out")
    n8n_max_retries: int = Field(default=3, description="Attempts per n8n request")

    # Authentication
    # AUTH_ENABLED: when False, every request runs as the development user.
    auth_enabled: bool = Field(
        default=False,
        description="Require Supabase access tokens (False for development)"
    )
    jwt_secret_key: str = Field(
        default=_INSECURE_JWT_SECRET,
        description="Fallback signing secret for locally issued tokens"
    )
    jwt_algorithm: str = Field(default="HS256")
    dev_user_id: str = Field(
        default="00000000-0000-0000-0000-000000000001",
        description="User id used for every request when auth is disabled"
    )
    admin_emails: str = Field(
        default="",
        description="Comma-separated emails granted admin operations"
    )

    # Rate Limiting
    rate_limit_per_minute: int = Field(
        default=60,
        description="Maximum requests per client per minute"
    )

    # Chat / OpenAI
    # LiteLLM model string, e.g. "gpt-4o-mini" or "openai/gpt-4".
    # Empty string = chat and workflow generation disabled.
    chat_model: str = Field(
        default="",
        description="LiteLLM model for chat and workflow generation (empty = disabled)"
    )
    chat_api_key: str = Field(default="", description="OpenAI API key")
    chat_api_base: str = Field(default="", description="Base URL for a compatible endpoint (optional)")
    chat_timeout: int = Field(default=60, description="Seconds before a completion times out")
    chat_history_limit: int = Field(
        default=20,
        description="Max prior messages sent with each chat turn"
    )

    # Folder pool
    project_count: int = Field(default=10, description="Number of n8n projects in the folder pool")
    slots_per_project: int = Field(default=5, description="User folders per project")

    # Default workspace quotas
    default_max_workflows: int = Field(default=10)
    default_max_executions: int = Field(default=1000)
    default_max_projects: int = Field(default=5)
    default_max_api_calls_per_day: int = Field(default=1000)

    # Sync worker
    sync_interval_seconds: int = Field(
        default=300,
        description="Seconds between workflow sync passes in the worker"
    )
    cleanup_max_age_hours: int = Field(
        default=24,
        description="Inactive workflows older than this are deleted by cleanup"
    )

    # Telemetry Retention
    telemetry_retention_days: int = Field(
        default=90,
        description="Days to keep telemetry events (0 = keep forever)"
    )

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

        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )

        return origins

    def get_admin_emails(self) -> List[str]:
        return [e.strip().lower() for e in self.admin_emails.split(",") if e.strip()]

    @property
    def n8n_base_url(self) -> str:
        """n8n instance root, used for webhook and editor URLs."""
        url = self.n8n_api_url.rstrip("/")
        if url.endswith("/api/v1"):
            url = url[: -len("/api/v1")]
        return url

    @property
    def n8n_configured(self) -> bool:
        return bool(self.n8n_api_url and self.n8n_api_key)

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and (self.supabase_service_role_key or self.supabase_anon_key))

    @property
    def local_tokens_enabled(self) -> bool:
        """Accept tokens signed with JWT_SECRET_KEY.

        The built-in development secret is only trusted when no Supabase
        verifier is configured.
        """
        if self.jwt_secret_key != _INSECURE_JWT_SECRET:
            return True
        return not (self.supabase_jwt_secret or self.supabase_configured)

    @property
    def chat_configured(self) -> bool:
        return bool(self.chat_model and self.chat_api_key)

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('project_count', 'slots_per_project')
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Folder pool dimensions must be at least 1")
        return v

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        In production, fails startup if security-critical settings are
        missing. In development, returns silently and main.py logs warnings.

        Raises:
            ConfigurationError: If production config is insecure.
        """
        errors: list[str] = []

        if not self.auth_enabled:
            errors.append(
                "AUTH_ENABLED is false. "
                "Authentication must be enabled in production."
            )

        if self.auth_enabled and not (self.supabase_jwt_secret or self.supabase_configured):
            errors.append(
                "AUTH_ENABLED is true but neither SUPABASE_JWT_SECRET nor "
                "SUPABASE_URL/SUPABASE_ANON_KEY is set. Tokens cannot be verified."
            )

        if not self.supabase_webhook_secret:
            errors.append(
                "SUPABASE_WEBHOOK_SECRET is empty. "
                "Signup webhooks would be accepted unsigned."
            )

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
        extra = "ignore"


# Global settings instance
settings = Settings()
