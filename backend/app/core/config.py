"""Application configuration loaded from environment variables.

Settings for the database, API, token signing, cookies, OAuth providers
and outbound email. Uses pydantic-settings for validation and .env file
support.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "account_dev_password"  # nosec B105

# Minimum length for JWT secrets in production (256 bits = 32 bytes)
_MIN_JWT_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "account_service"
    database_user: str = "account_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000

    # CORS (Security)
    # CRITICAL: Never set to ["*"] - the refresh cookie needs allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Token signing
    # Access and refresh tokens use distinct secrets so a leaked access
    # secret cannot mint refresh tokens.
    jwt_access_secret: SecretStr = SecretStr("")
    jwt_refresh_secret: SecretStr = SecretStr("")
    jwt_issuer: str = "account-service"
    jwt_audience: str = "account-service"
    access_token_ttl_minutes: int = 15
    refresh_token_ttl_days: int = 7

    # Password handling
    bcrypt_rounds: int = 12
    reset_token_ttl_minutes: int = 15

    # Refresh token cookie
    refresh_cookie_name: str = "refresh_token"
    refresh_cookie_path: str = "/api/v1/auth"
    refresh_cookie_secure: bool = True
    refresh_cookie_samesite: Literal["lax", "strict", "none"] = "strict"
    refresh_cookie_domain: str = ""

    # OAuth Providers
    google_client_id: str = ""
    google_client_secret: SecretStr = SecretStr("")
    github_client_id: str = ""
    github_client_secret: SecretStr = SecretStr("")

    # Email (password reset delivery)
    email_from: str = "noreply@example.com"
    resend_api_key: SecretStr = SecretStr("")

    # Frontend URL (OAuth redirect target and reset link base)
    frontend_url: str = "http://localhost:3000"

    # Rate Limiting (Security)
    # Format: "count/period" (e.g., "10/minute", "100/hour")
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate production security requirements.

        Security: Prevents deployment with known insecure defaults.
        Checks:
        - SameSite=None requires Secure flag (browser requirement)
        - CORS must not use wildcard origin (incompatible with credentials)
        - TTLs and bcrypt cost must be positive (all environments)
        - Database password must not be the default in production
        - Both JWT secrets must be set, >= 32 chars and distinct in production
        """
        if self.refresh_cookie_samesite == "none" and not self.refresh_cookie_secure:
            msg = (
                "REFRESH_COOKIE_SECURE must be true when REFRESH_COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "The refresh token cookie requires credentialed CORS, which "
                "is incompatible with wildcard origins."
            )
            raise ValueError(msg)

        for name in (
            "access_token_ttl_minutes",
            "refresh_token_ttl_days",
            "reset_token_ttl_minutes",
        ):
            if getattr(self, name) <= 0:
                msg = f"{name.upper()} must be positive. Got: {getattr(self, name)}"
                raise ValueError(msg)

        # bcrypt accepts cost factors 4..31
        if not 4 <= self.bcrypt_rounds <= 31:
            msg = f"BCRYPT_ROUNDS must be between 4 and 31. Got: {self.bcrypt_rounds}"
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            access = self.jwt_access_secret.get_secret_value()
            refresh = self.jwt_refresh_secret.get_secret_value()
            for env_name, value in (
                ("JWT_ACCESS_SECRET", access),
                ("JWT_REFRESH_SECRET", refresh),
            ):
                if not value:
                    msg = (
                        f"{env_name} must be set in production. "
                        'Generate with: python -c "import secrets; '
                        'print(secrets.token_hex(32))"'
                    )
                    raise ValueError(msg)
                if len(value) < _MIN_JWT_SECRET_LENGTH:
                    msg = (
                        f"{env_name} must be at least {_MIN_JWT_SECRET_LENGTH} "
                        "characters for adequate security."
                    )
                    raise ValueError(msg)
            if access == refresh:
                msg = "JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ."
                raise ValueError(msg)

        return self


settings = Settings()
